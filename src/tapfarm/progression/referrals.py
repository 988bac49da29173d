"""Referral credits for the referrer and the new player.

Both records are locked and updated in a single transaction, and
``referred_by`` is set in that same transaction, so a pairing is credited
exactly once.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tapfarm.config import get_settings
from tapfarm.db.models import Player
from tapfarm.progression.errors import AlreadyReferred, SelfReferral
from tapfarm.progression.events import publish_event
from tapfarm.progression.ledger import credit, record_entry
from tapfarm.progression.store import atomic_update

logger = logging.getLogger(__name__)


def referrer_bonus(prior_referrals: int) -> int:
    """Bonus for a referrer's next referral: each one pays ``step`` more than the last."""
    settings = get_settings()
    return settings.referral_referrer_base + settings.referral_referrer_step * prior_referrals


async def register_referral(
    db: AsyncSession,
    new_player_id: int,
    referrer_id: int,
    now: datetime | None = None,
    redis: object = None,
) -> dict:
    """Pair a new player with the player who invited them and credit both."""
    if new_player_id == referrer_id:
        raise SelfReferral()
    referee_bonus = get_settings().referral_referee_bonus

    async def _apply(players: list[Player], now: datetime) -> dict:
        referee, referrer = players
        if referee.referred_by is not None:
            raise AlreadyReferred(referee.id, referee.referred_by)

        bonus = referrer_bonus(referrer.referral_count)
        referee.referred_by = referrer.id
        credit(referee, referee_bonus)
        record_entry(
            db, referee, referee_bonus, "referral", now,
            source_id=str(referrer.id),
            idempotency_key=f"referral:{referee.id}",
        )

        referrer.referral_count += 1
        credit(referrer, bonus)
        record_entry(
            db, referrer, bonus, "referral", now,
            source_id=str(referee.id),
            idempotency_key=f"referral:{referee.id}:referrer",
        )
        referee.updated_at = now
        referrer.updated_at = now
        return {
            "referrer_id": referrer.id,
            "referee_id": referee.id,
            "referrer_bonus": bonus,
            "referee_bonus": referee_bonus,
            "referral_count": referrer.referral_count,
        }

    result = await atomic_update(db, [new_player_id, referrer_id], _apply, now)
    logger.info(
        "Referral %s -> %s credited (%d / %d)",
        referrer_id, new_player_id, result["referrer_bonus"], result["referee_bonus"],
    )
    await publish_event(redis, "referral_credited", result)
    return result


async def list_referrals(db: AsyncSession, referrer_id: int) -> list[Player]:
    """Players referred by ``referrer_id``, oldest first."""
    result = await db.execute(
        select(Player)
        .where(Player.referred_by == referrer_id)
        .order_by(Player.created_at.asc(), Player.id.asc())
    )
    return list(result.scalars().all())
