"""Tap batches: spend energy, earn the Multitap profit per tap."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from tapfarm.config import get_settings
from tapfarm.db.models import Player
from tapfarm.progression.catalog import tap_profit
from tapfarm.progression.energy import consume_energy
from tapfarm.progression.errors import InvalidAmount
from tapfarm.progression.ledger import credit, has_entry, record_entry
from tapfarm.progression.store import atomic_update

logger = logging.getLogger(__name__)


async def tap(
    db: AsyncSession,
    player_id: int,
    taps: int,
    request_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Apply a batch of ``taps``.

    With a ``request_id`` the batch is applied at most once; a replay returns
    the current state with ``applied`` False.
    """
    max_batch = get_settings().tap_batch_max
    if not 1 <= taps <= max_batch:
        raise InvalidAmount(f"Taps per request must be between 1 and {max_batch}, got {taps}")

    async def _apply(players: list[Player], now: datetime) -> dict:
        player = players[0]
        key = f"tap:{player.id}:{request_id}" if request_id else None
        if key is not None and await has_entry(db, key):
            return {"applied": False, "earned": 0, "new_balance": player.balance, "energy": player.energy}

        consume_energy(player, taps)
        earned = taps * tap_profit(player.upgrade_levels.get("multitap", 1))
        credit(player, earned)
        record_entry(db, player, earned, "tap", now, source_id=str(taps), idempotency_key=key)
        player.updated_at = now
        return {"applied": True, "earned": earned, "new_balance": player.balance, "energy": player.energy}

    result = await atomic_update(db, [player_id], _apply, now)
    if not result["applied"]:
        logger.info("Replayed tap batch %s for player %s ignored", request_id, player_id)
    return result
