"""Balance ledger: credit/debit on a player record plus the coin_ledger journal.

credit() and debit() only touch the in-memory record; they are meant to run
inside a ProgressionStore atomic update, which owns locking and the write.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tapfarm.db.models import CoinLedger, Player
from tapfarm.progression.errors import InsufficientFunds, InvalidAmount


def credit(player: Player, amount: int) -> int:
    """Add ``amount`` coins. Returns the new balance."""
    if amount < 0:
        raise InvalidAmount(f"Credit amount must be non-negative, got {amount}")
    player.balance += amount
    return player.balance


def debit(player: Player, amount: int) -> int:
    """Remove ``amount`` coins, all or nothing. Returns the new balance."""
    if amount < 0:
        raise InvalidAmount(f"Debit amount must be non-negative, got {amount}")
    if player.balance < amount:
        raise InsufficientFunds(player.balance, amount)
    player.balance -= amount
    return player.balance


def record_entry(
    db: AsyncSession,
    player: Player,
    amount: int,
    source: str,
    now: datetime,
    source_id: str | None = None,
    idempotency_key: str | None = None,
) -> CoinLedger:
    """Journal a balance change already applied to ``player`` (negative for debits)."""
    entry = CoinLedger(
        player_id=player.id,
        amount=amount,
        balance_after=player.balance,
        source=source,
        source_id=source_id,
        idempotency_key=idempotency_key,
        created_at=now,
    )
    db.add(entry)
    return entry


async def has_entry(db: AsyncSession, idempotency_key: str) -> bool:
    """True if a ledger entry with this idempotency key was already written."""
    result = await db.execute(
        select(CoinLedger.id).where(CoinLedger.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none() is not None


async def get_history(db: AsyncSession, player_id: int, limit: int = 50) -> list[CoinLedger]:
    """Most recent ledger entries for a player, newest first."""
    result = await db.execute(
        select(CoinLedger)
        .where(CoinLedger.player_id == player_id)
        .order_by(CoinLedger.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
