"""Progression store: atomic read-settle-validate-mutate-write of player records.

Every command goes through atomic_update():

1. take the in-process lock of each player involved (ascending id order)
2. load the rows ``SELECT ... FOR UPDATE``
3. settle passive income and energy up to ``now``
4. run the command's validation and mutation
5. commit; the UPDATE is guarded by ``players.version``

A ProgressionError rolls everything back, settlement included, so a failed
command leaves the stored record exactly as it was. A version conflict or a
duplicate ledger key means another writer got there first: the transaction
is rolled back and the command re-runs against fresh state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tapfarm.config import get_settings
from tapfarm.db.models import Player, PlayerTask
from tapfarm.progression import catalog
from tapfarm.progression.accrual import settle_income
from tapfarm.progression.catalog import (
    EFFECT_ENERGY_MAX,
    UPGRADE_CATEGORIES,
    compute_income_per_hour,
    compute_rank,
    get_category,
    next_farm_tier,
    next_tier,
)
from tapfarm.progression.clock import as_utc, utcnow
from tapfarm.progression.energy import raise_energy_cap, settle_energy
from tapfarm.progression.errors import ConcurrentUpdateError, ProgressionError, UnknownUser, UpgradeMaxed
from tapfarm.progression.events import publish_event
from tapfarm.progression.ledger import debit, record_entry
from tapfarm.progression.streak import daily_board, is_eligible

logger = logging.getLogger(__name__)

T = TypeVar("T")
Mutation = Callable[[list[Player], datetime], Awaitable[T]]


# ---------------------------------------------------------------------------
# Per-player mutual exclusion
# ---------------------------------------------------------------------------


class PlayerLocks:
    """Registry of per-player asyncio locks, dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, player_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(player_id, asyncio.Lock())
        self._users[player_id] = self._users.get(player_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[player_id] -= 1
            if self._users[player_id] == 0:
                del self._users[player_id]
                del self._locks[player_id]

    def __len__(self) -> int:
        return len(self._locks)


player_locks = PlayerLocks()


# ---------------------------------------------------------------------------
# Atomic update
# ---------------------------------------------------------------------------


def settle(player: Player, now: datetime) -> None:
    """Catch a record up to ``now``: passive income, then energy."""
    settings = get_settings()
    settle_income(player, now, cap_hours=settings.accrual_cap_hours)
    settle_energy(
        player,
        now,
        interval=timedelta(seconds=settings.energy_regen_interval_seconds),
        amount=settings.energy_regen_amount,
    )


async def _load_for_update(db: AsyncSession, player_ids: Sequence[int]) -> list[Player]:
    result = await db.execute(
        select(Player)
        .where(Player.id.in_(sorted(set(player_ids))))
        .order_by(Player.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    by_id = {p.id: p for p in result.scalars()}
    for player_id in player_ids:
        if player_id not in by_id:
            raise UnknownUser(player_id)
    return [by_id[player_id] for player_id in player_ids]


async def atomic_update(
    db: AsyncSession,
    player_ids: Sequence[int],
    mutate: Mutation[T],
    now: datetime | None = None,
) -> T:
    """Run ``mutate`` on the settled records of ``player_ids`` as one transaction.

    ``mutate`` receives the players in the order given and the settlement time.
    """
    now = utcnow() if now is None else as_utc(now)
    attempts = get_settings().store_max_attempts

    async with AsyncExitStack() as stack:
        for player_id in sorted(set(player_ids)):
            await stack.enter_async_context(player_locks.hold(player_id))

        for attempt in range(1, attempts + 1):
            try:
                players = await _load_for_update(db, player_ids)
                for player in players:
                    settle(player, now)
                result = await mutate(players, now)
                await db.commit()
                return result
            except ProgressionError:
                await db.rollback()
                raise
            except (StaleDataError, IntegrityError) as exc:
                await db.rollback()
                logger.warning(
                    "Write conflict on players %s (attempt %d/%d): %s",
                    list(player_ids), attempt, attempts, type(exc).__name__,
                )
            except Exception:
                await db.rollback()
                raise

    raise ConcurrentUpdateError(f"Players {list(player_ids)} kept changing; gave up after {attempts} attempts")


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------


async def get_player(db: AsyncSession, player_id: int) -> Player | None:
    result = await db.execute(select(Player).where(Player.id == player_id))
    return result.scalar_one_or_none()


async def provision_player(
    db: AsyncSession,
    player_id: int,
    username: str | None = None,
    now: datetime | None = None,
) -> tuple[Player, bool]:
    """Get or create the progression record of a player. Returns (player, created)."""
    existing = await get_player(db, player_id)
    if existing is not None:
        return existing, False

    now = utcnow() if now is None else as_utc(now)
    player = Player(
        id=player_id,
        username=username,
        balance=get_settings().starting_balance,
        income_per_hour=0,
        accrual_remainder=0,
        last_accrual_at=now,
        energy=catalog.energy_max_for(1),
        energy_max=catalog.energy_max_for(1),
        last_energy_at=now,
        upgrade_levels={},
        farm_level=0,
        streak_day=1,
        referral_count=0,
        created_at=now,
    )
    db.add(player)
    try:
        await db.commit()
    except IntegrityError:
        # Provisioned concurrently by another request
        await db.rollback()
        existing = await get_player(db, player_id)
        if existing is None:
            raise
        return existing, False

    logger.info("Provisioned player %s", player_id)
    return player, True


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


async def load_tasks(db: AsyncSession, player_id: int) -> dict[str, PlayerTask]:
    result = await db.execute(select(PlayerTask).where(PlayerTask.player_id == player_id))
    return {t.task_id: t for t in result.scalars()}


def is_task_ready(task: dict, state: PlayerTask | None, referral_count: int) -> bool:
    """Completion predicate of a catalog task."""
    if task["min_referrals"] > 0:
        return referral_count >= task["min_referrals"]
    return state is not None and state.completed_at is not None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def build_progress(player: Player, tasks: dict[str, PlayerTask], now: datetime) -> dict:
    """Snapshot of a settled record, as returned to clients."""
    tz_name = get_settings().streak_timezone
    levels = {category: player.upgrade_levels.get(category, 1) for category in UPGRADE_CATEGORIES}
    return {
        "player_id": player.id,
        "username": player.username,
        "balance": player.balance,
        "energy": {"current": player.energy, "max": player.energy_max},
        "income_per_hour": player.income_per_hour,
        "tap_profit": catalog.tap_profit(levels["multitap"]),
        "upgrade_levels": levels,
        "farm_level": player.farm_level,
        "streak_day": player.streak_day,
        "can_collect_daily": is_eligible(player.last_streak_collected_on, now, tz_name),
        "daily_rewards": daily_board(player, now, tz_name),
        "tasks": [
            {
                "id": task["id"],
                "title": task["title"],
                "reward": task["reward"],
                "ready": is_task_ready(task, tasks.get(task["id"]), player.referral_count),
                "collected": task["id"] in tasks and tasks[task["id"]].collected_at is not None,
            }
            for task in catalog.TASKS
        ],
        "referral_count": player.referral_count,
        "referred_by": player.referred_by,
        "rank": compute_rank(player.balance),
        "settled_at": now,
    }


async def get_progress(db: AsyncSession, player_id: int, now: datetime | None = None) -> dict:
    """Settle a player up to now and return the progress snapshot."""

    async def _snapshot(players: list[Player], now: datetime) -> dict:
        player = players[0]
        tasks = await load_tasks(db, player.id)
        return build_progress(player, tasks, now)

    return await atomic_update(db, [player_id], _snapshot, now)


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


async def purchase_upgrade(
    db: AsyncSession,
    player_id: int,
    category: str,
    now: datetime | None = None,
    redis: object = None,
) -> dict:
    """Buy the next tier of an upgrade category.

    The level check and the debit happen in the same atomic update, so a
    retried purchase either applies once or fails UpgradeMaxed /
    InsufficientFunds.
    """
    effect = get_category(category)["effect"]

    async def _apply(players: list[Player], now: datetime) -> dict:
        player = players[0]
        current = player.upgrade_levels.get(category, 1)
        tier = next_tier(category, current)
        if tier is None:
            raise UpgradeMaxed(category, current)

        debit(player, tier["cost"])
        record_entry(db, player, -tier["cost"], "upgrade", now, source_id=f"{category}:{tier['level']}")
        player.upgrade_levels[category] = tier["level"]
        if effect == EFFECT_ENERGY_MAX:
            raise_energy_cap(player, tier["profit"])
        player.income_per_hour = compute_income_per_hour(player.upgrade_levels, player.farm_level)
        player.updated_at = now
        return {
            "category": category,
            "new_level": tier["level"],
            "cost": tier["cost"],
            "new_balance": player.balance,
            "new_income_per_hour": player.income_per_hour,
            "energy_max": player.energy_max,
        }

    result = await atomic_update(db, [player_id], _apply, now)
    logger.info("Player %s bought %s level %d for %d", player_id, category, result["new_level"], result["cost"])
    await publish_event(redis, "upgrade_purchased", {"player_id": player_id, **result})
    return result


async def purchase_farm_level(
    db: AsyncSession,
    player_id: int,
    now: datetime | None = None,
    redis: object = None,
) -> dict:
    """Raise the farm level; the new multiplier rescales the whole income rate."""

    async def _apply(players: list[Player], now: datetime) -> dict:
        player = players[0]
        tier = next_farm_tier(player.farm_level)
        if tier is None:
            raise UpgradeMaxed("farm", player.farm_level)

        debit(player, tier["cost"])
        record_entry(db, player, -tier["cost"], "farm", now, source_id=str(tier["level"]))
        player.farm_level = tier["level"]
        player.income_per_hour = compute_income_per_hour(player.upgrade_levels, player.farm_level)
        player.updated_at = now
        return {
            "new_farm_level": player.farm_level,
            "cost": tier["cost"],
            "new_balance": player.balance,
            "new_income_per_hour": player.income_per_hour,
        }

    result = await atomic_update(db, [player_id], _apply, now)
    logger.info("Player %s raised farm to level %d", player_id, result["new_farm_level"])
    await publish_event(redis, "farm_upgraded", {"player_id": player_id, **result})
    return result

