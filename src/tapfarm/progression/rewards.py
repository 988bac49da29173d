"""Reward collection: daily streak rewards and one-off task rewards.

Each collection validates and credits inside one atomic update and writes a
ledger entry under a unique idempotency key, so a reward is granted at most
once per eligibility window however often the request is retried.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tapfarm.config import get_settings
from tapfarm.db.models import Player, PlayerTask
from tapfarm.progression.catalog import daily_reward, get_task
from tapfarm.progression.clock import calendar_day
from tapfarm.progression.errors import AlreadyCollected, InvalidDay, InvalidTask, TaskNotReady
from tapfarm.progression.events import publish_event
from tapfarm.progression.ledger import credit, record_entry
from tapfarm.progression.store import atomic_update, is_task_ready
from tapfarm.progression.streak import advance, is_eligible

logger = logging.getLogger(__name__)


async def collect_daily(
    db: AsyncSession,
    player_id: int,
    day: int,
    now: datetime | None = None,
    redis: object = None,
) -> dict:
    """Collect today's streak reward.

    Eligibility is checked before the day: a duplicate of a request that
    already succeeded sees the advanced streak day, and must still be told
    AlreadyCollected rather than InvalidDay.
    """
    tz_name = get_settings().streak_timezone

    async def _apply(players: list[Player], now: datetime) -> dict:
        player = players[0]
        if not is_eligible(player.last_streak_collected_on, now, tz_name):
            raise AlreadyCollected(f"Daily reward already collected on {player.last_streak_collected_on}")
        if day != player.streak_day:
            raise InvalidDay(day, player.streak_day)

        reward = daily_reward(player.streak_day)
        today = calendar_day(now, tz_name)
        credit(player, reward)
        record_entry(
            db, player, reward, "daily", now,
            source_id=str(day),
            idempotency_key=f"daily:{player.id}:{today.isoformat()}",
        )
        advance(player, now, tz_name)
        player.updated_at = now
        return {
            "collected_day": day,
            "reward": reward,
            "new_balance": player.balance,
            "new_streak_day": player.streak_day,
        }

    result = await atomic_update(db, [player_id], _apply, now)
    logger.info("Player %s collected daily reward day %d (+%d)", player_id, day, result["reward"])
    await publish_event(redis, "daily_collected", {"player_id": player_id, **result})
    return result


async def _get_task_state(db: AsyncSession, player_id: int, task_id: str) -> PlayerTask | None:
    result = await db.execute(
        select(PlayerTask)
        .where(PlayerTask.player_id == player_id, PlayerTask.task_id == task_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def collect_task(
    db: AsyncSession,
    player_id: int,
    task_id: str,
    now: datetime | None = None,
    redis: object = None,
) -> dict:
    """Collect the reward of a completed one-off task."""
    task = get_task(task_id)
    if task is None:
        raise InvalidTask(task_id)

    async def _apply(players: list[Player], now: datetime) -> dict:
        player = players[0]
        state = await _get_task_state(db, player.id, task_id)
        if state is not None and state.collected_at is not None:
            raise AlreadyCollected(f"Task '{task_id}' already collected")
        if not is_task_ready(task, state, player.referral_count):
            raise TaskNotReady(task_id)

        if state is None:
            state = PlayerTask(player_id=player.id, task_id=task_id, completed_at=now)
            db.add(state)
        state.collected_at = now

        credit(player, task["reward"])
        record_entry(
            db, player, task["reward"], "task", now,
            source_id=task_id,
            idempotency_key=f"task:{player.id}:{task_id}",
        )
        player.updated_at = now
        return {"task_id": task_id, "reward": task["reward"], "new_balance": player.balance}

    result = await atomic_update(db, [player_id], _apply, now)
    logger.info("Player %s collected task %s (+%d)", player_id, task_id, result["reward"])
    await publish_event(redis, "task_collected", {"player_id": player_id, **result})
    return result


async def mark_task_completed(
    db: AsyncSession,
    player_id: int,
    task_id: str,
    now: datetime | None = None,
) -> bool:
    """Record that the task-assignment side saw the task done.

    Returns True if this call marked it, False if it was already marked.
    """
    if get_task(task_id) is None:
        raise InvalidTask(task_id)

    async def _apply(players: list[Player], now: datetime) -> bool:
        state = await _get_task_state(db, players[0].id, task_id)
        if state is None:
            db.add(PlayerTask(player_id=players[0].id, task_id=task_id, completed_at=now))
            return True
        if state.completed_at is None:
            state.completed_at = now
            return True
        return False

    marked = await atomic_update(db, [player_id], _apply, now)
    if marked:
        logger.info("Task %s completed by player %s", task_id, player_id)
    return marked
