"""Daily streak tracking on calendar-day boundaries.

Eligibility is decided by date in the reference time zone, not by elapsed
time: a player who collects at 23:59 may collect again at 00:01.
"""

from __future__ import annotations

from datetime import date, datetime

from tapfarm.db.models import Player
from tapfarm.progression.catalog import DAILY_REWARDS, STREAK_DAYS
from tapfarm.progression.clock import calendar_day


def is_eligible(last_collected_on: date | None, now: datetime, tz_name: str) -> bool:
    """True if nothing was collected yet or the last collection was on an earlier day."""
    if last_collected_on is None:
        return True
    return last_collected_on < calendar_day(now, tz_name)


def next_streak_day(day: int) -> int:
    """Single-step cyclic advance: 1 -> 2 -> ... -> 7 -> 1."""
    return 1 if day >= STREAK_DAYS else day + 1


def advance(player: Player, now: datetime, tz_name: str) -> None:
    """Mark today's reward collected and move to the next streak day."""
    player.last_streak_collected_on = calendar_day(now, tz_name)
    player.streak_day = next_streak_day(player.streak_day)


def daily_board(player: Player, now: datetime, tz_name: str) -> list[dict]:
    """The 7-day reward board as the client renders it."""
    can_collect = is_eligible(player.last_streak_collected_on, now, tz_name)
    return [
        {
            "day": day,
            "reward": reward,
            "collected": day < player.streak_day,
            "claimable": day == player.streak_day and can_collect,
        }
        for day, reward in DAILY_REWARDS.items()
    ]
