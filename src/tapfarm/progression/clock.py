"""Time helpers shared by the settlement rules."""

from __future__ import annotations

from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Normalize a stored timestamp to aware UTC.

    SQLite hands timestamps back naive; they were written as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@lru_cache
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def calendar_day(dt: datetime, tz_name: str) -> date:
    """Calendar date of ``dt`` in the reference time zone."""
    return as_utc(dt).astimezone(_zone(tz_name)).date()
