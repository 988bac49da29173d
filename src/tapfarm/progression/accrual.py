"""Passive income accrual, settled lazily on every command.

Income is computed in integer coin-microseconds so nothing is lost to
rounding: the part of a coin not yet earned stays in ``accrual_remainder``
(always < 3600 * 1_000_000) and counts towards the next settlement. Many
short settlements therefore credit exactly what one long settlement would.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from tapfarm.db.models import Player
from tapfarm.progression.clock import as_utc
from tapfarm.progression.ledger import credit

logger = logging.getLogger(__name__)

_US = timedelta(microseconds=1)
MICROSECONDS_PER_HOUR = 3600 * 1_000_000


def settle_income(player: Player, now: datetime, cap_hours: int = 0) -> int:
    """Credit the income earned since ``last_accrual_at``. Returns coins credited.

    If the clock moved backward nothing is credited and ``last_accrual_at``
    stays where it was. ``cap_hours`` > 0 limits how much idle time counts.
    """
    last = as_utc(player.last_accrual_at)
    if now < last:
        logger.warning(
            "Clock skew for player %s: now %s < last accrual %s", player.id, now.isoformat(), last.isoformat()
        )
        return 0

    elapsed_us = (now - last) // _US
    if cap_hours > 0:
        elapsed_us = min(elapsed_us, cap_hours * MICROSECONDS_PER_HOUR)

    earned = player.income_per_hour * elapsed_us + player.accrual_remainder
    coins, player.accrual_remainder = divmod(earned, MICROSECONDS_PER_HOUR)
    player.last_accrual_at = now

    if coins:
        credit(player, coins)
    return coins

