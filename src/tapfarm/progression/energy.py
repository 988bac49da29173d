"""Tap-energy regeneration, settled lazily from the stored timestamp."""

from __future__ import annotations

from datetime import datetime, timedelta

from tapfarm.db.models import Player
from tapfarm.progression.clock import as_utc
from tapfarm.progression.errors import InsufficientEnergy, InvalidAmount


def settle_energy(
    player: Player,
    now: datetime,
    interval: timedelta,
    amount: int = 1,
) -> int:
    """Regenerate energy for the whole intervals elapsed since ``last_energy_at``.

    ``last_energy_at`` advances by every whole interval elapsed, including
    those that found the bar full, so time at the cap is not banked while the
    partial interval carries over to the next settlement. A clock that moved
    backward regenerates nothing and leaves the timestamp alone.

    Returns the energy regenerated.
    """
    last = as_utc(player.last_energy_at)
    if now <= last:
        return 0

    intervals = (now - last) // interval
    if intervals == 0:
        return 0

    player.last_energy_at = last + intervals * interval
    gained = max(0, min(intervals * amount, player.energy_max - player.energy))
    player.energy += gained
    return gained


def consume_energy(player: Player, n: int) -> int:
    """Spend ``n`` energy, all or nothing. Returns the energy left."""
    if n <= 0:
        raise InvalidAmount(f"Energy to consume must be positive, got {n}")
    if player.energy < n:
        raise InsufficientEnergy(player.energy, n)
    player.energy -= n
    return player.energy


def raise_energy_cap(player: Player, new_max: int) -> None:
    """Raise the energy cap. The cap never goes down and current energy is not refilled."""
    player.energy_max = max(player.energy_max, new_max)
