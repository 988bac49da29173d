"""Energy regeneration unit tests: whole intervals, carry-over, cap."""

from datetime import datetime, timedelta, timezone

import pytest

from tapfarm.db.models import Player
from tapfarm.progression.energy import consume_energy, raise_energy_cap, settle_energy
from tapfarm.progression.errors import InsufficientEnergy, InvalidAmount

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)
SECOND = timedelta(seconds=1)


def _player(energy: int = 1000, energy_max: int = 1000, last: datetime = T0) -> Player:
    return Player(id=1, energy=energy, energy_max=energy_max, last_energy_at=last)


class TestSettleEnergy:
    """Test lazy energy regeneration."""

    def test_whole_intervals_regenerate(self):
        p = _player(energy=100)
        gained = settle_energy(p, T0 + timedelta(seconds=30), SECOND)
        assert gained == 30
        assert p.energy == 130
        assert p.last_energy_at == T0 + timedelta(seconds=30)

    def test_partial_interval_carries_over(self):
        p = _player(energy=100)
        settle_energy(p, T0 + timedelta(seconds=2.5), SECOND)
        assert p.energy == 102
        # Only the consumed intervals advance the clock
        assert p.last_energy_at == T0 + timedelta(seconds=2)

        settle_energy(p, T0 + timedelta(seconds=3), SECOND)
        assert p.energy == 103

    def test_less_than_one_interval_is_noop(self):
        p = _player(energy=100)
        assert settle_energy(p, T0 + timedelta(milliseconds=999), SECOND) == 0
        assert p.energy == 100
        assert p.last_energy_at == T0

    def test_capped_at_max(self):
        p = _player(energy=990)
        gained = settle_energy(p, T0 + timedelta(hours=1, milliseconds=500), SECOND)
        assert gained == 10
        assert p.energy == 1000
        # The half interval past the last whole one is kept
        assert p.last_energy_at == T0 + timedelta(hours=1)

    def test_full_bar_does_not_bank_time(self):
        p = _player(energy=1000)
        later = T0 + timedelta(hours=2, milliseconds=400)
        assert settle_energy(p, later, SECOND) == 0
        assert p.last_energy_at == T0 + timedelta(hours=2)

        consume_energy(p, 100)
        settle_energy(p, later + timedelta(seconds=10), SECOND)
        assert p.energy == 910

    def test_fraction_kept_when_reaching_cap(self):
        """999/1000, settle at +1.5s, tap once, settle at +2s: the half second counts."""
        p = _player(energy=999)
        settle_energy(p, T0 + timedelta(seconds=1.5), SECOND)
        assert p.energy == 1000
        assert p.last_energy_at == T0 + SECOND

        consume_energy(p, 1)
        assert settle_energy(p, T0 + timedelta(seconds=2), SECOND) == 1
        assert p.energy == 1000
        assert p.last_energy_at == T0 + 2 * SECOND

    def test_regen_amount(self):
        p = _player(energy=0)
        settle_energy(p, T0 + timedelta(seconds=6), timedelta(seconds=3), amount=5)
        assert p.energy == 10

    def test_clock_backward_regenerates_nothing(self):
        p = _player(energy=100)
        assert settle_energy(p, T0 - timedelta(minutes=5), SECOND) == 0
        assert p.energy == 100
        assert p.last_energy_at == T0

    def test_naive_stored_timestamp_is_utc(self):
        p = _player(energy=100, last=T0.replace(tzinfo=None))
        assert settle_energy(p, T0 + timedelta(seconds=5), SECOND) == 5


class TestConsumeEnergy:
    """Test energy spending."""

    def test_consume(self):
        p = _player(energy=500)
        assert consume_energy(p, 200) == 300

    def test_consume_all(self):
        p = _player(energy=500)
        assert consume_energy(p, 500) == 0

    def test_insufficient_is_all_or_nothing(self):
        p = _player(energy=10)
        with pytest.raises(InsufficientEnergy) as exc_info:
            consume_energy(p, 11)
        assert exc_info.value.available == 10
        assert exc_info.value.required == 11
        assert p.energy == 10

    @pytest.mark.parametrize("n", [0, -5])
    def test_non_positive_rejected(self, n):
        p = _player(energy=10)
        with pytest.raises(InvalidAmount):
            consume_energy(p, n)


class TestRaiseEnergyCap:
    """Test the energy cap only goes up."""

    def test_raise(self):
        p = _player(energy=400)
        raise_energy_cap(p, 1500)
        assert p.energy_max == 1500
        assert p.energy == 400

    def test_never_lowers(self):
        p = _player(energy_max=2000)
        raise_energy_cap(p, 1500)
        assert p.energy_max == 2000
