"""Passive income accrual unit tests: exact integer settlement."""

from datetime import datetime, timedelta, timezone

from tapfarm.db.models import Player
from tapfarm.progression.accrual import MICROSECONDS_PER_HOUR, settle_income

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _player(income: int, balance: int = 0, last: datetime = T0) -> Player:
    return Player(id=1, balance=balance, income_per_hour=income, accrual_remainder=0, last_accrual_at=last)


class TestSettleIncome:
    """Test lazy passive-income settlement."""

    def test_one_hour(self):
        p = _player(income=3600)
        assert settle_income(p, T0 + timedelta(hours=1)) == 3600
        assert p.balance == 3600
        assert p.accrual_remainder == 0
        assert p.last_accrual_at == T0 + timedelta(hours=1)

    def test_zero_income_credits_nothing(self):
        p = _player(income=0, balance=50)
        assert settle_income(p, T0 + timedelta(days=3)) == 0
        assert p.balance == 50
        assert p.last_accrual_at == T0 + timedelta(days=3)

    def test_fraction_kept_as_remainder(self):
        p = _player(income=100)
        # 100/h for 10 s is 0.277 coins
        settle_income(p, T0 + timedelta(seconds=10))
        assert p.balance == 0
        assert p.accrual_remainder == 100 * 10 * 1_000_000
        assert p.accrual_remainder < MICROSECONDS_PER_HOUR

    def test_many_small_settlements_equal_one_large(self):
        step = timedelta(seconds=7, microseconds=123)
        steps = 5000

        split = _player(income=1234)
        now = T0
        for _ in range(steps):
            now += step
            settle_income(split, now)

        whole = _player(income=1234)
        settle_income(whole, T0 + step * steps)

        assert split.balance == whole.balance
        assert split.accrual_remainder == whole.accrual_remainder

    def test_clock_backward_credits_nothing(self):
        p = _player(income=3600, balance=10)
        assert settle_income(p, T0 - timedelta(minutes=1)) == 0
        assert p.balance == 10
        assert p.last_accrual_at == T0

    def test_same_instant_is_noop(self):
        p = _player(income=3600)
        assert settle_income(p, T0) == 0
        assert p.balance == 0

    def test_cap_limits_idle_time(self):
        p = _player(income=1000)
        settle_income(p, T0 + timedelta(hours=10), cap_hours=3)
        assert p.balance == 3000
        assert p.last_accrual_at == T0 + timedelta(hours=10)

    def test_uncapped_by_default(self):
        p = _player(income=1000)
        settle_income(p, T0 + timedelta(days=30))
        assert p.balance == 720_000

    def test_naive_stored_timestamp_is_utc(self):
        p = _player(income=3600, last=T0.replace(tzinfo=None))
        assert settle_income(p, T0 + timedelta(hours=2)) == 7200
