"""ORM models for the progression store.

One ``players`` row is the authoritative progression record of a player and
the unit of atomic mutation. ``version`` is the optimistic concurrency
counter: every UPDATE is guarded by it.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tapfarm.db.base import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class Player(Base):
    """Per-player progression record."""

    __tablename__ = "players"

    # Telegram user id, assigned by account provisioning
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)

    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    income_per_hour: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # Sub-coin accrual carried between settlements, in 1/3_600_000_000 coin units
    accrual_remainder: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_accrual_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    energy: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    energy_max: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    last_energy_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # category -> level; absent category means level 1 (not purchased)
    upgrade_levels: Mapped[dict[str, int]] = mapped_column(
        MutableDict.as_mutable(JSON), nullable=False, default=dict
    )
    farm_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    streak_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_streak_collected_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    referred_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    referral_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tasks: Mapped[list[PlayerTask]] = relationship("PlayerTask", back_populates="player")

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class PlayerTask(Base):
    """Per-player state of a one-off task from the task catalog."""

    __tablename__ = "player_tasks"
    __table_args__ = (UniqueConstraint("player_id", "task_id", name="player_tasks_player_task_key"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Set by the external task-assignment collaborator
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    player: Mapped[Player] = relationship("Player", back_populates="tasks")


# ---------------------------------------------------------------------------
# Coin ledger
# ---------------------------------------------------------------------------


class CoinLedger(Base):
    """Append-only record of discrete balance changes.

    Passive accrual is not recorded here. ``idempotency_key`` is unique so a
    reward can never be written twice, even by two processes.
    """

    __tablename__ = "coin_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
