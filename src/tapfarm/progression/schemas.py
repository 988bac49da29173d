"""Pydantic request/response models for progression endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

# --- Requests ---


class ProvisionRequest(BaseModel):
    player_id: int
    username: str | None = Field(default=None, max_length=64)


class TapRequest(BaseModel):
    taps: int
    request_id: str | None = Field(default=None, max_length=64)


class CollectDailyRequest(BaseModel):
    day: int


class ReferralRequest(BaseModel):
    referrer_id: int


# --- Progress ---


class EnergyResponse(BaseModel):
    current: int
    max: int


class RankResponse(BaseModel):
    index: int
    title: str
    next_title: str | None = None
    progress_pct: float


class DailyRewardEntry(BaseModel):
    day: int
    reward: int
    collected: bool
    claimable: bool


class TaskEntry(BaseModel):
    id: str
    title: str
    reward: int
    ready: bool
    collected: bool


class ProgressResponse(BaseModel):
    player_id: int
    username: str | None = None
    balance: int
    energy: EnergyResponse
    income_per_hour: int
    tap_profit: int
    upgrade_levels: dict[str, int]
    farm_level: int
    streak_day: int
    can_collect_daily: bool
    daily_rewards: list[DailyRewardEntry]
    tasks: list[TaskEntry]
    referral_count: int
    referred_by: int | None = None
    rank: RankResponse
    settled_at: datetime


# --- Commands ---


class ProvisionResponse(BaseModel):
    player_id: int
    created: bool


class TapResponse(BaseModel):
    applied: bool
    earned: int
    new_balance: int
    energy: int


class PurchaseUpgradeResponse(BaseModel):
    category: str
    new_level: int
    cost: int
    new_balance: int
    new_income_per_hour: int
    energy_max: int


class PurchaseFarmResponse(BaseModel):
    new_farm_level: int
    cost: int
    new_balance: int
    new_income_per_hour: int


class CollectDailyResponse(BaseModel):
    collected_day: int
    reward: int
    new_balance: int
    new_streak_day: int


class CollectTaskResponse(BaseModel):
    task_id: str
    reward: int
    new_balance: int


class TaskCompletedResponse(BaseModel):
    task_id: str
    marked: bool


class ReferralResponse(BaseModel):
    referrer_id: int
    referee_id: int
    referrer_bonus: int
    referee_bonus: int
    referral_count: int


class FriendEntry(BaseModel):
    player_id: int
    username: str | None = None
    joined_at: datetime | None = None


class FriendsResponse(BaseModel):
    friends: list[FriendEntry]
    total: int


class LedgerEntry(BaseModel):
    amount: int
    balance_after: int
    source: str
    source_id: str | None = None
    created_at: datetime


class LedgerResponse(BaseModel):
    entries: list[LedgerEntry]


# --- Catalog ---


class TierEntry(BaseModel):
    level: int
    cost: int
    profit: int


class CategoryEntry(BaseModel):
    key: str
    title: str
    effect: str
    tiers: list[TierEntry]


class FarmLevelEntry(BaseModel):
    level: int
    cost: int
    multiplier_pct: int


class CatalogTaskEntry(BaseModel):
    id: str
    title: str
    reward: int
    min_referrals: int


class CatalogResponse(BaseModel):
    categories: list[CategoryEntry]
    farm_levels: list[FarmLevelEntry]
    daily_rewards: dict[int, int]
    tasks: list[CatalogTaskEntry]
