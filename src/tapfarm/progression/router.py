"""Progression API endpoints.

Validation failures raise ProgressionError subclasses, which the global
error handler turns into JSON with the failure ``code``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tapfarm.database import get_session
from tapfarm.progression import catalog
from tapfarm.progression.errors import UnknownUser
from tapfarm.progression.ledger import get_history
from tapfarm.progression.referrals import list_referrals, register_referral
from tapfarm.progression.rewards import collect_daily, collect_task, mark_task_completed
from tapfarm.progression.schemas import (
    CatalogResponse,
    CategoryEntry,
    CatalogTaskEntry,
    CollectDailyRequest,
    CollectDailyResponse,
    CollectTaskResponse,
    FarmLevelEntry,
    FriendEntry,
    FriendsResponse,
    LedgerEntry,
    LedgerResponse,
    ProgressResponse,
    ProvisionRequest,
    ProvisionResponse,
    PurchaseFarmResponse,
    PurchaseUpgradeResponse,
    ReferralRequest,
    ReferralResponse,
    TapRequest,
    TapResponse,
    TaskCompletedResponse,
    TierEntry,
)
from tapfarm.progression.store import get_player, get_progress, provision_player, purchase_farm_level, purchase_upgrade
from tapfarm.progression.taps import tap
from tapfarm.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Progression"])


# ── Catalog ──


@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog():
    """Static upgrade, farm, daily reward and task tables."""
    return CatalogResponse(
        categories=[
            CategoryEntry(
                key=key,
                title=cat["title"],
                effect=cat["effect"],
                tiers=[TierEntry(**t) for t in cat["tiers"]],
            )
            for key, cat in catalog.UPGRADE_CATEGORIES.items()
        ],
        farm_levels=[FarmLevelEntry(**f) for f in catalog.FARM_LEVELS],
        daily_rewards=catalog.DAILY_REWARDS,
        tasks=[CatalogTaskEntry(**t) for t in catalog.TASKS],
    )


# ── Players ──


@router.post("/players", response_model=ProvisionResponse)
async def provision(body: ProvisionRequest, db: AsyncSession = Depends(get_session)):
    """Create a player record on first contact (idempotent)."""
    player, created = await provision_player(db, body.player_id, body.username)
    return ProvisionResponse(player_id=player.id, created=created)


@router.get("/players/{player_id}/progress", response_model=ProgressResponse)
async def progress(player_id: int, db: AsyncSession = Depends(get_session)):
    """Settle income and energy, then return the full progress snapshot."""
    return ProgressResponse(**await get_progress(db, player_id))


@router.post("/players/{player_id}/tap", response_model=TapResponse)
async def tap_batch(player_id: int, body: TapRequest, db: AsyncSession = Depends(get_session)):
    return TapResponse(**await tap(db, player_id, body.taps, request_id=body.request_id))


@router.post("/players/{player_id}/upgrades/{category}", response_model=PurchaseUpgradeResponse)
async def buy_upgrade(
    player_id: int,
    category: str,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
):
    """Buy the next tier of an upgrade category."""
    return PurchaseUpgradeResponse(**await purchase_upgrade(db, player_id, category, redis=redis))


@router.post("/players/{player_id}/farm", response_model=PurchaseFarmResponse)
async def buy_farm_level(
    player_id: int,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
):
    """Raise the farm level."""
    return PurchaseFarmResponse(**await purchase_farm_level(db, player_id, redis=redis))


# ── Rewards ──


@router.post("/players/{player_id}/daily", response_model=CollectDailyResponse)
async def collect_daily_reward(
    player_id: int,
    body: CollectDailyRequest,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
):
    """Collect today's streak reward."""
    return CollectDailyResponse(**await collect_daily(db, player_id, body.day, redis=redis))


@router.post("/players/{player_id}/tasks/{task_id}/collect", response_model=CollectTaskResponse)
async def collect_task_reward(
    player_id: int,
    task_id: str,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
):
    """Collect the reward of a completed task."""
    return CollectTaskResponse(**await collect_task(db, player_id, task_id, redis=redis))


@router.post("/players/{player_id}/tasks/{task_id}/complete", response_model=TaskCompletedResponse)
async def complete_task(player_id: int, task_id: str, db: AsyncSession = Depends(get_session)):
    """Completion hook for the task-assignment service."""
    marked = await mark_task_completed(db, player_id, task_id)
    return TaskCompletedResponse(task_id=task_id, marked=marked)


# ── Referrals ──


@router.post("/players/{player_id}/referral", response_model=ReferralResponse)
async def referral(
    player_id: int,
    body: ReferralRequest,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
):
    """Register who invited this player."""
    return ReferralResponse(**await register_referral(db, player_id, body.referrer_id, redis=redis))


@router.get("/players/{player_id}/referrals", response_model=FriendsResponse)
async def friends(player_id: int, db: AsyncSession = Depends(get_session)):
    """Players invited by this player."""
    if await get_player(db, player_id) is None:
        raise UnknownUser(player_id)
    referred = await list_referrals(db, player_id)
    return FriendsResponse(
        friends=[FriendEntry(player_id=p.id, username=p.username, joined_at=p.created_at) for p in referred],
        total=len(referred),
    )


# ── Ledger ──


@router.get("/players/{player_id}/ledger", response_model=LedgerResponse)
async def ledger(
    player_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_session),
):
    """Recent balance changes, newest first."""
    if await get_player(db, player_id) is None:
        raise UnknownUser(player_id)
    entries = await get_history(db, player_id, limit=limit)
    return LedgerResponse(
        entries=[
            LedgerEntry(
                amount=e.amount,
                balance_after=e.balance_after,
                source=e.source,
                source_id=e.source_id,
                created_at=e.created_at,
            )
            for e in entries
        ]
    )
