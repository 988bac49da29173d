"""Static game tables: upgrade tiers, farm levels, daily rewards, ranks, tasks.

These values MUST match the mini-app client, which renders them from
GET /api/v1/catalog. Tiers are 1-indexed: level 1 is the starting,
not-yet-purchased tier and level 10 is the last one.
"""

from __future__ import annotations

from tapfarm.progression.errors import UnknownCategory

MAX_UPGRADE_LEVEL = 10
MAX_FARM_LEVEL = 5
STREAK_DAYS = 7

# Category effects
EFFECT_PASSIVE_INCOME = "passive_income"  # tier profit = coins/hour added by that tier
EFFECT_TAP_PROFIT = "tap_profit"  # tier profit = coins per tap at that level
EFFECT_ENERGY_MAX = "energy_max"  # tier profit = energy cap at that level


def _tiers(costs: list[int], profits: list[int]) -> list[dict]:
    return [
        {"level": level, "cost": cost, "profit": profit}
        for level, (cost, profit) in enumerate(zip(costs, profits, strict=True), start=1)
    ]


# --- Boosts (tap screen) ---

MULTITAP_TIERS = _tiers(
    [1000, 2000, 4000, 8000, 16000, 24000, 48000, 72000, 104000, 178000],
    [1, 2, 4, 6, 8, 10, 12, 14, 16, 18],
)

TAP_INCREASE_TIERS = _tiers(
    [3000, 7000, 11000, 26000, 45000, 72000, 120000, 170000, 210000, 270000],
    [1000, 1500, 2000, 2500, 3000, 3500, 4000, 4500, 5000, 5500],
)

# --- Mine cards (passive income) ---

_MINE_BASE_COSTS = [0, 1000, 2500, 5000, 10000, 20000, 40000, 80000, 160000, 320000]
_MINE_BASE_PROFITS = [0, 100, 150, 250, 400, 650, 1000, 1600, 2500, 4000]

# category -> (title, price/profit factor)
_MINE_CARDS: dict[str, tuple[str, int]] = {
    "upgrade1": ("Seed Drill", 1),
    "upgrade2": ("Greenhouse", 2),
    "upgrade3": ("Irrigation", 3),
    "upgrade4": ("Tractor", 5),
    "upgrade5": ("Grain Silo", 8),
    "upgrade6": ("Windmill", 12),
    "upgrade7": ("Market Stall", 20),
    "upgrade8": ("Export Deal", 30),
}

UPGRADE_CATEGORIES: dict[str, dict] = {
    "multitap": {"title": "Multitap", "effect": EFFECT_TAP_PROFIT, "tiers": MULTITAP_TIERS},
    "tap_increase": {"title": "Tap Increase", "effect": EFFECT_ENERGY_MAX, "tiers": TAP_INCREASE_TIERS},
}
for _key, (_title, _factor) in _MINE_CARDS.items():
    UPGRADE_CATEGORIES[_key] = {
        "title": _title,
        "effect": EFFECT_PASSIVE_INCOME,
        "tiers": _tiers(
            [c * _factor for c in _MINE_BASE_COSTS],
            [p * _factor for p in _MINE_BASE_PROFITS],
        ),
    }

PASSIVE_CATEGORIES = tuple(k for k, v in UPGRADE_CATEGORIES.items() if v["effect"] == EFFECT_PASSIVE_INCOME)

# --- Farm levels: cost to reach the level and its income multiplier ---

FARM_LEVELS: list[dict] = [
    {"level": 0, "cost": 0, "multiplier_pct": 100},
    {"level": 1, "cost": 50_000, "multiplier_pct": 120},
    {"level": 2, "cost": 150_000, "multiplier_pct": 140},
    {"level": 3, "cost": 500_000, "multiplier_pct": 160},
    {"level": 4, "cost": 1_500_000, "multiplier_pct": 180},
    {"level": 5, "cost": 5_000_000, "multiplier_pct": 200},
]

# --- Daily streak rewards ---

DAILY_REWARDS: dict[int, int] = {
    1: 10_000,
    2: 15_000,
    3: 20_000,
    4: 25_000,
    5: 30_000,
    6: 35_000,
    7: 40_000,
}

# --- Ranks by balance ---

RANKS: list[dict] = [
    {"index": 0, "title": "Beginner", "min_balance": 0},
    {"index": 1, "title": "Intermediate", "min_balance": 5_000},
    {"index": 2, "title": "Advanced", "min_balance": 25_000},
    {"index": 3, "title": "Expert", "min_balance": 100_000},
    {"index": 4, "title": "Master", "min_balance": 1_000_000},
    {"index": 5, "title": "Grandmaster", "min_balance": 2_000_000},
    {"index": 6, "title": "Champion", "min_balance": 10_000_000},
    {"index": 7, "title": "Hero", "min_balance": 50_000_000},
    {"index": 8, "title": "Legend", "min_balance": 100_000_000},
    {"index": 9, "title": "Mythic", "min_balance": 1_000_000_000},
]

# --- One-off tasks ---
# min_referrals > 0: ready once the player has that many referrals.
# Otherwise readiness is reported by the task-assignment collaborator.

TASKS: list[dict] = [
    {"id": "join_channel", "title": "Join our Telegram channel", "reward": 5_000, "min_referrals": 0},
    {"id": "follow_x", "title": "Follow us on X", "reward": 5_000, "min_referrals": 0},
    {"id": "watch_video", "title": "Watch the farming guide", "reward": 10_000, "min_referrals": 0},
    {"id": "invite_1", "title": "Invite a friend", "reward": 10_000, "min_referrals": 1},
    {"id": "invite_3", "title": "Invite 3 friends", "reward": 50_000, "min_referrals": 3},
    {"id": "invite_10", "title": "Invite 10 friends", "reward": 250_000, "min_referrals": 10},
]
_TASKS_BY_ID = {t["id"]: t for t in TASKS}


def get_category(category: str) -> dict:
    """Look up an upgrade category. Raises UnknownCategory."""
    try:
        return UPGRADE_CATEGORIES[category]
    except KeyError:
        raise UnknownCategory(category) from None


def tier_at(category: str, level: int) -> dict:
    """Return the tier a category is at for ``level`` (1..10)."""
    return get_category(category)["tiers"][level - 1]


def next_tier(category: str, current_level: int) -> dict | None:
    """Return the tier bought next from ``current_level``, or None when maxed."""
    tiers = get_category(category)["tiers"]
    if current_level >= MAX_UPGRADE_LEVEL:
        return None
    return tiers[current_level]


def next_farm_tier(farm_level: int) -> dict | None:
    """Return the next farm level entry, or None when the farm is maxed."""
    if farm_level >= MAX_FARM_LEVEL:
        return None
    return FARM_LEVELS[farm_level + 1]


def base_income(upgrade_levels: dict[str, int]) -> int:
    """Hourly income of all owned passive-income tiers, before the farm multiplier."""
    total = 0
    for category in PASSIVE_CATEGORIES:
        level = upgrade_levels.get(category, 1)
        tiers = UPGRADE_CATEGORIES[category]["tiers"]
        total += sum(t["profit"] for t in tiers[1:level])
    return total


def compute_income_per_hour(upgrade_levels: dict[str, int], farm_level: int) -> int:
    """Catalog-derived income rate: owned tier profits scaled by the farm multiplier."""
    return base_income(upgrade_levels) * FARM_LEVELS[farm_level]["multiplier_pct"] // 100


def tap_profit(multitap_level: int) -> int:
    return tier_at("multitap", multitap_level)["profit"]


def energy_max_for(tap_increase_level: int) -> int:
    return tier_at("tap_increase", tap_increase_level)["profit"]


def daily_reward(day: int) -> int:
    return DAILY_REWARDS[day]


def get_task(task_id: str) -> dict | None:
    return _TASKS_BY_ID.get(task_id)


def compute_rank(balance: int) -> dict:
    """Compute rank info from a balance.

    ``progress_pct`` is the progress towards the next rank, 100 at the top rank.
    """
    current = RANKS[0]
    for rank in RANKS:
        if balance >= rank["min_balance"]:
            current = rank

    if current["index"] == len(RANKS) - 1:
        return {"index": current["index"], "title": current["title"], "next_title": None, "progress_pct": 100.0}

    nxt = RANKS[current["index"] + 1]
    span = nxt["min_balance"] - current["min_balance"]
    progress = (balance - current["min_balance"]) * 100 / span
    return {
        "index": current["index"],
        "title": current["title"],
        "next_title": nxt["title"],
        "progress_pct": round(min(progress, 100.0), 2),
    }
