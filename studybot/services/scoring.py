# studybot/services/scoring.py
"""
Weekly points formula.

    base  = floor(min(minutes, cap) / 5)
    total = floor((base + hour bonuses) * min(1 + 0.05 * streak, 1.25))

Tier labels are derived from points and only cached on weekly_stats rows.
"""
from __future__ import annotations

import enum
import math

WEEKLY_CAP_MIN = 18 * 60
MINUTES_PER_POINT = 5

# (hours threshold, bonus) - every threshold reached applies
HOUR_BONUSES: tuple[tuple[int, int], ...] = (
    (6, 25),
    (8, 15),
    (10, 20),
    (12, 25),
)

STREAK_STEP = 0.05
STREAK_MAX_MULTIPLIER = 1.25


class ScoreTier(str, enum.Enum):
    BASE = "base"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


# highest first
TIER_BREAKPOINTS: tuple[tuple[int, ScoreTier], ...] = (
    (201, ScoreTier.PLATINUM),
    (151, ScoreTier.GOLD),
    (101, ScoreTier.SILVER),
    (51, ScoreTier.BRONZE),
)

TIER_PRIORITY: dict[str, int] = {
    ScoreTier.PLATINUM.value: 5,
    ScoreTier.GOLD.value: 4,
    ScoreTier.SILVER.value: 3,
    ScoreTier.BRONZE.value: 2,
    ScoreTier.BASE.value: 1,
}


def base_points(weekly_minutes: int, cap: int = WEEKLY_CAP_MIN) -> int:
    capped = min(max(int(weekly_minutes), 0), cap)
    return capped // MINUTES_PER_POINT


def hour_bonus(weekly_minutes: int) -> int:
    hours = weekly_minutes / 60
    return sum(bonus for threshold, bonus in HOUR_BONUSES if hours >= threshold)


def streak_multiplier(streak_weeks: int) -> float:
    if streak_weeks < 0:
        raise ValueError(f"streak_weeks must be >= 0, got {streak_weeks}")
    return min(1 + STREAK_STEP * streak_weeks, STREAK_MAX_MULTIPLIER)


def total_points(weekly_minutes: int, streak_weeks: int, cap: int = WEEKLY_CAP_MIN) -> int:
    points = base_points(weekly_minutes, cap) + hour_bonus(weekly_minutes)
    return math.floor(points * streak_multiplier(streak_weeks))


def tier_of(points: int) -> ScoreTier:
    for threshold, tier in TIER_BREAKPOINTS:
        if points >= threshold:
            return tier
    return ScoreTier.BASE


def tier_priority(tier: str) -> int:
    return TIER_PRIORITY.get(str(getattr(tier, "value", tier)), 1)


def weekly_goal_percent(weekly_minutes: int, goal_hours: int) -> int:
    if goal_hours <= 0:
        return 100
    return min(100, (max(weekly_minutes, 0) * 100) // (goal_hours * 60))
