# studybot/services/trophy_road.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.repo.sessions_repo import sum_closed_minutes
from studybot.utils.academic_window import AcademicWindow, resolve_academic_window

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrophyTier:
    name: str
    min_minutes: int
    max_minutes: int
    milestone_interval: int

    @property
    def milestone_count(self) -> int:
        return (self.max_minutes - self.min_minutes) // self.milestone_interval


# 0-30h every 2h, 30-70h every 4h, 70-130h every 6h, 130-200h every 8h
TROPHY_TIERS: tuple[TrophyTier, ...] = (
    TrophyTier("I", 0, 1800, 120),
    TrophyTier("II", 1800, 4200, 240),
    TrophyTier("III", 4200, 7800, 360),
    TrophyTier("IV", 7800, 12000, 480),
)

MAX_MINUTES = TROPHY_TIERS[-1].max_minutes


@dataclass(frozen=True, slots=True)
class MilestoneProgress:
    tier: str
    tier_start_minutes: int
    next_tier_minutes: int | None
    current_milestone: int
    next_milestone_minutes: int
    progress_in_tier: int
    milestones_in_tier: int
    milestone_index_in_tier: int


def milestone_progress(total_minutes: int) -> MilestoneProgress:
    """
    Position on the trophy road for `total_minutes` (clamped to 0..12000).

    Example, 2400 min: tier II, 600 min into it, 2 milestones done there,
    17 overall (15 from tier I), next milestone at 1800 + 3 * 240 = 2520.
    """
    minutes = min(max(int(total_minutes), 0), MAX_MINUTES)

    prior = 0
    tier = TROPHY_TIERS[-1]
    for t in TROPHY_TIERS:
        if minutes < t.max_minutes or t is TROPHY_TIERS[-1]:
            tier = t
            break
        prior += t.milestone_count

    progress_in_tier = minutes - tier.min_minutes
    done_in_tier = progress_in_tier // tier.milestone_interval
    next_milestone = tier.min_minutes + (done_in_tier + 1) * tier.milestone_interval

    return MilestoneProgress(
        tier=tier.name,
        tier_start_minutes=tier.min_minutes,
        next_tier_minutes=None if tier is TROPHY_TIERS[-1] else tier.max_minutes,
        current_milestone=prior + done_in_tier,
        next_milestone_minutes=min(next_milestone, MAX_MINUTES),
        progress_in_tier=progress_in_tier,
        milestones_in_tier=tier.milestone_count,
        milestone_index_in_tier=done_in_tier,
    )


def total_hours(total_minutes: int) -> float:
    # one decimal, rounded down
    return (int(total_minutes) * 10 // 60) / 10


@dataclass(frozen=True, slots=True)
class TrophyProgressView:
    user_id: int
    academic_window: AcademicWindow | None
    total_minutes: int
    total_hours: float
    milestone: MilestoneProgress

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "academic_window": self.academic_window.as_dict() if self.academic_window else None,
            "total_minutes": self.total_minutes,
            "total_hours": self.total_hours,
            **asdict(self.milestone),
        }


class TrophyRoadService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def current_window(self, now: datetime) -> AcademicWindow | None:
        return resolve_academic_window(now, self.settings.timezone, self.settings.academic_windows)

    async def progress(self, session: AsyncSession, *, user_id: int, now: datetime) -> TrophyProgressView:
        window = self.current_window(now)
        if window is None:
            # outside every window nothing accrues; skip the query
            return TrophyProgressView(
                user_id=user_id,
                academic_window=None,
                total_minutes=0,
                total_hours=0.0,
                milestone=milestone_progress(0),
            )

        lo, hi = window.bounds_utc(self.settings.timezone)
        minutes = await sum_closed_minutes(session, user_id=user_id, end_from=lo, end_to=hi)
        log.debug("trophy road user=%s window=%s..%s minutes=%s", user_id, window.start, window.end, minutes)

        return TrophyProgressView(
            user_id=user_id,
            academic_window=window,
            total_minutes=minutes,
            total_hours=total_hours(minutes),
            milestone=milestone_progress(minutes),
        )
