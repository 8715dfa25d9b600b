# studybot/services/weekly_stats.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import StudySession
from studybot.database.repo.sessions_repo import claim_aggregation, list_pending_aggregation
from studybot.database.repo.users import find_user_by_id
from studybot.database.repo.weekly_stats_repo import get_weekly_stat, increment_minutes, set_score
from studybot.database.tx import savepoint, transactional
from studybot.services.errors import AggregationFailure
from studybot.services.scoring import ScoreTier, tier_of, total_points, weekly_goal_percent
from studybot.utils.dates import week_key
from studybot.utils.dt import as_utc

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WeeklyStatsView:
    user_id: int
    week_start: str
    minutes: int
    points: int
    tier: str
    goal_percent: int

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "week_start": self.week_start,
            "minutes": self.minutes,
            "points": self.points,
            "tier": self.tier,
            "goal_percent": self.goal_percent,
        }


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    scanned: int
    applied: int
    failed: int


class WeeklyStatsService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def week_key_for(self, instant: datetime) -> str:
        return week_key(instant, self.settings.timezone, self.settings.week_starts_on)

    async def apply_completed_session(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        week_start: str,
        minutes: int,
        now: datetime,
    ) -> int:
        """
        Adds `minutes` to the user's week (creating the row on first write) and
        recomputes points/tier from the new total. Returns the week's minutes.
        """
        ws = date.fromisoformat(week_start)

        async with transactional(session):
            row = await increment_minutes(
                session,
                user_id=user_id,
                week_start=ws,
                minutes=minutes,
                now=now,
            )

            user = await find_user_by_id(session, user_id)
            streak = int(user.streak_weeks or 0) if user else 0

            points = total_points(row.minutes, streak, self.settings.weekly_cap_min)
            tier = tier_of(points)
            await set_score(session, stat_id=row.id, points=points, tier=tier.value)

        log.info(
            "weekly stats user=%s week=%s +%s min -> %s min, %s pts (%s)",
            user_id, week_start, minutes, row.minutes, points, tier.value,
        )
        return int(row.minutes)

    async def apply_closed_session(
        self,
        session: AsyncSession,
        row: StudySession,
        *,
        now: datetime,
    ) -> int | None:
        """
        Counts a closed session exactly once: the aggregated_at claim and the
        increment commit or roll back together. Returns None if another caller
        already counted it.
        """
        if row.end_at is None or row.duration_min is None:
            raise ValueError(f"session {row.id} is still open")

        session_id, user_id, duration = row.id, row.user_id, int(row.duration_min)
        ws = self.week_key_for(as_utc(row.end_at))
        try:
            async with savepoint(session):
                if not await claim_aggregation(session, session_id=session_id, now=now):
                    return None
                return await self.apply_completed_session(
                    session,
                    user_id=user_id,
                    week_start=ws,
                    minutes=duration,
                    now=now,
                )
        except SQLAlchemyError as e:
            raise AggregationFailure(session_id) from e

    async def weekly_stats_for(self, session: AsyncSession, *, user_id: int, week_start: str) -> WeeklyStatsView:
        row = await get_weekly_stat(session, user_id=user_id, week_start=date.fromisoformat(week_start))
        if row is None:
            return WeeklyStatsView(
                user_id=user_id,
                week_start=week_start,
                minutes=0,
                points=0,
                tier=ScoreTier.BASE.value,
                goal_percent=0,
            )

        return WeeklyStatsView(
            user_id=user_id,
            week_start=week_start,
            minutes=int(row.minutes),
            points=int(row.points),
            tier=str(row.tier),
            goal_percent=weekly_goal_percent(int(row.minutes), self.settings.weekly_goal_hours),
        )

    async def reconcile_pending(self, session: AsyncSession, *, now: datetime, limit: int = 200) -> ReconcileResult:
        """
        Re-applies closed sessions whose weekly increment never landed
        (aggregation failed after the close was committed).
        """
        pending = await list_pending_aggregation(session, limit=limit)
        applied = 0
        failed = 0

        for row in pending:
            try:
                total = await self.apply_closed_session(session, row, now=now)
            except AggregationFailure as e:
                failed += 1
                log.exception("Reconcile failed for session id=%s", e.session_id)
                continue
            if total is not None:
                applied += 1

        if pending:
            log.info("Reconciled weekly stats: scanned=%s applied=%s failed=%s", len(pending), applied, failed)

        return ReconcileResult(scanned=len(pending), applied=applied, failed=failed)
