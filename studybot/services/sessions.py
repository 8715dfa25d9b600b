# studybot/services/sessions.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import StudySession
from studybot.database.repo.sessions_repo import (
    close_if_open,
    count_open_by_zone,
    create_session,
    find_open_session,
    get_session,
)
from studybot.database.repo.zones_repo import find_zone_by_id, list_active_zones
from studybot.database.tx import transactional
from studybot.services.errors import AggregationFailure, SessionNotFound, ZoneNotFound
from studybot.services.weekly_stats import WeeklyStatsService
from studybot.utils.dt import as_utc

log = logging.getLogger(__name__)


def duration_minutes(start_at: datetime, end_at: datetime) -> int:
    # round half up, never negative
    seconds = (as_utc(end_at) - as_utc(start_at)).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


@dataclass(frozen=True, slots=True)
class StartResult:
    session_id: int
    start_at: datetime


@dataclass(frozen=True, slots=True)
class StopResult:
    session_id: int
    duration_min: int
    end_at: datetime
    week_start: str
    minutes_this_week: int
    stopped_already: bool
    aggregation_pending: bool = False


@dataclass(frozen=True, slots=True)
class ZoneOccupancy:
    zone_id: int
    zone_name: str
    active_users: int
    is_active: bool


class SessionService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.weekly = WeeklyStatsService(settings)

    async def start(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        zone_id: int,
        now: datetime,
    ) -> StartResult:
        zone = await find_zone_by_id(session, zone_id)
        if zone is None:
            raise ZoneNotFound(f"zone {zone_id} not found")

        async with transactional(session):
            row = await create_session(session, user_id=user_id, zone_id=zone.id, start_at=now)

        log.info("Session started id=%s user=%s zone=%s", row.id, user_id, zone.id)
        return StartResult(session_id=row.id, start_at=as_utc(row.start_at))

    async def stop(self, session: AsyncSession, *, session_id: int, now: datetime) -> StopResult:
        row = await get_session(session, session_id)
        if row is None:
            raise SessionNotFound(f"session {session_id} not found")

        if row.is_open:
            end_at = max(as_utc(now), as_utc(row.start_at))
            duration = duration_minutes(row.start_at, end_at)

            async with transactional(session):
                closed_here = await close_if_open(
                    session,
                    session_id=row.id,
                    end_at=end_at,
                    duration_min=duration,
                )

            if closed_here:
                row = await get_session(session, session_id)
                return await self._after_close(session, row, now=now)

            # lost the race to a concurrent stop
            row = await get_session(session, session_id)

        return await self._already_stopped(session, row)

    async def _after_close(self, session: AsyncSession, row: StudySession, *, now: datetime) -> StopResult:
        session_id, user_id, duration = row.id, row.user_id, int(row.duration_min)
        end_at = as_utc(row.end_at)
        week_start = self.weekly.week_key_for(end_at)
        log.info("Session stopped id=%s user=%s duration=%s min", session_id, user_id, duration)

        try:
            total = await self.weekly.apply_closed_session(session, row, now=now)
        except AggregationFailure:
            # close is kept; reconcile job retries the increment
            log.exception("Weekly aggregation failed for session id=%s; close kept", session_id)
            return StopResult(
                session_id=session_id,
                duration_min=duration,
                end_at=end_at,
                week_start=week_start,
                minutes_this_week=0,
                stopped_already=False,
                aggregation_pending=True,
            )

        if total is None:
            # reconcile job got there first
            view = await self.weekly.weekly_stats_for(session, user_id=user_id, week_start=week_start)
            total = view.minutes

        return StopResult(
            session_id=session_id,
            duration_min=duration,
            end_at=end_at,
            week_start=week_start,
            minutes_this_week=total,
            stopped_already=False,
        )

    async def _already_stopped(self, session: AsyncSession, row: StudySession) -> StopResult:
        # read-only: stored values are returned as they are
        end_at = as_utc(row.end_at)
        week_start = self.weekly.week_key_for(end_at)
        view = await self.weekly.weekly_stats_for(session, user_id=row.user_id, week_start=week_start)

        return StopResult(
            session_id=row.id,
            duration_min=int(row.duration_min),
            end_at=end_at,
            week_start=week_start,
            minutes_this_week=view.minutes,
            stopped_already=True,
            aggregation_pending=row.aggregated_at is None,
        )

    async def active_session_for(self, session: AsyncSession, *, user_id: int) -> StudySession | None:
        return await find_open_session(session, user_id=user_id)

    async def occupancy(self, session: AsyncSession) -> list[ZoneOccupancy]:
        zones = await list_active_zones(session)
        counts = await count_open_by_zone(session)
        return [
            ZoneOccupancy(
                zone_id=z.id,
                zone_name=z.name,
                active_users=counts.get(z.id, 0),
                is_active=bool(z.is_active),
            )
            for z in zones
        ]
