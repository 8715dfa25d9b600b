# studybot/services/study_api.py
"""
Operations offered to the request layer (chat handlers, scripts).

Every call returns an ApiResult; domain failures come back as error codes
(missing_fields, zone_not_found, session_not_found, invalid_scope, ...)
instead of exceptions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.services.errors import StudyError, ValidationError
from studybot.services.leaderboard import LeaderboardScope, LeaderboardService
from studybot.services.sessions import SessionService
from studybot.services.trophy_road import TrophyRoadService
from studybot.services.weekly_stats import WeeklyStatsService
from studybot.utils.dates import parse_week_key, week_key
from studybot.utils.dt import as_utc

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiResult:
    ok: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def success(cls, **data: Any) -> "ApiResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ApiResult":
        return cls(ok=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"error": self.error}
        return dict(self.data)


def _to_id(raw: int | str | None, missing_code: str) -> int | None:
    """
    None/blank -> ValidationError(missing_code); non-numeric -> None
    (an id that cannot resolve to any row).
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(missing_code)
    if isinstance(raw, int):
        return raw
    text = raw.strip()
    return int(text) if text.isdigit() else None


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


async def start_session(
    session: AsyncSession,
    settings: Settings,
    *,
    user_id: int | None,
    zone_id: int | str | None,
    now: datetime,
) -> ApiResult:
    try:
        if user_id is None:
            raise ValidationError("missing_fields")
        zid = _to_id(zone_id, "missing_fields")
        if zid is None:
            return ApiResult.failure("zone_not_found")

        res = await SessionService(settings).start(session, user_id=user_id, zone_id=zid, now=now)
    except StudyError as e:
        log.info("start_session rejected user=%s zone=%r: %s", user_id, zone_id, e.code)
        return ApiResult.failure(e.code)

    return ApiResult.success(session_id=res.session_id, start_at=_iso(res.start_at))


async def stop_session(
    session: AsyncSession,
    settings: Settings,
    *,
    session_id: int | str | None,
    now: datetime,
) -> ApiResult:
    try:
        sid = _to_id(session_id, "missing_session_id")
        if sid is None:
            return ApiResult.failure("session_not_found")

        res = await SessionService(settings).stop(session, session_id=sid, now=now)
    except StudyError as e:
        log.info("stop_session rejected session=%r: %s", session_id, e.code)
        return ApiResult.failure(e.code)

    return ApiResult.success(
        session_id=res.session_id,
        duration_min=res.duration_min,
        end_at=_iso(res.end_at),
        minutes_this_week=res.minutes_this_week,
        week_start=res.week_start,
        stopped_already=res.stopped_already,
        aggregation_pending=res.aggregation_pending,
    )


async def get_weekly_stats(
    session: AsyncSession,
    settings: Settings,
    *,
    user_id: int | None,
    at: datetime,
) -> ApiResult:
    if user_id is None:
        return ApiResult.failure("missing_user_id")

    service = WeeklyStatsService(settings)
    view = await service.weekly_stats_for(session, user_id=user_id, week_start=service.week_key_for(at))
    return ApiResult.success(**view.to_dict())


async def get_leaderboard(
    session: AsyncSession,
    settings: Settings,
    *,
    now: datetime,
    week_start: str | None = None,
    scope: str | None = None,
) -> ApiResult:
    try:
        scope_value = LeaderboardScope.parse(scope)
    except ValidationError as e:
        return ApiResult.failure(e.code)

    # malformed or missing week -> current week
    parsed = parse_week_key(week_start)
    key = parsed.isoformat() if parsed else week_key(now, settings.timezone, settings.week_starts_on)

    view = await LeaderboardService(settings).rank(session, week_start=key, scope=scope_value)
    return ApiResult.success(**view.to_dict())


async def get_trophy_progress(
    session: AsyncSession,
    settings: Settings,
    *,
    user_id: int | None,
    now: datetime,
) -> ApiResult:
    if user_id is None:
        return ApiResult.failure("missing_user_id")

    view = await TrophyRoadService(settings).progress(session, user_id=user_id, now=now)
    return ApiResult.success(**view.to_dict())


async def get_occupancy(session: AsyncSession, settings: Settings, *, now: datetime) -> ApiResult:
    zones = await SessionService(settings).occupancy(session)
    return ApiResult.success(
        timestamp=_iso(now),
        zones=[
            {
                "zone_id": z.zone_id,
                "zone_name": z.zone_name,
                "active_users": z.active_users,
                "is_active": z.is_active,
            }
            for z in zones
        ],
        total_active_sessions=sum(z.active_users for z in zones),
    )


def get_config(settings: Settings) -> ApiResult:
    return ApiResult.success(
        timezone=settings.timezone,
        week_starts_on=settings.week_starts_on.name.lower(),
        weekly_goal_hours=settings.weekly_goal_hours,
        weekly_cap_minutes=settings.weekly_cap_min,
        academic_windows=[w.as_dict() for w in settings.academic_windows],
    )


__all__ = [
    "ApiResult",
    "get_config",
    "get_leaderboard",
    "get_occupancy",
    "get_trophy_progress",
    "get_weekly_stats",
    "start_session",
    "stop_session",
]
