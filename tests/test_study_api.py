from datetime import datetime, timedelta, timezone

import pytest

from studybot.services import study_api
from tests.factories import make_user, make_zone

UTC = timezone.utc
T0 = datetime(2025, 2, 5, 17, 0, tzinfo=UTC)


def test_start_and_stop_shape(settings, run_db) -> None:
    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        started = await study_api.start_session(session, settings, user_id=user.id, zone_id=str(zone.id), now=T0)
        stopped = await study_api.stop_session(
            session, settings, session_id=started.data["session_id"], now=T0 + timedelta(minutes=45)
        )
        return started, stopped

    started, stopped = run_db(scenario)
    assert started.ok
    assert started.to_dict() == {"session_id": started.data["session_id"], "start_at": "2025-02-05T17:00:00Z"}

    assert stopped.ok
    body = stopped.to_dict()
    assert body["duration_min"] == 45
    assert body["end_at"] == "2025-02-05T17:45:00Z"
    assert body["minutes_this_week"] == 45
    assert body["week_start"] == "2025-02-03"
    assert body["stopped_already"] is False
    assert body["aggregation_pending"] is False


@pytest.mark.parametrize(
    "user_id, zone_id, code",
    [
        (None, 1, "missing_fields"),
        (1, None, "missing_fields"),
        (1, "  ", "missing_fields"),
        (1, "library", "zone_not_found"),
        (1, 999, "zone_not_found"),
    ],
)
def test_start_errors(settings, run_db, user_id, zone_id, code) -> None:
    async def scenario(session):
        await make_user(session, telegram_id=1)
        return await study_api.start_session(session, settings, user_id=user_id, zone_id=zone_id, now=T0)

    res = run_db(scenario)
    assert res.ok is False
    assert res.to_dict() == {"error": code}


@pytest.mark.parametrize(
    "session_id, code",
    [
        (None, "missing_session_id"),
        ("", "missing_session_id"),
        ("abc", "session_not_found"),
        (777, "session_not_found"),
    ],
)
def test_stop_errors(settings, run_db, session_id, code) -> None:
    async def scenario(session):
        return await study_api.stop_session(session, settings, session_id=session_id, now=T0)

    assert run_db(scenario).error == code


def test_weekly_stats_default_zero(settings, run_db) -> None:
    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        return user.id, await study_api.get_weekly_stats(session, settings, user_id=user.id, at=T0)

    user_id, res = run_db(scenario)
    assert res.to_dict() == {
        "user_id": user_id,
        "week_start": "2025-02-03",
        "minutes": 0,
        "points": 0,
        "tier": "base",
        "goal_percent": 0,
    }


def test_weekly_stats_requires_user(settings, run_db) -> None:
    async def scenario(session):
        return await study_api.get_weekly_stats(session, settings, user_id=None, at=T0)

    assert run_db(scenario).error == "missing_user_id"


def test_leaderboard_week_and_scope_handling(settings, run_db) -> None:
    async def scenario(session):
        bad_week = await study_api.get_leaderboard(session, settings, now=T0, week_start="not-a-week")
        explicit = await study_api.get_leaderboard(session, settings, now=T0, week_start="2025-01-27", scope="pledge")
        bad_scope = await study_api.get_leaderboard(session, settings, now=T0, scope="alumni")
        return bad_week, explicit, bad_scope

    bad_week, explicit, bad_scope = run_db(scenario)
    assert bad_week.to_dict() == {"week_start": "2025-02-03", "scope": "overall", "entries": []}
    assert explicit.data["week_start"] == "2025-01-27"
    assert explicit.data["scope"] == "pledge"
    assert bad_scope.to_dict() == {"error": "invalid_scope"}


def test_trophy_progress_outside_window(settings, run_db) -> None:
    summer = datetime(2025, 7, 1, 18, 0, tzinfo=UTC)

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        return await study_api.get_trophy_progress(session, settings, user_id=user.id, now=summer)

    body = run_db(scenario).to_dict()
    assert body["academic_window"] is None
    assert body["total_minutes"] == 0
    assert body["total_hours"] == 0.0
    assert body["tier"] == "I"
    assert body["next_milestone_minutes"] == 120


def test_occupancy(settings, run_db) -> None:
    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        await study_api.start_session(session, settings, user_id=user.id, zone_id=zone.id, now=T0)
        return await study_api.get_occupancy(session, settings, now=T0 + timedelta(minutes=1))

    body = run_db(scenario).to_dict()
    assert body["timestamp"] == "2025-02-05T17:01:00Z"
    assert body["total_active_sessions"] == 1
    assert body["zones"][0]["zone_name"] == "Main Library"
    assert body["zones"][0]["active_users"] == 1


def test_config(settings) -> None:
    body = study_api.get_config(settings).to_dict()
    assert body == {
        "timezone": "America/Phoenix",
        "week_starts_on": "monday",
        "weekly_goal_hours": 6,
        "weekly_cap_minutes": 1080,
        "academic_windows": [
            {"start": "2025-01-15", "end": "2025-05-16"},
            {"start": "2025-08-25", "end": "2025-12-10"},
        ],
    }
