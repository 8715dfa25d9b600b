import asyncio
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from studybot.database.models import WeeklyStat
from studybot.database.repo.sessions_repo import get_session
from studybot.database.repo.weekly_stats_repo import get_weekly_stat
from studybot.services import study_api
from studybot.services import weekly_stats as weekly_stats_module
from studybot.services.errors import SessionNotFound, ZoneNotFound
from studybot.services.scoring import tier_of, total_points
from studybot.services.sessions import SessionService, duration_minutes
from studybot.services.weekly_stats import WeeklyStatsService
from tests.factories import make_user, make_zone

UTC = timezone.utc
PHX = ZoneInfo("America/Phoenix")
T0 = datetime(2025, 2, 5, 17, 0, tzinfo=UTC)  # Wednesday 10:00 Phoenix


def test_duration_rounds_half_up_and_never_negative() -> None:
    assert duration_minutes(T0, T0 + timedelta(minutes=50, seconds=29)) == 50
    assert duration_minutes(T0, T0 + timedelta(minutes=50, seconds=30)) == 51
    assert duration_minutes(T0, T0 + timedelta(seconds=29)) == 0
    assert duration_minutes(T0, T0 - timedelta(minutes=5)) == 0


def test_start_unknown_zone(settings, run_db) -> None:
    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        await SessionService(settings).start(session, user_id=user.id, zone_id=999, now=T0)

    with pytest.raises(ZoneNotFound):
        run_db(scenario)


def test_stop_unknown_session(settings, run_db) -> None:
    async def scenario(session):
        await SessionService(settings).stop(session, session_id=12345, now=T0)

    with pytest.raises(SessionNotFound):
        run_db(scenario)


def test_start_then_stop_records_duration_and_week(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1, username="alex")
        zone = await make_zone(session)

        started = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0)
        opened = await get_session(session, started.session_id)
        assert opened.is_open
        assert opened.duration_min is None
        assert opened.source.value == "manual"

        stopped = await service.stop(session, session_id=started.session_id, now=T0 + timedelta(minutes=50, seconds=30))
        closed = await get_session(session, started.session_id)
        return started, stopped, closed

    started, stopped, closed = run_db(scenario)
    assert started.start_at == T0
    assert stopped.duration_min == 51
    assert stopped.end_at == T0 + timedelta(minutes=50, seconds=30)
    assert stopped.week_start == "2025-02-03"
    assert stopped.minutes_this_week == 51
    assert stopped.stopped_already is False
    assert stopped.aggregation_pending is False
    assert closed.duration_min == 51
    assert closed.aggregated_at is not None


def test_stop_is_idempotent(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        started = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0)

        first = await service.stop(session, session_id=started.session_id, now=T0 + timedelta(minutes=30))
        second = await service.stop(session, session_id=started.session_id, now=T0 + timedelta(hours=3))
        third = await service.stop(session, session_id=started.session_id, now=T0 + timedelta(days=2))

        stats = (await session.execute(select(WeeklyStat).where(WeeklyStat.user_id == user.id))).scalars().all()
        return first, second, third, stats

    first, second, third, stats = run_db(scenario)
    assert first.stopped_already is False
    assert second.stopped_already is True
    assert third.stopped_already is True
    for again in (second, third):
        assert again.duration_min == first.duration_min == 30
        assert again.end_at == first.end_at
        assert again.minutes_this_week == 30

    assert len(stats) == 1
    assert stats[0].minutes == 30


def test_stop_before_start_clamps_to_zero(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        started = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0)
        return await service.stop(session, session_id=started.session_id, now=T0 - timedelta(minutes=10))

    res = run_db(scenario)
    assert res.duration_min == 0
    assert res.end_at == T0


def test_weekly_minutes_accumulate_into_one_row_with_points(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1, streak_weeks=2)
        zone = await make_zone(session)

        totals = []
        for day in range(2):
            start = T0 + timedelta(days=day)
            s = await service.start(session, user_id=user.id, zone_id=zone.id, now=start)
            res = await service.stop(session, session_id=s.session_id, now=start + timedelta(minutes=200))
            totals.append(res.minutes_this_week)

        n = (await session.execute(select(func.count(WeeklyStat.id)))).scalar_one()
        view = await WeeklyStatsService(settings).weekly_stats_for(session, user_id=user.id, week_start="2025-02-03")
        return totals, n, view

    totals, n, view = run_db(scenario)
    assert totals == [200, 400]
    assert n == 1
    assert view.minutes == 400
    # (80 + 25) * 1.1
    assert view.points == 115
    assert view.tier == "silver"
    assert view.goal_percent == 100


def test_session_counts_in_week_of_its_end(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        start = datetime(2025, 2, 9, 23, 30, tzinfo=PHX)  # Sunday night
        s = await service.start(session, user_id=user.id, zone_id=zone.id, now=start)
        return await service.stop(session, session_id=s.session_id, now=start + timedelta(hours=1))

    res = run_db(scenario)
    assert res.week_start == "2025-02-10"
    assert res.minutes_this_week == 60


def test_aggregation_failure_keeps_close_and_reconcile_applies_once(settings, run_db, monkeypatch) -> None:
    service = SessionService(settings)
    real_increment = weekly_stats_module.increment_minutes

    async def broken_increment(*args, **kwargs):
        raise SQLAlchemyError("weekly_stats unavailable")

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        s = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0)

        monkeypatch.setattr(weekly_stats_module, "increment_minutes", broken_increment)
        degraded = await service.stop(session, session_id=s.session_id, now=T0 + timedelta(minutes=40))
        again = await service.stop(session, session_id=s.session_id, now=T0 + timedelta(minutes=90))

        row = await get_session(session, s.session_id)
        stats_before = (await session.execute(select(func.count(WeeklyStat.id)))).scalar_one()

        monkeypatch.setattr(weekly_stats_module, "increment_minutes", real_increment)
        weekly = WeeklyStatsService(settings)
        first_sweep = await weekly.reconcile_pending(session, now=T0 + timedelta(hours=1))
        second_sweep = await weekly.reconcile_pending(session, now=T0 + timedelta(hours=2))
        view = await weekly.weekly_stats_for(session, user_id=user.id, week_start="2025-02-03")

        return degraded, again, row, stats_before, first_sweep, second_sweep, view

    degraded, again, row, stats_before, first_sweep, second_sweep, view = run_db(scenario)

    assert degraded.duration_min == 40
    assert degraded.minutes_this_week == 0
    assert degraded.aggregation_pending is True
    assert again.stopped_already is True
    assert again.duration_min == 40
    assert again.aggregation_pending is True

    assert row.end_at is not None
    assert row.duration_min == 40
    assert stats_before == 0

    assert (first_sweep.scanned, first_sweep.applied, first_sweep.failed) == (1, 1, 0)
    assert second_sweep.scanned == 0
    assert view.minutes == 40


def test_closed_session_is_aggregated_once(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        user = await make_user(session, telegram_id=1)
        zone = await make_zone(session)
        s = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0)
        await service.stop(session, session_id=s.session_id, now=T0 + timedelta(minutes=25))

        row = await get_session(session, s.session_id)
        replay = await WeeklyStatsService(settings).apply_closed_session(session, row, now=T0 + timedelta(hours=1))
        total = (await session.execute(select(WeeklyStat.minutes).where(WeeklyStat.user_id == user.id))).scalar_one()
        return replay, total

    replay, total = run_db(scenario)
    assert replay is None
    assert total == 25


def test_active_session_and_occupancy(settings, run_db) -> None:
    service = SessionService(settings)

    async def scenario(session):
        alex = await make_user(session, telegram_id=1)
        sam = await make_user(session, telegram_id=2)
        library = await make_zone(session, "Main Library")
        union = await make_zone(session, "Student Union")
        await make_zone(session, "Closed Wing", is_active=False)

        a = await service.start(session, user_id=alex.id, zone_id=library.id, now=T0)
        b = await service.start(session, user_id=sam.id, zone_id=library.id, now=T0)
        await service.stop(session, session_id=b.session_id, now=T0 + timedelta(minutes=5))
        await service.start(session, user_id=sam.id, zone_id=union.id, now=T0 + timedelta(minutes=10))

        active = await service.active_session_for(session, user_id=alex.id)
        occupancy = await service.occupancy(session)
        return a.session_id, active.id, occupancy

    a_id, active_id, occupancy = run_db(scenario)
    assert active_id == a_id
    assert [(z.zone_name, z.active_users) for z in occupancy] == [("Main Library", 1), ("Student Union", 1)]


def test_week_key_uses_configured_week_start(settings) -> None:
    weekly = WeeklyStatsService(settings)
    assert weekly.week_key_for(T0) == "2025-02-03"
    assert date.fromisoformat(weekly.week_key_for(T0)).weekday() == 0


async def _seed_open_sessions(db, settings, *, count: int, streak_weeks: int = 0):
    service = SessionService(settings)
    async with db.session() as session:
        user = await make_user(session, telegram_id=1, streak_weeks=streak_weeks)
        zone = await make_zone(session)
        ids = []
        for i in range(count):
            started = await service.start(session, user_id=user.id, zone_id=zone.id, now=T0 + timedelta(minutes=i))
            ids.append(started.session_id)
        await session.commit()
        return user.id, ids


async def _weekly_row(db, *, user_id: int):
    async with db.session() as session:
        return await get_weekly_stat(session, user_id=user_id, week_start=date(2025, 2, 3))


def test_concurrent_stops_of_one_session_close_it_once(settings, run_with_db) -> None:
    async def stop_in_own_session(db, session_id):
        async with db.session() as session:
            res = await study_api.stop_session(session, settings, session_id=session_id, now=T0 + timedelta(minutes=30))
            await session.commit()
            return res

    async def scenario(db):
        user_id, (sid,) = await _seed_open_sessions(db, settings, count=1)
        results = await asyncio.gather(*(stop_in_own_session(db, sid) for _ in range(3)))
        return results, await _weekly_row(db, user_id=user_id)

    results, stat = run_with_db(scenario)

    assert all(r.ok for r in results)
    assert sorted(r.data["stopped_already"] for r in results) == [False, True, True]
    assert {r.data["duration_min"] for r in results} == {30}
    assert {r.data["end_at"] for r in results} == {"2025-02-05T17:30:00Z"}
    assert stat.minutes == 30


def test_concurrent_stops_of_different_sessions_all_count(settings, run_with_db) -> None:
    async def stop_in_own_session(db, session_id):
        async with db.session() as session:
            res = await study_api.stop_session(session, settings, session_id=session_id, now=T0 + timedelta(minutes=40))
            await session.commit()
            return res

    async def scenario(db):
        user_id, ids = await _seed_open_sessions(db, settings, count=2)
        results = await asyncio.gather(*(stop_in_own_session(db, sid) for sid in ids))
        return results, await _weekly_row(db, user_id=user_id)

    results, stat = run_with_db(scenario)

    assert [r.ok for r in results] == [True, True]
    assert [r.data["stopped_already"] for r in results] == [False, False]
    # started at T0 and T0+1m
    assert sorted(r.data["duration_min"] for r in results) == [39, 40]
    assert max(r.data["minutes_this_week"] for r in results) == 79
    assert stat.minutes == 79


def test_concurrent_weekly_increments_are_not_lost(settings, run_with_db) -> None:
    weekly = WeeklyStatsService(settings)
    amounts = [10, 20, 30, 40, 50, 60]

    async def add_in_own_session(db, user_id, minutes):
        async with db.session() as session:
            total = await weekly.apply_completed_session(
                session,
                user_id=user_id,
                week_start="2025-02-03",
                minutes=minutes,
                now=T0,
            )
            await session.commit()
            return total

    async def scenario(db):
        user_id, _ = await _seed_open_sessions(db, settings, count=0, streak_weeks=1)
        totals = await asyncio.gather(*(add_in_own_session(db, user_id, m) for m in amounts))
        return totals, await _weekly_row(db, user_id=user_id)

    totals, stat = run_with_db(scenario)

    assert stat.minutes == sum(amounts)
    # each writer saw its own increment applied on top of the others
    assert sorted(totals)[-1] == sum(amounts)
    assert len(set(totals)) == len(amounts)
    assert stat.points == total_points(sum(amounts), 1)
    assert stat.tier == tier_of(stat.points).value
