from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import WeeklyStat
from studybot.utils.dt import to_db


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"No atomic upsert for dialect {dialect!r}")


async def get_weekly_stat(session: AsyncSession, *, user_id: int, week_start: date) -> WeeklyStat | None:
    res = await session.execute(
        select(WeeklyStat)
        .where(WeeklyStat.user_id == user_id, WeeklyStat.week_start == week_start)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def increment_minutes(
    session: AsyncSession,
    *,
    user_id: int,
    week_start: date,
    minutes: int,
    now: datetime,
) -> WeeklyStat:
    """
    INSERT ... ON CONFLICT (user_id, week_start) DO UPDATE minutes = minutes + :add.

    One statement, so concurrent writers never lose an increment. The row
    stays write-locked until the surrounding transaction ends, which lets the
    caller recompute points from the returned total safely.
    """
    insert = _insert_for(session)
    stmt = insert(WeeklyStat).values(
        user_id=user_id,
        week_start=week_start,
        minutes=int(minutes),
        points=0,
        tier="base",
        computed_at=to_db(now),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "week_start"],
        set_={
            "minutes": WeeklyStat.minutes + int(minutes),
            "computed_at": to_db(now),
        },
    )
    await session.execute(stmt)

    row = await get_weekly_stat(session, user_id=user_id, week_start=week_start)
    if row is None:
        raise RuntimeError(f"weekly_stats row missing after upsert user={user_id} week={week_start}")
    return row


async def set_score(
    session: AsyncSession,
    *,
    stat_id: int,
    points: int,
    tier: str,
) -> None:
    await session.execute(
        update(WeeklyStat)
        .where(WeeklyStat.id == stat_id)
        .values(points=int(points), tier=tier)
        .execution_options(synchronize_session=False)
    )
