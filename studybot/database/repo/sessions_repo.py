from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import SessionSource, StudySession
from studybot.utils.dt import to_db


async def get_session(session: AsyncSession, session_id: int) -> StudySession | None:
    res = await session.execute(
        select(StudySession)
        .where(StudySession.id == session_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def create_session(
    session: AsyncSession,
    *,
    user_id: int,
    zone_id: int,
    start_at: datetime,
    source: SessionSource = SessionSource.MANUAL,
) -> StudySession:
    row = StudySession(
        user_id=user_id,
        zone_id=zone_id,
        start_at=to_db(start_at),
        source=source,
    )
    session.add(row)
    await session.flush()  # row.id available now
    return row


async def close_if_open(
    session: AsyncSession,
    *,
    session_id: int,
    end_at: datetime,
    duration_min: int,
) -> bool:
    """
    Single conditional write: Open -> Closed.
    Returns True only for the caller whose update hit the row.
    """
    res = await session.execute(
        update(StudySession)
        .where(StudySession.id == session_id, StudySession.end_at.is_(None))
        .values(end_at=to_db(end_at), duration_min=int(duration_min))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def claim_aggregation(session: AsyncSession, *, session_id: int, now: datetime) -> bool:
    """
    Marks a closed session as counted in weekly_stats. Must run in the same
    transaction as the weekly increment; True means this caller owns it.
    """
    res = await session.execute(
        update(StudySession)
        .where(
            StudySession.id == session_id,
            StudySession.end_at.is_not(None),
            StudySession.aggregated_at.is_(None),
        )
        .values(aggregated_at=to_db(now))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def find_open_session(session: AsyncSession, *, user_id: int) -> StudySession | None:
    res = await session.execute(
        select(StudySession)
        .where(StudySession.user_id == user_id, StudySession.end_at.is_(None))
        .order_by(StudySession.start_at.desc(), StudySession.id.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def list_pending_aggregation(session: AsyncSession, *, limit: int = 200) -> list[StudySession]:
    res = await session.execute(
        select(StudySession)
        .where(StudySession.end_at.is_not(None), StudySession.aggregated_at.is_(None))
        .order_by(StudySession.end_at.asc(), StudySession.id.asc())
        .limit(limit)
    )
    return list(res.scalars().all())


async def sum_closed_minutes(
    session: AsyncSession,
    *,
    user_id: int,
    end_from: datetime,
    end_to: datetime,
) -> int:
    res = await session.execute(
        select(func.coalesce(func.sum(StudySession.duration_min), 0)).where(
            StudySession.user_id == user_id,
            StudySession.end_at.is_not(None),
            StudySession.end_at >= to_db(end_from),
            StudySession.end_at <= to_db(end_to),
        )
    )
    return int(res.scalar_one() or 0)


async def count_open_by_zone(session: AsyncSession) -> dict[int, int]:
    res = await session.execute(
        select(StudySession.zone_id, func.count(StudySession.id))
        .where(StudySession.end_at.is_(None))
        .group_by(StudySession.zone_id)
    )
    return {int(zone_id): int(n) for zone_id, n in res.all()}
