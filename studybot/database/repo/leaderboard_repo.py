from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import case, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import User, UserRole, WeeklyStat
from studybot.services.scoring import TIER_PRIORITY


# ------------------------
# Shared row DTO
# ------------------------

@dataclass(frozen=True, slots=True)
class LeaderRow:
    user_id: int
    telegram_id: int
    points: int
    tier: str
    minutes: int
    computed_at: datetime
    role: UserRole
    username: str | None
    first_name: str | None
    last_name: str | None


def _tier_priority_expr():
    return case(
        *[(WeeklyStat.tier == tier, prio) for tier, prio in TIER_PRIORITY.items()],
        else_=1,
    )


async def get_top_week(
    session: AsyncSession,
    week_start: date,
    *,
    role: UserRole | None = None,
    limit: int = 50,
) -> list[LeaderRow]:
    """
    Rows for one week, best first:
    points desc, tier priority desc, computed_at asc (earlier wins), user_id asc.
    """
    q = (
        select(
            WeeklyStat.user_id,
            WeeklyStat.points,
            WeeklyStat.tier,
            WeeklyStat.minutes,
            WeeklyStat.computed_at,
            User.telegram_id,
            User.role,
            User.username,
            User.first_name,
            User.last_name,
        )
        .join(User, User.id == WeeklyStat.user_id)
        .where(WeeklyStat.week_start == week_start)
    )
    if role is not None:
        q = q.where(User.role == role)

    q = q.order_by(
        desc(WeeklyStat.points),
        desc(_tier_priority_expr()),
        WeeklyStat.computed_at.asc(),
        WeeklyStat.user_id.asc(),
    ).limit(limit)

    res = await session.execute(q)
    rows: list[LeaderRow] = []

    for user_id, points, tier, minutes, computed_at, telegram_id, user_role, username, first_name, last_name in res.all():
        rows.append(
            LeaderRow(
                user_id=int(user_id),
                telegram_id=int(telegram_id),
                points=int(points or 0),
                tier=str(tier),
                minutes=int(minutes or 0),
                computed_at=computed_at,
                role=user_role,
                username=username,
                first_name=first_name,
                last_name=last_name,
            )
        )

    return rows


async def get_user_rank_week(
    session: AsyncSession,
    week_start: date,
    user_id: int,
    *,
    role: UserRole | None = None,
) -> tuple[int | None, int]:
    """
    Competition rank of one user for the week (same points -> same rank).
    Returns (rank, points); rank is None when the user has no row in scope.
    """
    mine = select(WeeklyStat.points).join(User, User.id == WeeklyStat.user_id).where(
        WeeklyStat.week_start == week_start,
        WeeklyStat.user_id == user_id,
    )
    if role is not None:
        mine = mine.where(User.role == role)

    points = (await session.execute(mine)).scalar_one_or_none()
    if points is None:
        return (None, 0)

    higher = (
        select(func.count(WeeklyStat.id))
        .join(User, User.id == WeeklyStat.user_id)
        .where(
            WeeklyStat.week_start == week_start,
            WeeklyStat.points > points,
        )
    )
    if role is not None:
        higher = higher.where(User.role == role)

    ahead = (await session.execute(higher)).scalar_one()
    return (int(ahead) + 1, int(points or 0))
