from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import User, UserRole, WeeklyStat, Zone
from studybot.utils.dt import to_db


async def make_user(
    session: AsyncSession,
    *,
    telegram_id: int,
    username: str | None = None,
    role: UserRole = UserRole.MEMBER,
    streak_weeks: int = 0,
) -> User:
    user = User(
        telegram_id=telegram_id,
        username=username,
        first_name=(username or "").title() or None,
        role=role,
        streak_weeks=streak_weeks,
    )
    session.add(user)
    await session.flush()
    return user


async def make_zone(session: AsyncSession, name: str = "Main Library", *, is_active: bool = True) -> Zone:
    zone = Zone(name=name, lat=32.2319, lng=-110.9501, radius_meters=100, is_active=is_active)
    session.add(zone)
    await session.flush()
    return zone


async def make_weekly_stat(
    session: AsyncSession,
    *,
    user: User,
    week_start: date,
    points: int,
    tier: str,
    minutes: int = 0,
    computed_at: datetime,
) -> WeeklyStat:
    row = WeeklyStat(
        user_id=user.id,
        week_start=week_start,
        minutes=minutes,
        points=points,
        tier=tier,
        computed_at=to_db(computed_at),
    )
    session.add(row)
    await session.flush()
    return row
