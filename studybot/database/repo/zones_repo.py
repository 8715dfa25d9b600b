from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import Zone


async def find_zone_by_id(session: AsyncSession, zone_id: int) -> Zone | None:
    return await session.get(Zone, zone_id)


async def list_active_zones(session: AsyncSession) -> list[Zone]:
    res = await session.execute(
        select(Zone).where(Zone.is_active.is_(True)).order_by(Zone.name.asc(), Zone.id.asc())
    )
    return list(res.scalars().all())
