# studybot/utils/ensure_user.py
from __future__ import annotations

from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models.user import User
from studybot.database.repo.users import upsert_user_from_event


async def ensure_user(session: AsyncSession, message: Message, db_user: User | None = None) -> User:
    """
    The middleware already upserted the sender; fall back to doing it here.
    """
    if db_user is not None:
        return db_user

    row = await upsert_user_from_event(session, message)
    if row is None:
        raise RuntimeError("Unable to ensure user: message has no from_user")
    return row
