# studybot/utils/middleware.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from studybot.database.repo.users import upsert_user_from_event
from studybot.database.session import Database

log = logging.getLogger(__name__)


class DbSessionMiddleware(BaseMiddleware):
    """
    One AsyncSession per update, injected as `session`.

    The sender is upserted first and injected as `db_user` (updates without a
    sender get none). Whatever a handler writes (session start/stop, weekly
    stats) commits once after it returns; any exception rolls the whole
    update back and is re-raised for aiogram to log.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        async with self.db.session() as session:
            data["session"] = session

            db_user = await upsert_user_from_event(session, event)
            if db_user is not None:
                data["db_user"] = db_user

            try:
                result = await handler(event, data)
            except Exception:
                await session.rollback()
                log.debug("Rolled back update for user=%s", getattr(db_user, "id", None))
                raise

            await session.commit()
            return result
