# studybot/database/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def transactional(session: AsyncSession) -> AsyncIterator[None]:
    """
    Unit of work on top of SQLAlchemy 2.x autobegin.

    Inside a request (middleware already holds a transaction) this is a
    SAVEPOINT; from scripts and jobs it is a real BEGIN/COMMIT.
    """
    if session.in_transaction():
        async with session.begin_nested():
            yield
    else:
        async with session.begin():
            yield


@asynccontextmanager
async def savepoint(session: AsyncSession) -> AsyncIterator[None]:
    """
    Always a SAVEPOINT, so an error inside rolls back only this block and the
    enclosing transaction (e.g. a session close) survives.
    """
    if not session.in_transaction():
        await session.begin()
    async with session.begin_nested():
        yield
