from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.session import Database

T = TypeVar("T")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        bot_token="test-token",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'studybot_test.db'}",
    )


@pytest.fixture
def run_db(settings: Settings) -> Callable[[Callable[[AsyncSession], Awaitable[T]]], T]:
    """
    run_db(fn) creates the schema in a fresh SQLite file, calls
    `await fn(session)` and returns its result.
    """

    def _run(fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _main() -> T:
            db = Database(settings.database_url)
            await db.init_models()
            try:
                async with db.session() as session:
                    return await fn(session)
            finally:
                await db.close()

        return asyncio.run(_main())

    return _run


@pytest.fixture
def run_with_db(settings: Settings) -> Callable[[Callable[[Database], Awaitable[T]]], T]:
    """
    Like run_db, but hands `fn` the Database so it can open several
    independent sessions (one connection each).
    """

    def _run(fn: Callable[[Database], Awaitable[T]]) -> T:
        async def _main() -> T:
            db = Database(settings.database_url)
            await db.init_models()
            try:
                return await fn(db)
            finally:
                await db.close()

        return asyncio.run(_main())

    return _run
