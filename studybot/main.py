# studybot/main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from studybot.config import Settings
from studybot.database import Database
from studybot.handlers import router as handlers_router
from studybot.scheduler import setup_scheduler
from studybot.utils.middleware import DbSessionMiddleware

# per-query / per-tick chatter from the DB driver and the reconcile scheduler
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "aiosqlite",
    "apscheduler.scheduler",
    "apscheduler.executors.default",
)


def setup_logging(is_dev: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if is_dev else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


async def main() -> None:
    settings = Settings.load()
    setup_logging(settings.is_dev)
    log = logging.getLogger("studybot")

    db = Database(settings.database_url)
    await db.init_models()
    log.info(
        "Study engine ready: tz=%s week_starts_on=%s cap=%s min windows=%s",
        settings.timezone,
        settings.week_starts_on.name.lower(),
        settings.weekly_cap_min,
        ", ".join(f"{w.start}..{w.end}" for w in settings.academic_windows) or "none",
    )

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    dp = Dispatcher()
    dp.workflow_data["settings"] = settings
    dp.workflow_data["db"] = db

    # one AsyncSession + upserted db_user per update
    dp.update.middleware(DbSessionMiddleware(db))

    dp.include_router(handlers_router)

    scheduler = setup_scheduler(db=db, settings=settings)
    log.info("Weekly stats reconcile every %s min", settings.reconcile_interval_minutes)

    try:
        await dp.start_polling(bot)
    except (asyncio.CancelledError, KeyboardInterrupt):
        pass
    except Exception:
        log.exception("Bot crashed")
        raise
    finally:
        try:
            scheduler.shutdown(wait=False)
        except Exception:
            log.exception("Failed to shutdown scheduler")

        try:
            await db.close()
        except Exception:
            log.exception("Failed to close DB")

        try:
            await bot.session.close()
        except Exception:
            log.exception("Failed to close bot session")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
