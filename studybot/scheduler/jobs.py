from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from studybot.config.settings import Settings
from studybot.database.session import Database
from studybot.services.weekly_stats import ReconcileResult, WeeklyStatsService

log = logging.getLogger(__name__)


# -------------------------------------------------
# Weekly stats reconciliation
# -------------------------------------------------

async def reconcile_weekly_stats(db: Database, settings: Settings) -> ReconcileResult:
    """
    Sweeps closed sessions whose weekly increment failed at stop time.
    """
    now = datetime.now(tz=timezone.utc)
    service = WeeklyStatsService(settings)

    async with db.session() as session:
        result = await service.reconcile_pending(session, now=now)
        if result.applied:
            await session.commit()
        else:
            await session.rollback()

    return result


# -------------------------------------------------
# Scheduler setup
# -------------------------------------------------

def build_scheduler(db: Database, settings: Settings) -> AsyncIOScheduler:
    """
    Creates and returns an AsyncIOScheduler with our jobs registered.
    """
    scheduler = AsyncIOScheduler(timezone=settings.timezone)

    scheduler.add_job(
        reconcile_weekly_stats,
        trigger=IntervalTrigger(minutes=settings.reconcile_interval_minutes),
        kwargs={"db": db, "settings": settings},
        id="reconcile_weekly_stats",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        misfire_grace_time=60,
    )

    return scheduler
