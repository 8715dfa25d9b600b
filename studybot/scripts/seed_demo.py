# studybot/scripts/seed_demo.py
"""
Fills the database with demo zones, users and a few weeks of study sessions.

Sessions go through SessionService.start/stop, so weekly_stats are built by
the same aggregation path the bot uses.

    python -m studybot.scripts.seed_demo
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta
from random import Random
from zoneinfo import ZoneInfo

from sqlalchemy import delete

from studybot.config.settings import Settings
from studybot.database.models import StudySession, User, UserRole, WeeklyStat, Zone
from studybot.database.session import Database
from studybot.services.sessions import SessionService
from studybot.utils.dates import local_date, week_start_date
from studybot.utils.dt import TimeProvider

log = logging.getLogger(__name__)

PLEDGES = [("alex_chen", "Alex", "Chen"), ("jordan_s", "Jordan", "Smith"), ("sam_rivera", "Sam", "Rivera"),
           ("casey_j", "Casey", "Johnson"), ("taylor_b", "Taylor", "Brown")]
MEMBERS = [("morgan_lee", "Morgan", "Lee"), ("riley_d", "Riley", "Davis"), ("quinn_m", "Quinn", "Martinez"),
           ("avery_w", "Avery", "Wilson"), ("cameron_g", "Cameron", "Garcia")]

ZONES = [
    ("Main Library", 32.2319, -110.9501, 100),
    ("Student Union", 32.2298, -110.9489, 150),
    ("Science Library", 32.2335, -110.9512, 80),
    ("Engineering Building", 32.2342, -110.9478, 120),
]

# (sessions per week, min session minutes, max session minutes)
PERFORMANCE = {
    "low": (7, 20, 40),
    "medium": (10, 30, 60),
    "high": (13, 45, 90),
}

WEEKS_BACK = 4
FAKE_TELEGRAM_BASE = 9_000_000_000


async def seed(db: Database, settings: Settings, *, now: datetime, rng: Random) -> int:
    service = SessionService(settings)
    zone_tz = ZoneInfo(settings.timezone)
    created = 0

    async with db.session() as session:
        for model in (StudySession, WeeklyStat, User, Zone):
            await session.execute(delete(model))
        await session.commit()

        zones = [Zone(name=n, lat=lat, lng=lng, radius_meters=r, is_active=True) for n, lat, lng, r in ZONES]
        session.add_all(zones)

        users: list[User] = []
        people = [(p, UserRole.PLEDGE) for p in PLEDGES] + [(m, UserRole.MEMBER) for m in MEMBERS]
        for i, ((username, first, last), role) in enumerate(people):
            users.append(
                User(
                    telegram_id=FAKE_TELEGRAM_BASE + i,
                    username=username,
                    first_name=first,
                    last_name=last,
                    role=role,
                    streak_weeks=rng.randint(0, 5),
                )
            )
        session.add_all(users)
        await session.commit()

        this_week = week_start_date(local_date(now, settings.timezone), settings.week_starts_on)

        for user in users:
            level = rng.choice(list(PERFORMANCE))
            per_week, lo, hi = PERFORMANCE[level]

            for weeks_ago in range(WEEKS_BACK, -1, -1):
                week_day0 = this_week - timedelta(weeks=weeks_ago)
                for _ in range(per_week):
                    day = week_day0 + timedelta(days=rng.randint(0, 6))
                    # 8:00-21:59 local
                    start_local = datetime.combine(day, time(rng.randint(8, 21), rng.randint(0, 59)), tzinfo=zone_tz)
                    end_local = start_local + timedelta(minutes=rng.randint(lo, hi))
                    if end_local >= now:
                        continue

                    zone = rng.choice(zones)
                    started = await service.start(session, user_id=user.id, zone_id=zone.id, now=start_local)
                    await service.stop(session, session_id=started.session_id, now=end_local)
                    created += 1

            await session.commit()
            log.info("Seeded %s (%s, %s)", user.display_name, user.role.value, level)

    return created


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    settings = Settings.load(require_token=False)

    db = Database(settings.database_url)
    await db.init_models()

    try:
        n = await seed(db, settings, now=TimeProvider().now(), rng=Random(42))
    finally:
        await db.close()

    print(f"✅ Seeded {len(ZONES)} zones, {len(PLEDGES) + len(MEMBERS)} users, {n} sessions.")


if __name__ == "__main__":
    asyncio.run(main())
