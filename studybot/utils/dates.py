# studybot/utils/dates.py
from __future__ import annotations

import enum
import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from studybot.utils.dt import as_utc

_WEEK_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class WeekStart(enum.IntEnum):
    # Same numbering as JS getDay(): Sunday = 0, Monday = 1
    SUNDAY = 0
    MONDAY = 1

    @classmethod
    def parse(cls, raw: str) -> "WeekStart":
        v = raw.strip().lower()
        if v in {"monday", "mon", "1"}:
            return cls.MONDAY
        if v in {"sunday", "sun", "0"}:
            return cls.SUNDAY
        raise ValueError(f"Unknown week start: {raw!r}")


def local_date(instant: datetime, tz: str) -> date:
    return as_utc(instant).astimezone(ZoneInfo(tz)).date()


def week_start_date(day: date, week_starts_on: WeekStart = WeekStart.MONDAY) -> date:
    # date.weekday(): Monday = 0 ... Sunday = 6
    if week_starts_on == WeekStart.MONDAY:
        offset = day.weekday()
    else:
        offset = (day.weekday() + 1) % 7
    return day - timedelta(days=offset)


def week_start_instant(
    instant: datetime,
    tz: str,
    week_starts_on: WeekStart = WeekStart.MONDAY,
) -> datetime:
    """
    Local midnight of the civil week containing `instant`, as an aware datetime
    in `tz`. zoneinfo picks the right offset for that day, so a DST switch
    inside the week does not move the boundary.
    """
    zone = ZoneInfo(tz)
    start_day = week_start_date(local_date(instant, tz), week_starts_on)
    return datetime.combine(start_day, time.min, tzinfo=zone)


def week_key(
    instant: datetime,
    tz: str,
    week_starts_on: WeekStart = WeekStart.MONDAY,
) -> str:
    """
    Stable weekly aggregation key (YYYY-MM-DD of the civil week-start day).
    """
    return week_start_instant(instant, tz, week_starts_on).date().isoformat()


def parse_week_key(raw: str | None) -> date | None:
    if not raw or not _WEEK_KEY_RE.match(raw.strip()):
        return None
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return None
