from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from studybot.utils.dates import local_date


@dataclass(frozen=True, slots=True)
class AcademicWindow:
    start: date
    end: date  # inclusive

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def bounds_utc(self, tz: str) -> tuple[datetime, datetime]:
        """
        [start 00:00, end 23:59:59.999999] in the civil timezone, as UTC.
        """
        zone = ZoneInfo(tz)
        lo = datetime.combine(self.start, time.min, tzinfo=zone)
        hi = datetime.combine(self.end, time.max, tzinfo=zone)
        return lo.astimezone(timezone.utc), hi.astimezone(timezone.utc)

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


# UA 2025 semesters
DEFAULT_WINDOWS: tuple[AcademicWindow, ...] = (
    AcademicWindow(date(2025, 1, 15), date(2025, 5, 16)),
    AcademicWindow(date(2025, 8, 25), date(2025, 12, 10)),
)


def parse_windows(raw: str) -> tuple[AcademicWindow, ...]:
    """
    "2025-01-15:2025-05-16,2025-08-25:2025-12-10" -> windows, in config order.
    """
    out: list[AcademicWindow] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        start_raw, sep, end_raw = chunk.partition(":")
        if not sep:
            raise ValueError(f"Academic window must be 'start:end', got {chunk!r}")
        start = date.fromisoformat(start_raw.strip())
        end = date.fromisoformat(end_raw.strip())
        if end < start:
            raise ValueError(f"Academic window ends before it starts: {chunk!r}")
        out.append(AcademicWindow(start=start, end=end))
    return tuple(out)


def resolve_academic_window(
    now: datetime,
    tz: str,
    windows: Iterable[AcademicWindow],
) -> AcademicWindow | None:
    """
    First configured window containing the civil date of `now`, else None.
    """
    today = local_date(now, tz)
    for w in windows:
        if w.contains(today):
            return w
    return None
