from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    # DB rows come back naive; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


@dataclass(frozen=True, slots=True)
class TimeProvider:
    """Wall clock for handlers and scripts; services always take `now`."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)
