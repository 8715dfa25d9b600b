# studybot/database/models/weekly_stat.py
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studybot.database.base import Base


class WeeklyStat(Base):
    """
    One row per user per week. This enables fast leaderboards.
    week_start is the civil week-start day in the configured timezone.
    points/tier are derived from minutes and cached for reads.
    """
    __tablename__ = "weekly_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_stats_user_week"),
        Index("ix_weekly_stats_week_points", "week_start", "points"),
        CheckConstraint("minutes >= 0", name="ck_weekly_stats_minutes_nonneg"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    week_start: Mapped[date] = mapped_column(Date, index=True)

    minutes: Mapped[int] = mapped_column(Integer, default=0)
    points: Mapped[int] = mapped_column(Integer, default=0, index=True)
    tier: Mapped[str] = mapped_column(String(16), default="base")

    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False))
