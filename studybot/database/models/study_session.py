# studybot/database/models/study_session.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from studybot.database.base import Base


class SessionSource(str, enum.Enum):
    MANUAL = "manual"


class StudySession(Base):
    """
    One timed study interval.

    Open while end_at is NULL. Closed exactly once by a conditional update;
    end_at and duration_min are written together and never change afterwards.
    aggregated_at marks that duration_min has been added to weekly_stats.
    """
    __tablename__ = "study_sessions"
    __table_args__ = (
        Index("ix_study_sessions_user_start", "user_id", "start_at"),
        Index("ix_study_sessions_user_end", "user_id", "end_at"),
        CheckConstraint(
            "(end_at IS NULL AND duration_min IS NULL) OR (end_at IS NOT NULL AND duration_min IS NOT NULL)",
            name="ck_study_sessions_closed_pair",
        ),
        CheckConstraint("duration_min IS NULL OR duration_min >= 0", name="ck_study_sessions_duration_nonneg"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    zone_id: Mapped[int] = mapped_column(ForeignKey("zones.id", ondelete="RESTRICT"), index=True)

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True, index=True)
    duration_min: Mapped[int | None] = mapped_column(Integer, nullable=True)

    source: Mapped[SessionSource] = mapped_column(
        Enum(SessionSource, native_enum=False),
        default=SessionSource.MANUAL,
    )

    aggregated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())

    @property
    def is_open(self) -> bool:
        return self.end_at is None
