# studybot/services/leaderboard.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import UserRole, display_name
from studybot.database.repo.leaderboard_repo import LeaderRow, get_top_week, get_user_rank_week
from studybot.services.errors import ValidationError


class LeaderboardScope(str, enum.Enum):
    OVERALL = "overall"
    PLEDGE = "pledge"
    MEMBER = "member"

    @property
    def role(self) -> UserRole | None:
        if self is LeaderboardScope.OVERALL:
            return None
        return UserRole(self.value)

    @classmethod
    def parse(cls, raw: str | None) -> "LeaderboardScope":
        if raw is None or not raw.strip():
            return cls.OVERALL
        try:
            return cls(raw.strip().lower())
        except ValueError as e:
            raise ValidationError("invalid_scope", f"Unknown leaderboard scope: {raw!r}") from e


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: int
    display_name: str
    role: str
    points: int
    tier: str
    minutes: int

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "display_name": self.display_name,
            "role": self.role,
            "points": self.points,
            "tier": self.tier,
            "minutes": self.minutes,
        }


@dataclass(frozen=True, slots=True)
class LeaderboardView:
    week_start: str
    scope: LeaderboardScope
    entries: list[LeaderboardEntry]

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start,
            "scope": self.scope.value,
            "entries": [e.to_dict() for e in self.entries],
        }


def assign_ranks(rows: Sequence[LeaderRow]) -> list[LeaderboardEntry]:
    """
    Standard competition ranking over already-sorted rows: equal points share a
    rank, the next different value takes its 1-based position (1, 1, 3).
    Tier and time only order ties; they never split a rank.
    """
    out: list[LeaderboardEntry] = []
    rank = 1
    for i, row in enumerate(rows):
        if i > 0 and rows[i - 1].points != row.points:
            rank = i + 1
        out.append(
            LeaderboardEntry(
                rank=rank,
                user_id=row.user_id,
                display_name=display_name(row.username, row.first_name, row.last_name),
                role=getattr(row.role, "value", str(row.role)),
                points=row.points,
                tier=row.tier,
                minutes=row.minutes,
            )
        )
    return out


class LeaderboardService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def rank(
        self,
        session: AsyncSession,
        *,
        week_start: str,
        scope: LeaderboardScope = LeaderboardScope.OVERALL,
        limit: int | None = None,
    ) -> LeaderboardView:
        rows = await get_top_week(
            session,
            date.fromisoformat(week_start),
            role=scope.role,
            limit=limit or self.settings.leaderboard_limit,
        )
        return LeaderboardView(week_start=week_start, scope=scope, entries=assign_ranks(rows))

    async def user_rank(
        self,
        session: AsyncSession,
        *,
        week_start: str,
        user_id: int,
        scope: LeaderboardScope = LeaderboardScope.OVERALL,
    ) -> tuple[int | None, int]:
        return await get_user_rank_week(session, date.fromisoformat(week_start), user_id, role=scope.role)
