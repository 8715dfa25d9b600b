# studybot/handlers/user/leaderboard.py
from __future__ import annotations

import html

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import User
from studybot.keyboards.main import BTN_LEADERBOARD
from studybot.services import study_api
from studybot.services.leaderboard import LeaderboardScope, LeaderboardService
from studybot.utils.dates import parse_week_key
from studybot.utils.dt import TimeProvider
from studybot.utils.ensure_user import ensure_user
from studybot.utils.reply import reply_safe

router = Router()

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def _split_args(raw: str | None) -> tuple[str | None, str | None]:
    """
    "/leaderboard pledge 2025-02-03" -> ("pledge", "2025-02-03"), any order.
    """
    scope: str | None = None
    week: str | None = None
    for part in (raw or "").split():
        if parse_week_key(part) is not None:
            week = part
        else:
            scope = part
    return scope, week


@router.message(Command("leaderboard"))
@router.message(F.text == BTN_LEADERBOARD)
async def leaderboard_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    command: CommandObject | None = None,
    db_user: User | None = None,
) -> None:
    user = await ensure_user(session, message, db_user)
    scope, week = _split_args(command.args if command else None)

    res = await study_api.get_leaderboard(
        session,
        settings,
        now=TimeProvider().now(),
        week_start=week,
        scope=scope,
    )
    if not res.ok:
        await reply_safe(message, "⚠️ Scope must be one of: overall, pledge, member.")
        return

    d = res.data
    lines = [
        f"🏆 <b>Weekly Leaderboard</b> · {d['scope']}",
        f"📅 <b>Week starts:</b> {d['week_start']}",
        "",
    ]

    if not d["entries"]:
        lines.append("ℹ️ No study time logged for this week yet.")
        await reply_safe(message, "\n".join(lines), parse_mode="HTML")
        return

    mine = None
    for e in d["entries"]:
        medal = MEDALS.get(e["rank"], f"{e['rank']}.")
        you = " <b>(you)</b>" if e["user_id"] == user.id else ""
        if e["user_id"] == user.id:
            mine = e
        lines.append(
            f"{medal} {html.escape(e['display_name'])} — <b>{e['points']}</b> pts "
            f"· {e['tier']} · {e['minutes']} min{you}"
        )

    lines.append("")
    if mine is not None:
        lines.append(f"📍 <b>Your rank:</b> {mine['rank']} / <b>{mine['points']}</b> pts")
    else:
        rank, points = await LeaderboardService(settings).user_rank(
            session,
            week_start=d["week_start"],
            user_id=user.id,
            scope=LeaderboardScope(d["scope"]),
        )
        if rank is None:
            lines.append("📍 <b>Your rank:</b> unranked (0 pts)")
        else:
            lines.append(f"📍 <b>Your rank:</b> {rank} / <b>{points}</b> pts")

    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
