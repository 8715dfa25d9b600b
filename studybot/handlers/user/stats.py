# studybot/handlers/user/stats.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import User
from studybot.keyboards.main import BTN_WEEK
from studybot.services import study_api
from studybot.utils.dt import TimeProvider
from studybot.utils.ensure_user import ensure_user
from studybot.utils.reply import reply_safe

router = Router()


@router.message(Command("week"))
@router.message(F.text == BTN_WEEK)
async def week_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    db_user: User | None = None,
) -> None:
    user = await ensure_user(session, message, db_user)

    res = await study_api.get_weekly_stats(
        session,
        settings,
        user_id=user.id,
        at=TimeProvider().now(),
    )
    d = res.data

    hours, minutes = divmod(d["minutes"], 60)
    text = (
        f"📈 <b>Your week</b> (starts {d['week_start']})\n"
        f"• Studied: <b>{hours}h {minutes:02d}m</b>\n"
        f"• Points: <b>{d['points']}</b> ({d['tier']})\n"
        f"• Weekly goal ({settings.weekly_goal_hours}h): <b>{d['goal_percent']}%</b>"
    )
    await reply_safe(message, text, parse_mode="HTML")
