# studybot/handlers/user/trophy.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import User
from studybot.keyboards.main import BTN_TROPHY
from studybot.services import study_api
from studybot.utils.dt import TimeProvider
from studybot.utils.ensure_user import ensure_user
from studybot.utils.reply import reply_safe

router = Router()


@router.message(Command("trophy"))
@router.message(F.text == BTN_TROPHY)
async def trophy_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    db_user: User | None = None,
) -> None:
    user = await ensure_user(session, message, db_user)

    res = await study_api.get_trophy_progress(
        session,
        settings,
        user_id=user.id,
        now=TimeProvider().now(),
    )
    d = res.data

    window = d["academic_window"]
    if window is None:
        await reply_safe(
            message,
            "🛣 <b>Trophy road</b>\nNo academic window is active right now, so nothing accrues.",
            parse_mode="HTML",
        )
        return

    next_tier = d["next_tier_minutes"]
    lines = [
        "🛣 <b>Trophy road</b>",
        f"📅 {window['start']} → {window['end']}",
        f"• Total: <b>{d['total_hours']}h</b> ({d['total_minutes']} min)",
        f"• Tier <b>{d['tier']}</b>, milestone {d['milestone_index_in_tier']}/{d['milestones_in_tier']}"
        f" (#{d['current_milestone']} overall)",
        f"• Next milestone at {d['next_milestone_minutes']} min",
        f"• Next tier at {next_tier} min" if next_tier is not None else "• Top tier reached 🏁",
    ]
    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
