# studybot/handlers/common.py
from __future__ import annotations

import html

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.database.models import User
from studybot.keyboards.main import main_menu_kb
from studybot.utils.ensure_user import ensure_user

router = Router(name="common")


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    await message.answer(
        "👋 Welcome!\n\n"
        "Pick a zone with /zones, then /study_start &lt;id&gt;.\n"
        "Use /help to see commands.",
        parse_mode="HTML",
        reply_markup=main_menu_kb(),
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(
        "📌 Available commands:\n"
        "/zones — study zones and who is there\n"
        "/study_start &lt;zone_id&gt; — start a session\n"
        "/study_stop — stop your open session\n"
        "/week — minutes and points this week\n"
        "/leaderboard [overall|pledge|member] [YYYY-MM-DD]\n"
        "/trophy — trophy road progress\n"
        "/config — calendar and scoring settings\n"
        "/whoami — your profile",
        parse_mode="HTML",
    )


@router.message(Command("whoami"))
async def cmd_whoami(message: Message, session: AsyncSession, db_user: User | None = None) -> None:
    u = await ensure_user(session, message, db_user)
    await message.answer(
        "👤 <b>Your profile</b>\n"
        f"• Name: {html.escape(u.display_name)}\n"
        f"• Telegram ID: <code>{u.telegram_id}</code>\n"
        f"• Role: {getattr(u.role, 'value', u.role)}\n"
        f"• Streak: {u.streak_weeks or 0} week(s)",
        parse_mode="HTML",
        reply_markup=main_menu_kb(),
    )
