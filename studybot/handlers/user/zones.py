# studybot/handlers/user/zones.py
from __future__ import annotations

import html

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.keyboards.main import BTN_ZONES
from studybot.services import study_api
from studybot.utils.dt import TimeProvider
from studybot.utils.reply import reply_safe

router = Router()


@router.message(Command("zones"))
@router.message(F.text == BTN_ZONES)
async def zones_cmd(message: Message, settings: Settings, session: AsyncSession) -> None:
    res = await study_api.get_occupancy(session, settings, now=TimeProvider().now())
    zones = res.data["zones"]

    if not zones:
        await reply_safe(message, "ℹ️ No study zones configured yet.")
        return

    lines = ["📍 <b>Study zones</b>", ""]
    for z in zones:
        lines.append(
            f"<code>{z['zone_id']}</code> {html.escape(z['zone_name'])} — {z['active_users']} studying"
        )
    lines += ["", "Start with <code>/study_start &lt;id&gt;</code>"]
    await reply_safe(message, "\n".join(lines), parse_mode="HTML")


@router.message(Command("config"))
async def config_cmd(message: Message, settings: Settings) -> None:
    d = study_api.get_config(settings).data
    windows = "\n".join(f"  • {w['start']} → {w['end']}" for w in d["academic_windows"]) or "  • none"
    text = (
        "⚙️ <b>Config</b>\n"
        f"• Timezone: {d['timezone']} (weeks start {d['week_starts_on']})\n"
        f"• Weekly goal: {d['weekly_goal_hours']}h\n"
        f"• Weekly cap: {d['weekly_cap_minutes']} min\n"
        f"• Academic windows:\n{windows}"
    )
    await reply_safe(message, text, parse_mode="HTML")
