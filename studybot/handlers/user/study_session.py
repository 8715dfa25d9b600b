# studybot/handlers/user/study_session.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from studybot.config.settings import Settings
from studybot.database.models import User
from studybot.keyboards.main import BTN_STOP
from studybot.services import study_api
from studybot.services.sessions import SessionService
from studybot.utils.dt import TimeProvider
from studybot.utils.ensure_user import ensure_user
from studybot.utils.reply import reply_safe

router = Router()

_ERRORS = {
    "missing_fields": "Usage: <code>/study_start &lt;zone_id&gt;</code>\nSee /zones for ids.",
    "zone_not_found": "⚠️ Unknown zone. See /zones for ids.",
    "session_not_found": "⚠️ Session not found.",
    "missing_session_id": "⚠️ No session to stop.",
}


@router.message(Command("study_start"))
async def study_start_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    db_user: User | None = None,
) -> None:
    user = await ensure_user(session, message, db_user)

    active = await SessionService(settings).active_session_for(session, user_id=user.id)
    if active is not None:
        await reply_safe(
            message,
            f"⏱ You already have an open session (#{active.id}).\nUse /study_stop first.",
            parse_mode="HTML",
        )
        return

    now = TimeProvider().now()
    res = await study_api.start_session(
        session,
        settings,
        user_id=user.id,
        zone_id=(command.args or "").strip() or None,
        now=now,
    )
    if not res.ok:
        await reply_safe(message, _ERRORS.get(res.error, "⚠️ Please try again."), parse_mode="HTML")
        return

    await reply_safe(
        message,
        f"▶️ <b>Session #{res.data['session_id']} started</b>\nSend /study_stop when you leave.",
        parse_mode="HTML",
    )


@router.message(Command("study_stop"))
@router.message(F.text == BTN_STOP)
async def study_stop_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    db_user: User | None = None,
) -> None:
    user = await ensure_user(session, message, db_user)

    active = await SessionService(settings).active_session_for(session, user_id=user.id)
    if active is None:
        await reply_safe(message, "ℹ️ You have no open session.")
        return

    now = TimeProvider().now()
    res = await study_api.stop_session(session, settings, session_id=active.id, now=now)
    if not res.ok:
        await reply_safe(message, _ERRORS.get(res.error, "⚠️ Please try again."), parse_mode="HTML")
        return

    d = res.data
    lines = [
        "✅ <b>Session already stopped</b>" if d["stopped_already"] else "⏹ <b>Session stopped</b>",
        f"• Duration: <b>{d['duration_min']}</b> min",
    ]
    if d["aggregation_pending"]:
        lines.append("• This week: updating shortly…")
    else:
        lines.append(f"• This week: <b>{d['minutes_this_week']}</b> min (week of {d['week_start']})")

    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
