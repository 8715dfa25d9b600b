# studybot/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from studybot.utils.academic_window import DEFAULT_WINDOWS, AcademicWindow, parse_windows
from studybot.utils.dates import WeekStart


def _require(env: dict[str, str], key: str) -> str:
    v = env.get(key)
    if v is None or not v.strip():
        raise RuntimeError(f"Missing required environment variable: {key}")
    return v.strip()


def _to_int(value: str, key_name: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise RuntimeError(f"Invalid integer for {key_name}: {value!r}") from e


def _int_env(env: dict[str, str], key: str, default: int, *, minimum: int = 0) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    v = _to_int(raw, key)
    if v < minimum:
        raise RuntimeError(f"{key} must be >= {minimum}, got {v}")
    return v


def _timezone(raw: str) -> str:
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Unknown TIMEZONE: {raw!r}") from e
    return raw


@dataclass(frozen=True, slots=True)
class Settings:
    # --- required ---
    bot_token: str

    # --- optional ---
    database_url: str = "sqlite+aiosqlite:///./studybot.db"

    # --- civil calendar ---
    timezone: str = "America/Phoenix"
    week_starts_on: WeekStart = WeekStart.MONDAY
    academic_windows: tuple[AcademicWindow, ...] = DEFAULT_WINDOWS

    # --- scoring ---
    weekly_cap_min: int = 18 * 60
    weekly_goal_hours: int = 6

    # --- leaderboard ---
    leaderboard_limit: int = 50

    # --- jobs ---
    reconcile_interval_minutes: int = 5

    # --- environment ---
    environment: str = "production"  # production | development

    @property
    def is_dev(self) -> bool:
        return self.environment.lower() in {"dev", "development", "local"}

    @classmethod
    def load(cls, *, require_token: bool = True) -> "Settings":
        """
        Loads from process env (and .env if present).
        Fails fast for required or malformed fields.
        """
        load_dotenv()
        env = os.environ

        bot_token = _require(env, "BOT_TOKEN") if require_token else (env.get("BOT_TOKEN") or "").strip()
        database_url = (env.get("DATABASE_URL") or "sqlite+aiosqlite:///./studybot.db").strip()

        timezone = _timezone((env.get("TIMEZONE") or "America/Phoenix").strip() or "America/Phoenix")

        try:
            week_starts_on = WeekStart.parse(env.get("WEEK_STARTS_ON") or "monday")
        except ValueError as e:
            raise RuntimeError(str(e)) from e

        windows_raw = (env.get("ACADEMIC_WINDOWS") or "").strip()
        try:
            academic_windows = parse_windows(windows_raw) if windows_raw else DEFAULT_WINDOWS
        except ValueError as e:
            raise RuntimeError(f"Invalid ACADEMIC_WINDOWS: {e}") from e

        environment = (env.get("ENVIRONMENT") or "production").strip() or "production"

        return cls(
            bot_token=bot_token,
            database_url=database_url,
            timezone=timezone,
            week_starts_on=week_starts_on,
            academic_windows=academic_windows,
            weekly_cap_min=_int_env(env, "WEEKLY_CAP_MIN", 18 * 60),
            weekly_goal_hours=_int_env(env, "WEEKLY_GOAL_HOURS", 6, minimum=1),
            leaderboard_limit=_int_env(env, "LEADERBOARD_LIMIT", 50, minimum=1),
            reconcile_interval_minutes=_int_env(env, "RECONCILE_INTERVAL_MINUTES", 5, minimum=1),
            environment=environment,
        )
