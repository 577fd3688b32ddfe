# src/dayminder/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Paths default to a gitignored local data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DAYMINDER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector / delivery flags ----
    console_enabled: bool
    notifications_enabled: bool

    # ---- Reminder loop ----
    reminder_poll_seconds: float

    # ---- Views ----
    week_view_days: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "dayminder").strip() or "dayminder"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)

        reminder_poll_seconds = max(0.5, _env_float(_k("REMINDER_POLL_SECONDS"), 15.0))
        week_view_days = _env_int(_k("WEEK_VIEW_DAYS"), 7, minimum=1)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dayminder"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "dayminder.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            notifications_enabled=notifications_enabled,
            reminder_poll_seconds=reminder_poll_seconds,
            week_view_days=week_view_days,
            data_dir=data_dir,
            db_path=db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
