# src/timebox/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Process bootstrap values only: task capacity and buffer are persisted in the
  task store and merely seeded from here on first run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TIMEBOX"


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


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


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
    log_to_file: bool

    # ---- Local data paths ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Background loops ----
    sweep_interval_seconds: float
    notify_interval_seconds: float

    # ---- Notifications ----
    reminder_minutes_before: int

    # ---- First-run defaults for the persisted task settings ----
    default_max_active_tasks: int
    default_buffer_minutes: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "timebox") or "timebox"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        log_to_file = _env_bool(_k("LOG_TO_FILE"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/timebox"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        sweep_interval_seconds = max(1.0, _env_float(_k("SWEEP_INTERVAL_SECONDS"), 60.0))
        notify_interval_seconds = max(0.5, _env_float(_k("NOTIFY_INTERVAL_SECONDS"), 15.0))

        reminder_minutes_before = max(0, _env_int(_k("REMINDER_MINUTES_BEFORE"), 60))

        default_max_active_tasks = max(1, _env_int(_k("MAX_ACTIVE_TASKS"), 2))
        default_buffer_minutes = max(0, _env_int(_k("BUFFER_MINUTES"), 30))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_to_file=log_to_file,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            sweep_interval_seconds=sweep_interval_seconds,
            notify_interval_seconds=notify_interval_seconds,
            reminder_minutes_before=reminder_minutes_before,
            default_max_active_tasks=default_max_active_tasks,
            default_buffer_minutes=default_buffer_minutes,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
