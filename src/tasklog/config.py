"""Settings loaded from environment variables (and a .env file, if present)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLOG"

DB_NAME = "tasklog.db"
LOG_NAME = "tasklog.log"
BREAK_NAME = "break time"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


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


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_dir: Path
    break_name: str = BREAK_NAME
    # Timestamps before this hour belong to the previous working date.
    day_start_hour: int = 0
    open_in_totals: bool = False


def load_settings() -> Settings:
    """Read settings from the environment. Called once per command."""
    load_dotenv(override=False)

    day_start = _env_int(_k("DAY_START_HOUR"), 0)
    if not 0 <= day_start <= 23:
        day_start = 0

    return Settings(
        db_path=_env_path(_k("DB_PATH"), Path.cwd() / DB_NAME),
        log_dir=_env_path(_k("LOG_DIR"), Path.home() / ".local" / "state" / "tasklog"),
        break_name=_env(_k("BREAK_NAME"), BREAK_NAME).strip() or BREAK_NAME,
        day_start_hour=day_start,
        open_in_totals=_env_bool(_k("OPEN_IN_TOTALS"), False),
    )
