# src/epic_tracker/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Everything has a default; nothing is required at import time.
- The composition root accepts injected settings, so tests never need env vars.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TRACKER"

load_dotenv(override=False)


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


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    data_dir: Path
    tasks_file_path: Path
    persist: bool

    # ---- History ----
    history_limit: int  # 0 = unbounded

    @property
    def history_max_size(self) -> int | None:
        return self.history_limit if self.history_limit > 0 else None

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "epic-tracker").strip() or "epic-tracker"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tracker"))
        tasks_file_path = _env_path(_k("TASKS_FILE"), data_dir / "tasks.csv")
        persist = _env_bool(_k("PERSIST"), True)

        history_limit = max(0, _env_int(_k("HISTORY_LIMIT"), 0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_file_path=tasks_file_path,
            persist=persist,
            history_limit=history_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
