# src/collab_tracker/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time: without remote credentials the
  tracker runs on the local mirror only.
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


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


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
    console_enabled: bool

    # ---- Local mirror ----
    data_dir: Path
    mirror_db_path: Path
    mirror_key_prefix: str

    # ---- Remote store (PostgREST / Supabase) ----
    remote_url: str
    remote_api_key: str
    remote_timeout_seconds: float
    poll_interval_seconds: float

    @property
    def remote_configured(self) -> bool:
        return self.remote_url.startswith(("http://", "https://")) and bool(self.remote_api_key)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "collab-tracker")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tracker"))
        mirror_db_path = _env_path(_k("MIRROR_DB_PATH"), data_dir / "mirror.sqlite3")
        # Physical keys are "<prefix>shared_projects" / "<prefix>shared_tasks".
        mirror_key_prefix = _env(_k("MIRROR_KEY_PREFIX"), "task_manager_")

        # Accept the hosted backend's conventional names as well.
        remote_url = (_first_env(_k("REMOTE_URL"), "SUPABASE_URL", default="") or "").strip().rstrip("/")
        remote_api_key = (_first_env(_k("REMOTE_API_KEY"), "SUPABASE_ANON_KEY", default="") or "").strip()
        remote_timeout_seconds = _env_float(_k("REMOTE_TIMEOUT_SECONDS"), 10.0)
        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 15.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            mirror_db_path=mirror_db_path,
            mirror_key_prefix=mirror_key_prefix,
            remote_url=remote_url,
            remote_api_key=remote_api_key,
            remote_timeout_seconds=remote_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
