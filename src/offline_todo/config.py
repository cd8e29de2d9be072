# src/offline_todo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing remote is required: with no API URL the app runs fully offline.
- The API URL saved in the local settings collection overrides TODO_API_URL at runtime
  (see sync.remote.resolve_api_url).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TODO"

DEFAULT_PROBE_URL = "https://www.google.com/favicon.ico"
DEFAULT_HEALTH_MESSAGE = "Todo sync backend is running"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env from the working directory, if present. Real env vars win."""
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    """Unparseable or out-of-range values fall back to the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    export_dir: Path

    # ---- Remote authority ----
    api_url: str
    sync_timeout_seconds: float
    health_message: str
    auto_sync_on_reconnect: bool

    # ---- Connectivity probe ----
    probe_url: str
    probe_timeout_seconds: float
    probe_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "offline-todo").strip() or "offline-todo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/offline-todo"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "todo.sqlite3")
        export_dir = _env_path(_k("EXPORT_DIR"), data_dir / "exports")

        api_url = _env(_k("API_URL"), "").strip().rstrip("/")
        sync_timeout_seconds = _env_float(_k("SYNC_TIMEOUT_SECONDS"), 30.0, minimum=1.0)
        health_message = _env(_k("HEALTH_MESSAGE"), DEFAULT_HEALTH_MESSAGE)
        auto_sync_on_reconnect = _env_bool(_k("AUTO_SYNC_ON_RECONNECT"), False)

        probe_url = _env(_k("PROBE_URL"), DEFAULT_PROBE_URL).strip() or DEFAULT_PROBE_URL
        probe_timeout_seconds = _env_float(_k("PROBE_TIMEOUT_SECONDS"), 3.0, minimum=0.1)
        probe_interval_seconds = _env_float(_k("PROBE_INTERVAL_SECONDS"), 30.0, minimum=1.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            export_dir=export_dir,
            api_url=api_url,
            sync_timeout_seconds=sync_timeout_seconds,
            health_message=health_message,
            auto_sync_on_reconnect=auto_sync_on_reconnect,
            probe_url=probe_url,
            probe_timeout_seconds=probe_timeout_seconds,
            probe_interval_seconds=probe_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
