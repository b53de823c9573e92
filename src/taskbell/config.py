# src/taskbell/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time: push/cron keys are checked when a sweep runs.
- The bare variable names used by older deployments (CRON_SECRET, VAPID_*) are accepted as fallbacks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKBELL"


class ConfigurationError(RuntimeError):
    """Server configuration is incomplete (missing keys/secrets)."""


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return default


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
    app_url: str

    # ---- Console client ----
    user_id: str
    local_check_interval_seconds: float
    dedup_horizon_seconds: float

    # ---- Sweep / push ----
    cron_secret: str | None
    vapid_public_key: str | None
    vapid_private_key: str | None
    vapid_subject: str | None
    push_ttl_seconds: int
    push_timeout_seconds: float

    # ---- HTTP server ----
    server_host: str
    server_port: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    subscriptions_db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbell")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        app_url = _env(_k("APP_URL"), "/")

        user_id = _env(_k("USER_ID"), "local").strip() or "local"
        local_check_interval_seconds = _env_float(_k("LOCAL_CHECK_INTERVAL_SECONDS"), 30.0)
        dedup_horizon_seconds = _env_float(_k("DEDUP_HORIZON_SECONDS"), 24 * 3600.0)

        cron_secret = _first_env(_k("CRON_SECRET"), "CRON_SECRET")
        vapid_public_key = _first_env(
            _k("VAPID_PUBLIC_KEY"), "VAPID_PUBLIC_KEY", "NEXT_PUBLIC_VAPID_PUBLIC_KEY"
        )
        vapid_private_key = _first_env(_k("VAPID_PRIVATE_KEY"), "VAPID_PRIVATE_KEY")
        vapid_subject = _first_env(_k("VAPID_SUBJECT"), "VAPID_SUBJECT")
        push_ttl_seconds = _env_int(_k("PUSH_TTL_SECONDS"), 86400)
        push_timeout_seconds = _env_float(_k("PUSH_TIMEOUT_SECONDS"), 10.0)

        server_host = _env(_k("SERVER_HOST"), "127.0.0.1")
        server_port = _env_int(_k("SERVER_PORT"), 8000)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbell"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        subscriptions_db_path = _env_path(
            _k("SUBSCRIPTIONS_DB_PATH"), data_dir / "subscriptions.sqlite3"
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            app_url=app_url,
            user_id=user_id,
            local_check_interval_seconds=local_check_interval_seconds,
            dedup_horizon_seconds=dedup_horizon_seconds,
            cron_secret=cron_secret,
            vapid_public_key=vapid_public_key,
            vapid_private_key=vapid_private_key,
            vapid_subject=vapid_subject,
            push_ttl_seconds=push_ttl_seconds,
            push_timeout_seconds=push_timeout_seconds,
            server_host=server_host,
            server_port=server_port,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            subscriptions_db_path=subscriptions_db_path,
        )


def missing_push_config(settings) -> list[str]:
    """Names of the push-signing settings that are not set."""
    missing: list[str] = []
    if not getattr(settings, "vapid_public_key", None):
        missing.append("VAPID public key")
    if not getattr(settings, "vapid_private_key", None):
        missing.append("VAPID private key")
    if not getattr(settings, "vapid_subject", None):
        missing.append("VAPID subject")
    return missing


def require_push_config(settings) -> None:
    missing = missing_push_config(settings)
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} missing")


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
