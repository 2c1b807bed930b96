from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ORGANIZATIONS = ("EMS", "FIB", "GOV", "LI", "LSPD", "NG", "SAHP")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    # Storage
    data_dir: Path | None
    data_file_name: str
    questions_file_name: str
    roster_file_name: str
    storage_key: str
    organizations: tuple[str, ...]

    # Remote sync
    sync_remote_url: str
    sync_debounce_seconds: float
    sync_interval_seconds: float
    sync_timeout_seconds: float

    # HTTP
    cors_allow_origins: tuple[str, ...]

    # Logging
    log_level: str
    debug_log_requests: bool


def get_settings() -> Settings:
    raw_data_dir = os.getenv("DATA_DIR", "").strip()
    # Empty means "use persistence.paths.data_dir()".
    data_dir = Path(raw_data_dir) if raw_data_dir else None

    sync_remote_url = os.getenv("SYNC_REMOTE_URL", "http://localhost:3001").rstrip("/")

    return Settings(
        data_dir=data_dir,
        data_file_name=os.getenv("DATA_FILE_NAME", "curator-data.json"),
        questions_file_name=os.getenv("QUESTIONS_FILE_NAME", "questions-db.json"),
        roster_file_name=os.getenv("ROSTER_FILE_NAME", "curators-database.json"),
        storage_key=os.getenv("STORAGE_KEY", "grandInterviewData"),
        organizations=_env_list("ORGANIZATIONS", DEFAULT_ORGANIZATIONS),
        sync_remote_url=sync_remote_url,
        sync_debounce_seconds=_env_float("SYNC_DEBOUNCE_SECONDS", 1.0),
        sync_interval_seconds=_env_float("SYNC_INTERVAL_SECONDS", 5.0),
        sync_timeout_seconds=_env_float("SYNC_TIMEOUT_SECONDS", 10.0),
        cors_allow_origins=_env_list("CORS_ALLOW_ORIGINS", ("*",)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        debug_log_requests=_env_bool("DEBUG_LOG_REQUESTS", False),
    )
