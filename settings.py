from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from persistence.paths import data_dir as default_data_dir
from persistence.paths import default_db_path, downloads_dir


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name, "").strip()
    return Path(raw).expanduser() if raw else default


@dataclass(frozen=True)
class Settings:
    # Storage
    data_dir: Path
    db_path: Path
    # Raise (-> HTTP 500) instead of only logging when the document can't be written
    strict_persist: bool

    # CSV export target directory
    export_dir: Path

    # Surfaces
    enable_mcp: bool

    # Logging / debug
    log_level: str
    debug_log_requests: bool


def get_settings() -> Settings:
    data_dir = _env_path("TASKS_DATA_DIR", default_data_dir())
    db_path = _env_path("TASKS_DB_PATH", default_db_path(data_dir))

    strict_persist = _env_bool("TASKS_STRICT_PERSIST", True)

    # Exports land where a desktop user expects downloads.
    export_dir = _env_path("TASKS_EXPORT_DIR", downloads_dir())

    enable_mcp = _env_bool("TASKS_ENABLE_MCP", True)

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    debug_log_requests = _env_bool("DEBUG_LOG_REQUESTS", False)

    return Settings(
        data_dir=data_dir,
        db_path=db_path,
        strict_persist=strict_persist,
        export_dir=export_dir,
        enable_mcp=enable_mcp,
        log_level=log_level,
        debug_log_requests=debug_log_requests,
    )
