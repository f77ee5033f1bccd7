from __future__ import annotations

from pathlib import Path

DB_FILENAME = "db.json"


def project_root() -> Path:
    # persistence/paths.py -> persistence -> project root
    return Path(__file__).resolve().parents[1]


def data_dir() -> Path:
    return project_root() / "data"


def default_db_path(base: Path | None = None) -> Path:
    return (base or data_dir()) / DB_FILENAME


def downloads_dir() -> Path:
    return Path.home() / "Downloads"
