from __future__ import annotations

from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def sandbox_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """
    Point the database and export directory at tmp_path so tests never touch ./data or ~/Downloads.
    """
    from settings import get_settings

    monkeypatch.setenv("TASKS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("TASKS_DB_PATH", raising=False)
    monkeypatch.setenv("TASKS_EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("TASKS_STRICT_PERSIST", "true")
    return get_settings()


@pytest.fixture
def client(sandbox_settings):
    from fastapi.testclient import TestClient

    import app as app_module

    return TestClient(app_module.create_app(sandbox_settings))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "db.json"
