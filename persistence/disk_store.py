from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

from json_store import CorruptDocumentError, atomic_write_json, read_json

from .interfaces import DocumentStore

_registry_guard = threading.Lock()
_path_locks: dict[Path, threading.Lock] = {}


def document_lock(path: Path) -> threading.Lock:
    """
    The lock shared by every DiskJsonDocumentStore pointing at `path`,
    however the path was spelled (relative, `~`, symlinked).
    """
    key = path.expanduser().resolve()
    with _registry_guard:
        return _path_locks.setdefault(key, threading.Lock())


class DiskJsonDocumentStore(DocumentStore):
    """
    Stores a single JSON object on disk at a fixed path.

    - Returns None when the file is missing or empty.
    - Raises CorruptDocumentError when the file holds something other than a JSON object.
    - Writes atomically, pretty-printed with a 2-space indent.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any] | None:
        with document_lock(self._path):
            raw = read_json(self._path)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise CorruptDocumentError(self._path, f"expected a JSON object, got {type(raw).__name__}")
        return raw

    def save(self, doc: dict[str, Any]) -> None:
        with document_lock(self._path):
            atomic_write_json(self._path, doc)

    def quarantine(self) -> Path | None:
        """Move the current file aside as `<name>.corrupt-<unix ts>` and return the new path."""
        with document_lock(self._path):
            if not self._path.exists():
                return None
            target = self._path.with_name(f"{self._path.name}.corrupt-{int(time.time())}")
            self._path.replace(target)
            return target
