from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Protocol

Record = dict[str, Any]


class DocumentStore(Protocol):
    """
    A single JSON-like document persisted under one key (a file path on disk).
    """

    @property
    def path(self) -> Path: ...

    def load(self) -> dict[str, Any] | None:
        """Return the full document, or None when nothing has been stored yet."""
        ...

    def save(self, doc: dict[str, Any]) -> None:
        """Persist the full document atomically."""
        ...

    def quarantine(self) -> Path | None:
        """Move an unreadable document out of the way, returning where it went."""
        ...


class RecordStore(Protocol):
    """
    Table-oriented access to a document: table name -> ordered list of records keyed by `id`.
    """

    def select(self, table: str, search: Mapping[str, Any] | None = None) -> list[Record]: ...
    def get(self, table: str, record_id: str) -> Record | None: ...
    def insert(self, table: str, record: Mapping[str, Any]) -> Record: ...
    def update(self, table: str, record_id: str, record: Mapping[str, Any]) -> bool: ...
    def delete(self, table: str, record_id: str) -> bool: ...
    def move(
        self, source: str, target: str, record_id: str, changes: Mapping[str, Any] | None = None
    ) -> Record | None: ...
