from __future__ import annotations

import copy
import logging
import threading
from pathlib import Path
from typing import Any, Mapping

from json_store import CorruptDocumentError

from .disk_store import DiskJsonDocumentStore
from .interfaces import DocumentStore, Record, RecordStore

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The in-memory document changed but could not be written to disk."""


class RecordConflictError(ValueError):
    """The target table already holds a record with the id being moved in."""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"{table} already holds {record_id}")
        self.table = table
        self.record_id = record_id


def _matches_any(row: Mapping[str, Any], search: Mapping[str, Any]) -> bool:
    for field, needle in search.items():
        value = row.get(field)
        if isinstance(value, str) and str(needle).lower() in value.lower():
            return True
    return False


class JsonRecordStore(RecordStore):
    """
    In-memory tables backed by one JSON document that is rewritten in full
    after every mutation.

    Document shape on disk:
      { "<table>": [ { "id": "...", ... }, ... ], ... }

    The store knows nothing about what the tables hold. Every public method
    takes the same lock for its whole read-modify-persist sequence, so calls
    from worker threads never interleave.

    With strict=True (the default) a failed write raises PersistenceError after
    logging. With strict=False the failure is only logged. In both cases the
    in-memory state keeps the mutation; the next successful write catches the
    file up.
    """

    def __init__(self, document: DocumentStore | Path, *, strict: bool = True):
        self._document: DocumentStore = (
            DiskJsonDocumentStore(document) if isinstance(document, Path) else document
        )
        self._strict = strict
        self._lock = threading.RLock()
        self._database: dict[str, list[Record]] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._document.path

    # ---- load / persist ----

    def _load(self) -> None:
        try:
            raw = self._document.load()
        except (CorruptDocumentError, OSError, UnicodeDecodeError) as e:
            self._preserve_unreadable(e)
            raw = None

        if raw is None:
            logger.info("RECORD STORE LOAD: no data at %s, starting empty", self.path)
            self._database = {}
            self._persist(raise_errors=False)
            return

        self._database = self._coerce(raw)
        logger.info(
            "RECORD STORE LOAD: %s tables=%s records=%s",
            self.path,
            len(self._database),
            sum(len(rows) for rows in self._database.values()),
        )

    def _preserve_unreadable(self, error: Exception) -> None:
        try:
            moved = self._document.quarantine()
        except OSError as e:
            logger.error(
                "RECORD STORE LOAD: %s is unreadable (%r) and could not be moved aside: %r",
                self.path,
                error,
                e,
            )
            return
        logger.error(
            "RECORD STORE LOAD: %s is unreadable (%r); preserved as %s, starting empty",
            self.path,
            error,
            moved,
        )

    def _coerce(self, raw: Mapping[str, Any]) -> dict[str, list[Record]]:
        tables: dict[str, list[Record]] = {}
        for name, rows in raw.items():
            if not isinstance(rows, list):
                logger.warning("RECORD STORE LOAD: table %r is not a list, skipping", name)
                continue
            kept = [row for row in rows if isinstance(row, dict)]
            if len(kept) != len(rows):
                logger.warning(
                    "RECORD STORE LOAD: table %r dropped %s non-object rows", name, len(rows) - len(kept)
                )
            tables[str(name)] = kept
        return tables

    def _persist(self, *, raise_errors: bool | None = None) -> None:
        should_raise = self._strict if raise_errors is None else raise_errors
        try:
            self._document.save(self._database)
        except Exception as e:
            logger.error("RECORD STORE PERSIST: failed to write %s: %r", self.path, e)
            if should_raise:
                raise PersistenceError(f"failed to write {self.path}") from e

    def _index_of(self, table: str, record_id: str) -> int | None:
        for i, row in enumerate(self._database.get(table, [])):
            if row.get("id") == record_id:
                return i
        return None

    # ---- queries ----

    def tables(self) -> list[str]:
        with self._lock:
            return list(self._database)

    def select(self, table: str, search: Mapping[str, Any] | None = None) -> list[Record]:
        """
        All records of `table`, or those where at least one `search` field
        contains its substring (case-insensitive). Missing tables yield [].
        """
        with self._lock:
            rows = self._database.get(table, [])
            if search:
                rows = [row for row in rows if _matches_any(row, search)]
            return copy.deepcopy(rows)

    def get(self, table: str, record_id: str) -> Record | None:
        with self._lock:
            i = self._index_of(table, record_id)
            if i is None:
                return None
            return copy.deepcopy(self._database[table][i])

    # ---- mutations ----

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        stored = copy.deepcopy(dict(record))
        with self._lock:
            self._database.setdefault(table, []).append(stored)
            self._persist()
            return copy.deepcopy(stored)

    def update(self, table: str, record_id: str, record: Mapping[str, Any]) -> bool:
        """Replace the record with `record`; its own `id` (if any) is ignored."""
        with self._lock:
            i = self._index_of(table, record_id)
            if i is None:
                return False
            fields = {k: copy.deepcopy(v) for k, v in record.items() if k != "id"}
            self._database[table][i] = {"id": record_id, **fields}
            self._persist()
            return True

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            i = self._index_of(table, record_id)
            if i is None:
                return False
            del self._database[table][i]
            self._persist()
            return True

    def move(
        self, source: str, target: str, record_id: str, changes: Mapping[str, Any] | None = None
    ) -> Record | None:
        """
        Remove a record from `source`, apply `changes` and append it to `target`
        with a single write. Returns the moved record, or None when absent.

        Raises RecordConflictError, without writing, when `target` already
        holds `record_id`. The check runs under the same lock as the move.
        """
        with self._lock:
            if self._index_of(target, record_id) is not None:
                raise RecordConflictError(target, record_id)
            i = self._index_of(source, record_id)
            if i is None:
                return None
            row = self._database[source].pop(i)
            row.update({k: copy.deepcopy(v) for k, v in (changes or {}).items() if k != "id"})
            self._database.setdefault(target, []).append(row)
            self._persist()
            return copy.deepcopy(row)
