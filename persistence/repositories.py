from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol

from .interfaces import Record, RecordStore


class AsyncRecordRepository(Protocol):
    async def select(self, table: str, search: Mapping[str, Any] | None = None) -> list[Record]: ...
    async def get(self, table: str, record_id: str) -> Record | None: ...
    async def insert(self, table: str, record: Mapping[str, Any]) -> Record: ...
    async def update(self, table: str, record_id: str, record: Mapping[str, Any]) -> bool: ...
    async def delete(self, table: str, record_id: str) -> bool: ...
    async def move(
        self, source: str, target: str, record_id: str, changes: Mapping[str, Any] | None = None
    ) -> Record | None: ...


class AsyncStoreRepository(AsyncRecordRepository):
    """
    Async wrapper around a record store.
    Uses asyncio.to_thread to avoid blocking the event loop on file I/O.

    A write that has started in the worker thread runs to completion even if
    the awaiting request is cancelled, so the file is never left half-written.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    async def select(self, table: str, search: Mapping[str, Any] | None = None) -> list[Record]:
        return await asyncio.to_thread(self._store.select, table, search)

    async def get(self, table: str, record_id: str) -> Record | None:
        return await asyncio.to_thread(self._store.get, table, record_id)

    async def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        return await asyncio.to_thread(self._store.insert, table, record)

    async def update(self, table: str, record_id: str, record: Mapping[str, Any]) -> bool:
        return await asyncio.to_thread(self._store.update, table, record_id, record)

    async def delete(self, table: str, record_id: str) -> bool:
        return await asyncio.to_thread(self._store.delete, table, record_id)

    async def move(
        self, source: str, target: str, record_id: str, changes: Mapping[str, Any] | None = None
    ) -> Record | None:
        return await asyncio.to_thread(self._store.move, source, target, record_id, changes)
