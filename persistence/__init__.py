from __future__ import annotations

from .disk_store import DiskJsonDocumentStore
from .interfaces import DocumentStore, Record, RecordStore
from .record_store import JsonRecordStore, PersistenceError, RecordConflictError
from .repositories import AsyncRecordRepository, AsyncStoreRepository

__all__ = [
    "DocumentStore",
    "DiskJsonDocumentStore",
    "Record",
    "RecordStore",
    "JsonRecordStore",
    "PersistenceError",
    "RecordConflictError",
    "AsyncRecordRepository",
    "AsyncStoreRepository",
]
