"""Local persistence for materialized records."""

from offgrid_sync.storage.memory_store import InMemoryRecordStore
from offgrid_sync.storage.record_store import (
    RecordStoreInterface,
    SQLiteRecordStore,
    StorageError,
)

__all__ = [
    "InMemoryRecordStore",
    "RecordStoreInterface",
    "SQLiteRecordStore",
    "StorageError",
]
