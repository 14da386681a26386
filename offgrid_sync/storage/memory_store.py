"""In-memory record store for ephemeral sessions and tests."""

import structlog

from offgrid_sync.models.record import Record
from offgrid_sync.storage.record_store import RecordStoreInterface

log = structlog.stdlib.get_logger()


class InMemoryRecordStore(RecordStoreInterface):
    """Dictionary-backed record store.

    Records are copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self, records: list[Record] | None = None):
        self._records: dict[str, Record] = {}
        for record in records or []:
            self._records[record.id] = record.model_copy()
        log.info("in_memory_record_store_initialized", count=len(self._records))

    def put(self, record: Record) -> None:
        self._records[record.id] = record.model_copy()

    def get(self, record_id: str) -> Record | None:
        record = self._records.get(record_id)
        return record.model_copy() if record is not None else None

    def get_all(self) -> list[Record]:
        return [self._records[key].model_copy() for key in sorted(self._records)]

    def delete(self, record_id: str) -> None:
        self._records.pop(record_id, None)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
