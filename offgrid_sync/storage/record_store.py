"""Record store interface and SQLite implementation for materialized records."""

import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import structlog
from pydantic import ValidationError

from offgrid_sync.models.record import Record

log = structlog.stdlib.get_logger()


class StorageError(RuntimeError):
    """Raised when a local store read or write fails."""

    pass


class RecordStoreInterface(ABC):
    """Abstract interface for key-addressed persistence of materialized records.

    The sync engine only talks to this contract, so it never knows which
    storage technology sits underneath. Every operation is atomic: a write
    is either fully visible to later reads or not at all.
    """

    @abstractmethod
    def put(self, record: Record) -> None:
        """Insert or replace a record, keyed by its id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def get(self, record_id: str) -> Record | None:
        """Retrieve a record by id, or None if it is not stored.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def get_all(self) -> list[Record]:
        """Retrieve every stored record, across all owners.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a record by id. Deleting a missing id is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every stored record.

        Raises:
            StorageError: If the wipe fails
        """
        pass

    def close(self) -> None:
        """Release any resources held by the store."""
        pass


class SQLiteRecordStore(RecordStoreInterface):
    """SQLite implementation of the record store.

    Records are stored as JSON payloads using the catalog's field aliases,
    one row per id, with the owner kept in its own column.
    """

    def __init__(self, db_path: str | Path, table: str = "offline_data"):
        """Initialize the SQLite record store.

        Args:
            db_path: Path to the database file (":memory:" for a private in-memory db)
            table: Table name holding the records

        Raises:
            StorageError: If the database cannot be opened or initialized
        """
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")

        self.db_path = str(db_path)
        self._table = table
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()

        try:
            with self._transaction() as conn:
                conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._table} ("
                    "id TEXT PRIMARY KEY, "
                    "owner_id TEXT, "
                    "payload TEXT NOT NULL)"
                )
            log.info("sqlite_record_store_initialized", db_path=self.db_path, table=table)
        except sqlite3.Error as e:
            log.error("sqlite_record_store_initialization_failed", db_path=self.db_path, error=str(e))
            raise StorageError(f"Failed to initialize record store: {e}") from e

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            with self._conn_lock:
                if self._conn is None:
                    self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        return self._conn

    def _transaction(self) -> sqlite3.Connection:
        """Return the connection for use as a commit-or-rollback context manager."""
        return self._get_connection()

    def put(self, record: Record) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO {self._table} (id, owner_id, payload) VALUES (?, ?, ?)",
                    (record.id, record.owner_id, record.model_dump_json(by_alias=True)),
                )
            log.debug("record_stored", record_id=record.id, owner_id=record.owner_id)
        except sqlite3.Error as e:
            log.error("failed_to_store_record", record_id=record.id, error=str(e))
            raise StorageError(f"Failed to store record {record.id}: {e}") from e

    def get(self, record_id: str) -> Record | None:
        try:
            row = (
                self._get_connection()
                .execute(f"SELECT payload FROM {self._table} WHERE id = ?", (record_id,))
                .fetchone()
            )
        except sqlite3.Error as e:
            log.error("failed_to_read_record", record_id=record_id, error=str(e))
            raise StorageError(f"Failed to read record {record_id}: {e}") from e

        if row is None:
            return None
        return self._decode(row[0])

    def get_all(self) -> list[Record]:
        try:
            rows = (
                self._get_connection()
                .execute(f"SELECT payload FROM {self._table} ORDER BY id")
                .fetchall()
            )
        except sqlite3.Error as e:
            log.error("failed_to_read_records", error=str(e))
            raise StorageError(f"Failed to read records: {e}") from e

        records = []
        for (payload,) in rows:
            record = self._decode(payload)
            if record is not None:
                records.append(record)
        return records

    def delete(self, record_id: str) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (record_id,))
            log.debug("record_deleted", record_id=record_id)
        except sqlite3.Error as e:
            log.error("failed_to_delete_record", record_id=record_id, error=str(e))
            raise StorageError(f"Failed to delete record {record_id}: {e}") from e

    def clear(self) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(f"DELETE FROM {self._table}")
            log.info("record_store_cleared", table=self._table)
        except sqlite3.Error as e:
            log.error("failed_to_clear_record_store", error=str(e))
            raise StorageError(f"Failed to clear record store: {e}") from e

    def close(self) -> None:
        """Close the underlying connection."""
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _decode(self, payload: str) -> Record | None:
        try:
            return Record.model_validate_json(payload)
        except ValidationError as e:
            # A corrupt row must not hide the rest of the vault
            log.warning("skipping_unreadable_record", error=str(e))
            return None
