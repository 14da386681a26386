"""Shared fixtures and fakes for the vault tests."""

import asyncio
import itertools
import logging
from typing import AsyncIterator

import pytest
import structlog

from offgrid_sync.ingestion.remote_source import FALLBACK_CATALOG, RemoteSource
from offgrid_sync.models.config import RemoteConfig
from offgrid_sync.models.record import Identity, Record
from offgrid_sync.storage.memory_store import InMemoryRecordStore
from offgrid_sync.storage.record_store import StorageError
from offgrid_sync.sync.connectivity import ConnectivityMonitor
from offgrid_sync.sync.quota import StorageLedger, uniform_cost
from offgrid_sync.sync.sync_engine import SyncEngine
from offgrid_sync.sync.transfer import SimulatedTransferDriver, TransferDriver

UNIT = 12_400_000


class FakeRemoteSource(RemoteSource):
    """Remote source serving an editable in-memory catalog."""

    def __init__(self, catalog: list[Record] | None = None):
        super().__init__(RemoteConfig(base_url="http://vault.test/api"))
        if catalog is None:
            catalog = [record.as_remote() for record in FALLBACK_CATALOG]
        self.catalog = [record.model_copy() for record in catalog]
        self.fetch_count = 0
        self.pushed: list[tuple[str, str]] = []

    def fetch_catalog(self) -> list[Record]:
        self.fetch_count += 1
        self.fallback_active = False
        return [record.model_copy() for record in self.catalog]

    def push_record(self, record: Record, token: str) -> dict:
        self.pushed.append((record.id, token))
        return {"success": True, "id": record.id}

    def is_reachable(self) -> bool:
        return True

    def touch(self, record_id: str, last_modified: int, content: str | None = None) -> None:
        """Simulate a remote edit of one record."""
        for index, record in enumerate(self.catalog):
            if record.id == record_id:
                update: dict = {"last_modified": last_modified}
                if content is not None:
                    update["content"] = content
                self.catalog[index] = record.model_copy(update=update)
                return
        raise KeyError(record_id)


class GatedTransferDriver(TransferDriver):
    """Driver that parks a transfer right after a given checkpoint until released."""

    def __init__(
        self,
        pause_after: int = 40,
        pause_record: str | None = None,
        checkpoints: tuple[int, ...] = (20, 40, 60, 80, 100),
    ):
        self.pause_after = pause_after
        self.pause_record = pause_record
        self.checkpoints = checkpoints
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def transfer(self, record: Record) -> AsyncIterator[int]:
        for progress in self.checkpoints:
            await asyncio.sleep(0)
            yield progress
            parked = self.pause_record is None or record.id == self.pause_record
            if parked and progress == self.pause_after and not self.release.is_set():
                self.reached.set()
                await self.release.wait()


class FailingStore(InMemoryRecordStore):
    """Store whose writes fail once ``fail_puts`` is set."""

    def __init__(self, records: list[Record] | None = None):
        super().__init__(records)
        self.fail_puts = False
        self.fail_deletes = False

    def put(self, record: Record) -> None:
        if self.fail_puts:
            raise StorageError(f"disk full while storing {record.id}")
        super().put(record)

    def delete(self, record_id: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"cannot delete {record_id}")
        super().delete(record_id)


def make_catalog(count: int = 5, base_modified: int = 1_715_340_000_000) -> list[Record]:
    return [
        Record(
            id=f"DATA-{i:03d}",
            title=f"Record {i}",
            category="SYSTEM" if i % 2 else "WIFI",
            content=f"Payload for record {i}.",
            created_timestamp="2024-05-10",
            last_modified=base_modified + i,
        )
        for i in range(1, count + 1)
    ]


def make_clock(start: int = 2_000_000_000_000):
    counter = itertools.count(start)
    return lambda: next(counter)


def make_engine(
    catalog: list[Record] | None = None,
    store: InMemoryRecordStore | None = None,
    capacity: int | None = None,
    driver: TransferDriver | None = None,
    monitor: ConnectivityMonitor | None = None,
    identity: Identity | None = None,
    remote: FakeRemoteSource | None = None,
) -> SyncEngine:
    return SyncEngine(
        store=store if store is not None else InMemoryRecordStore(),
        remote=remote or FakeRemoteSource(catalog if catalog is not None else make_catalog()),
        driver=driver or SimulatedTransferDriver(step_delay=0),
        monitor=monitor or ConnectivityMonitor(online=True),
        ledger=StorageLedger(uniform_cost(UNIT), capacity),
        identity=identity,
        clock=make_clock(),
    )


@pytest.fixture
def catalog() -> list[Record]:
    return make_catalog()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=True)


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach log handlers from streams a test may have captured."""
    yield
    logging.basicConfig(force=True)
    structlog.reset_defaults()
