"""Sync engine owning record status, transfers, quota and conflict resolution."""

import asyncio
import time
from contextlib import aclosing
from datetime import datetime
from typing import Any, Callable

import structlog

from offgrid_sync.ingestion.remote_source import RemoteSource
from offgrid_sync.models.config import AppConfig
from offgrid_sync.models.record import Identity, Record, RecordStatus
from offgrid_sync.query.projection import ProjectionOptions, project
from offgrid_sync.storage.record_store import RecordStoreInterface, SQLiteRecordStore, StorageError
from offgrid_sync.sync.change_detector import ChangeDetector
from offgrid_sync.sync.connectivity import ConnectivityMonitor
from offgrid_sync.sync.models import ReconcileReport, ResolutionChoice, TransferReport, VaultStats
from offgrid_sync.sync.quota import StorageLedger, uniform_cost
from offgrid_sync.sync.transfer import CancellationToken, SimulatedTransferDriver, TransferDriver

log = structlog.stdlib.get_logger()

# Fields copied from a catalog or stored version onto a live record
_CONTENT_FIELDS = ("title", "category", "content", "created_timestamp", "last_modified", "owner_id")


def epoch_millis() -> int:
    return int(time.time() * 1000)


class SyncEngine:
    """Offline vault engine: one instance per client session.

    The engine is the only mutator of record status. All operations run on
    one asyncio event loop; transfers suspend at each progress checkpoint so
    stop requests and connectivity changes are observed in between. At most
    one transfer (bulk or pull-remote) runs at a time.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        remote: RemoteSource,
        driver: TransferDriver | None = None,
        monitor: ConnectivityMonitor | None = None,
        ledger: StorageLedger | None = None,
        change_detector: ChangeDetector | None = None,
        identity: Identity | None = None,
        clock: Callable[[], int] = epoch_millis,
    ):
        """
        Initialize the sync engine.

        Args:
            store: Local record store
            remote: Remote catalog source
            driver: Transfer driver (simulated with default pacing if None)
            monitor: Connectivity signal (always-online monitor if None)
            ledger: Storage ledger (12.4 MB per record, unbounded, if None)
            change_detector: Catalog merge logic
            identity: Initially active identity, if any
            clock: Returns "now" in epoch millis
        """
        self._store = store
        self._remote = remote
        self._driver = driver or SimulatedTransferDriver()
        self._monitor = monitor or ConnectivityMonitor(online=True)
        self._ledger = ledger or StorageLedger(uniform_cost(12_400_000))
        self._change_detector = change_detector or ChangeDetector()
        self._identity = identity
        self._clock = clock

        self._records: list[Record] = []
        self._catalog: dict[str, Record] = {}
        self._token: CancellationToken | None = None
        self._pull_stale: Record | None = None
        self._view_options = ProjectionOptions()

        self._unsubscribe = self._monitor.subscribe(self._on_connectivity_change)

        log.info(
            "sync_engine_initialized",
            identity=identity.id if identity else None,
            capacity=self._ledger.capacity,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        store: RecordStoreInterface | None = None,
        remote: RemoteSource | None = None,
        monitor: ConnectivityMonitor | None = None,
        identity: Identity | None = None,
    ) -> "SyncEngine":
        """Build an engine with adapters created from configuration."""
        if store is None:
            store = SQLiteRecordStore(config.storage.path, config.storage.table)
        return cls(
            store=store,
            remote=remote or RemoteSource(config.remote),
            driver=SimulatedTransferDriver.from_config(config.transfer),
            monitor=monitor,
            ledger=StorageLedger.from_config(config.quota),
            identity=identity,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[Record]:
        """Snapshot of the merged records, in catalog order."""
        return [record.model_copy() for record in self._records]

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_transferring(self) -> bool:
        return self._token is not None

    @property
    def is_online(self) -> bool:
        return self._monitor.is_online

    @property
    def ledger(self) -> StorageLedger:
        return self._ledger

    def get_record(self, record_id: str) -> Record | None:
        record = self._find(record_id)
        return record.model_copy() if record is not None else None

    def stats(self) -> VaultStats:
        counts = {status: 0 for status in RecordStatus}
        for record in self._records:
            counts[record.status] += 1
        return VaultStats(
            materialized_count=counts[RecordStatus.MATERIALIZED],
            total_count=len(self._records),
            transferring_count=counts[RecordStatus.TRANSFERRING],
            conflicted_count=counts[RecordStatus.CONFLICTED],
            remote_only_count=counts[RecordStatus.REMOTE_ONLY],
            used_storage=self._ledger.used,
            capacity=self._ledger.capacity,
            is_transferring=self.is_transferring,
            is_online=self.is_online,
        )

    def set_filter(self, **options: Any) -> ProjectionOptions:
        """Update the current view's filter/sort settings.

        Only the given settings change; pass ``None`` to clear a filter.
        """
        self._view_options = ProjectionOptions(**{**self._view_options.model_dump(), **options})
        return self._view_options

    def view(self) -> list[Record]:
        """Current records projected through the current filter settings."""
        return project(self.records, self._view_options)

    # ------------------------------------------------------------------
    # Catalog merge
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        """
        Merge the remote catalog with the active identity's local copies.

        Returns:
            ReconcileReport with per-status counts

        Raises:
            StorageError: If the local store cannot be read
        """
        if self.is_transferring:
            log.info("reconcile_skipped", reason="transfer_in_progress")
            return ReconcileReport(skipped_reason="transfer_in_progress")

        identity = self._identity
        log.info("reconcile_started", identity=identity.id if identity else None)

        catalog = await asyncio.to_thread(self._remote.fetch_catalog)

        if self.is_transferring:
            log.info("reconcile_skipped", reason="transfer_in_progress")
            return ReconcileReport(skipped_reason="transfer_in_progress")
        if self._identity is not identity:
            log.info("reconcile_skipped", reason="identity_changed")
            return ReconcileReport(skipped_reason="identity_changed")

        local_records = [r for r in self._store.get_all() if r.owner_id == self._owner_id]
        result = self._change_detector.merge(catalog, local_records)

        self._catalog = {record.id: record for record in catalog}
        self._records = result.records
        self._ledger.rebuild(self._records)

        stats = self.stats()
        report = ReconcileReport(
            total=stats.total_count,
            remote_only=stats.remote_only_count,
            materialized=stats.materialized_count,
            conflicted=stats.conflicted_count,
            conflicted_ids=result.conflicted_ids,
            orphan_ids=result.orphan_ids,
            used_fallback=self._remote.fallback_active,
        )
        log.info(
            "reconcile_completed",
            total=report.total,
            materialized=report.materialized,
            conflicted=report.conflicted,
            used_fallback=report.used_fallback,
            used_storage=self._ledger.used,
        )
        return report

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def start_transfer(self) -> TransferReport:
        """
        Materialize every REMOTE_ONLY record, in catalog order.

        Admission control runs before each record. The first refusal halts
        the run and leaves the remaining records untouched.

        Returns:
            TransferReport describing what was materialized and why the run ended

        Raises:
            StorageError: If persisting a record fails; that record stays REMOTE_ONLY
        """
        report = TransferReport()

        if self.is_transferring:
            return self._skip(report, "already_transferring")
        if not self.is_online:
            return self._skip(report, "offline")

        queue = [record for record in self._records if record.status == RecordStatus.REMOTE_ONLY]
        if not queue:
            return self._skip(report, "nothing_to_transfer")

        token = CancellationToken()
        self._token = token
        log.info("transfer_started", queued=len(queue), used_storage=self._ledger.used)

        try:
            for record in queue:
                if token.cancelled:
                    break
                if record.status != RecordStatus.REMOTE_ONLY:
                    continue

                source = self._catalog.get(record.id, record)
                if not self._ledger.admits(source):
                    report.quota_exceeded = True
                    report.halted_at = record.id
                    log.warning(
                        "quota_exceeded",
                        record_id=record.id,
                        used_storage=self._ledger.used,
                        cost=self._ledger.cost_of(source),
                        capacity=self._ledger.capacity,
                    )
                    break

                if not await self._transfer_one(record, source, token):
                    break
                report.materialized_ids.append(record.id)

            if token.cancelled:
                report.cancelled = True
                report.cancel_reason = token.reason
        finally:
            if self._token is token:
                self._token = None
            report.end_time = datetime.now()

        log.info(
            "transfer_finished",
            materialized=len(report.materialized_ids),
            quota_exceeded=report.quota_exceeded,
            cancelled=report.cancelled,
            cancel_reason=report.cancel_reason,
            used_storage=self._ledger.used,
            duration_seconds=report.duration_seconds,
        )
        return report

    def stop_transfer(self, reason: str = "user") -> None:
        """
        Cancel the running transfer and revert in-flight records.

        Safe to call at any time; with nothing transferring it changes nothing.

        Args:
            reason: Recorded on the cancellation token (user, offline, ...)
        """
        token = self._token
        reverted: list[str] = []
        for record in list(self._records):
            if record.status == RecordStatus.TRANSFERRING:
                record.transition_to(RecordStatus.REMOTE_ONLY)
                self._restore_stale(record)
                reverted.append(record.id)

        if token is None and not reverted:
            log.debug("stop_transfer_ignored", reason=reason)
            return

        if token is not None:
            token.cancel(reason)
        self._token = None
        log.info("transfer_stopped", reason=reason, reverted=reverted)

    async def _transfer_one(
        self, record: Record, source: Record, token: CancellationToken
    ) -> bool:
        """
        Run the transfer protocol for one REMOTE_ONLY record.

        Args:
            record: Live record to materialize
            source: Catalog version to store
            token: Cancellation token of the surrounding operation

        Returns:
            True if the record was materialized, False if cancelled

        Raises:
            StorageError: If the store write fails; the record is reverted first
        """
        record.transition_to(RecordStatus.TRANSFERRING)
        log.debug("record_transfer_started", record_id=record.id)

        async with aclosing(self._driver.transfer(source)) as checkpoints:
            async for progress in checkpoints:
                if token.cancelled:
                    self._abandon(record, token)
                    return False
                record.transfer_progress = max(record.transfer_progress, min(progress, 100))

        if token.cancelled:
            self._abandon(record, token)
            return False

        stored = source.model_copy(
            update={
                "status": RecordStatus.MATERIALIZED,
                "transfer_progress": 0,
                "last_modified": self._clock(),
                "owner_id": self._owner_id,
            }
        )
        try:
            self._store.put(stored)
        except StorageError:
            record.transition_to(RecordStatus.REMOTE_ONLY)
            log.error("record_transfer_failed", record_id=record.id)
            raise

        self._copy_fields(stored, record)
        record.transition_to(RecordStatus.MATERIALIZED)
        self._ledger.charge(record)
        log.info("record_materialized", record_id=record.id, used_storage=self._ledger.used)
        return True

    def _abandon(self, record: Record, token: CancellationToken) -> None:
        # stop_transfer has usually reverted the record already; a loop that
        # lost its token must not touch a record a newer transfer now owns
        if self._token is token and record.status == RecordStatus.TRANSFERRING:
            record.transition_to(RecordStatus.REMOTE_ONLY)
        log.info("record_transfer_cancelled", record_id=record.id, reason=token.reason)

    def _on_connectivity_change(self, online: bool) -> None:
        if not online and self.is_transferring:
            self.stop_transfer(reason="offline")

    # ------------------------------------------------------------------
    # Conflict resolution
    # ------------------------------------------------------------------

    async def resolve_conflict(self, record_id: str, choice: ResolutionChoice) -> Record | None:
        """
        Resolve a CONFLICTED record.

        KEEP_LOCAL re-persists the local copy as the newest version.
        PULL_REMOTE replaces it with the catalog version through the
        transfer protocol. The stored copy is only overwritten once the new
        version is written, so a cancelled or failed pull leaves the record
        CONFLICTED with its local copy intact.

        Args:
            record_id: Id of the conflicted record
            choice: KEEP_LOCAL or PULL_REMOTE

        Returns:
            Snapshot of the record afterwards, or None if nothing was done
            (unknown id, not conflicted, offline, busy or over quota)

        Raises:
            StorageError: If the store write fails; the record stays CONFLICTED
        """
        choice = ResolutionChoice(choice)
        record = self._find(record_id)
        if record is None or record.status != RecordStatus.CONFLICTED:
            log.info(
                "resolution_ignored",
                record_id=record_id,
                status=record.status.value if record else None,
            )
            return None

        if choice == ResolutionChoice.KEEP_LOCAL:
            return self._keep_local(record)
        return await self._pull_remote(record)

    def _keep_local(self, record: Record) -> Record:
        stored = record.model_copy(
            update={
                "status": RecordStatus.MATERIALIZED,
                "transfer_progress": 0,
                "last_modified": self._clock(),
                "owner_id": self._owner_id,
            }
        )
        self._store.put(stored)

        self._copy_fields(stored, record)
        record.transition_to(RecordStatus.MATERIALIZED)
        log.info("conflict_resolved", record_id=record.id, choice=ResolutionChoice.KEEP_LOCAL.value)
        return record.model_copy()

    async def _pull_remote(self, record: Record) -> Record | None:
        if self.is_transferring or not self.is_online:
            log.info(
                "resolution_deferred",
                record_id=record.id,
                transferring=self.is_transferring,
                online=self.is_online,
            )
            return None

        remote = self._catalog.get(record.id)
        if remote is None:
            log.warning("resolution_without_catalog_version", record_id=record.id)
            return None

        if not self._ledger.admits(remote, releasing=[record.id]):
            log.warning(
                "quota_exceeded",
                record_id=record.id,
                used_storage=self._ledger.used,
                capacity=self._ledger.capacity,
            )
            return None

        stale = record.model_copy()
        self._pull_stale = stale
        self._ledger.release(record.id)
        record.transition_to(RecordStatus.REMOTE_ONLY)
        self._copy_fields(remote, record)

        token = CancellationToken()
        self._token = token
        try:
            materialized = await self._transfer_one(record, remote, token)
        except StorageError:
            self._restore_stale(record)
            raise
        finally:
            self._pull_stale = None
            if self._token is token:
                self._token = None

        if not materialized:
            log.info(
                "conflict_resolution_cancelled",
                record_id=record.id,
                choice=ResolutionChoice.PULL_REMOTE.value,
                reason=token.reason,
            )
            return stale.model_copy()

        log.info("conflict_resolved", record_id=record.id, choice=ResolutionChoice.PULL_REMOTE.value)
        return record.model_copy()

    def _restore_stale(self, record: Record) -> None:
        # An unfinished pull-remote never replaced the stored row, so its
        # local copy becomes the live record again, still CONFLICTED
        stale = self._pull_stale
        if stale is None or stale.id != record.id:
            return
        self._pull_stale = None
        for index, live in enumerate(self._records):
            if live is record:
                self._records[index] = stale
                self._ledger.charge(stale)
                return

    # ------------------------------------------------------------------
    # Identity, deletion and push
    # ------------------------------------------------------------------

    async def set_identity(self, identity: Identity | None) -> ReconcileReport:
        """
        Switch the active identity and rebuild state under it.

        Any transfer is stopped and all in-memory state is dropped before
        the new identity's records are reconciled.
        """
        self.stop_transfer(reason="identity_changed")
        self._records = []
        self._catalog = {}
        self._ledger.reset()
        self._identity = identity
        log.info("identity_changed", identity=identity.id if identity else None)
        return await self.reconcile()

    def purge_all(self, wipe: bool = False) -> int:
        """
        Remove local copies and revert their records to REMOTE_ONLY.

        Args:
            wipe: Clear the entire store, every identity included, instead of
                only the active identity's copies

        Returns:
            Number of local copies removed from the current view

        Raises:
            StorageError: If the store cannot be cleared or a delete fails
        """
        self.stop_transfer(reason="purge")

        if wipe:
            self._store.clear()

        removed = 0
        for record in list(self._records):
            if not record.status.holds_local_copy:
                continue
            if not wipe:
                self._store.delete(record.id)
            self._revert_to_remote(record)
            removed += 1

        log.info("vault_purged", removed=removed, wipe=wipe, used_storage=self._ledger.used)
        return removed

    def delete_record(self, record_id: str) -> bool:
        """
        Remove one record's local copy.

        Returns:
            True if a local copy was removed, False if there was none

        Raises:
            StorageError: If the delete fails; the record keeps its status
        """
        record = self._find(record_id)
        if record is None or not record.status.holds_local_copy:
            log.info("delete_ignored", record_id=record_id)
            return False

        self._store.delete(record.id)
        self._revert_to_remote(record)
        log.info("record_deleted", record_id=record_id, used_storage=self._ledger.used)
        return True

    async def push_record(self, record_id: str) -> dict[str, Any] | None:
        """
        Push a local copy back to the remote catalog as the signed-in identity.

        Returns:
            The remote's response, or None when offline, signed out, or the
            record has no local copy
        """
        record = self._find(record_id)
        identity = self._identity
        if (
            record is None
            or not record.status.holds_local_copy
            or identity is None
            or identity.token is None
            or not self.is_online
        ):
            log.info("push_skipped", record_id=record_id)
            return None

        return await asyncio.to_thread(self._remote.push_record, record.model_copy(), identity.token)

    def close(self) -> None:
        """Stop any transfer, detach from the connectivity monitor and close the store."""
        self.stop_transfer(reason="closed")
        self._unsubscribe()
        self._store.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _owner_id(self) -> str | None:
        return self._identity.id if self._identity else None

    def _find(self, record_id: str) -> Record | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def _revert_to_remote(self, record: Record) -> None:
        self._ledger.release(record.id)
        remote = self._catalog.get(record.id)
        if remote is None:
            # Local-only record: nothing remote to fall back to
            self._records.remove(record)
            return
        record.transition_to(RecordStatus.REMOTE_ONLY)
        self._copy_fields(remote, record)

    @staticmethod
    def _copy_fields(source: Record, target: Record) -> None:
        for name in _CONTENT_FIELDS:
            setattr(target, name, getattr(source, name))

    def _skip(self, report: TransferReport, reason: str) -> TransferReport:
        report.skipped_reason = reason
        report.end_time = datetime.now()
        log.info("transfer_skipped", reason=reason)
        return report
