"""Merging the remote catalog with local copies and detecting conflicts."""

import structlog

from offgrid_sync.models.record import Record, RecordStatus
from offgrid_sync.sync.models import MergeResult

log = structlog.stdlib.get_logger()


class ChangeDetector:
    """Detects stale local copies by comparing modification timestamps."""

    def merge(self, catalog: list[Record], local_records: list[Record]) -> MergeResult:
        """
        Merge catalog records with the local copies of the active identity.

        For every catalog record: with no local copy the merged record is the
        remote one, REMOTE_ONLY. With a local copy it keeps the local fields
        and is MATERIALIZED, or CONFLICTED when the remote copy is strictly
        newer. Local copies missing from the catalog are kept, after the
        catalog entries, in id order.

        Args:
            catalog: Records from the remote catalog, in catalog order
            local_records: Stored records already filtered to the active identity

        Returns:
            MergeResult holding the merged list and the conflicted/orphan ids
        """
        log.info(
            "merging_catalog",
            catalog_count=len(catalog),
            local_count=len(local_records),
        )

        local_by_id = self.index_local_copies(local_records)

        merged: list[Record] = []
        conflicted_ids: list[str] = []
        seen: set[str] = set()

        for remote in catalog:
            if remote.id in seen:
                continue
            seen.add(remote.id)

            local = local_by_id.get(remote.id)
            if local is None:
                merged.append(remote.as_remote())
                continue

            if self.is_stale(local, remote):
                conflicted_ids.append(remote.id)
                merged.append(self._with_status(local, RecordStatus.CONFLICTED))
            else:
                merged.append(self._with_status(local, RecordStatus.MATERIALIZED))

        orphan_ids = sorted(set(local_by_id) - seen)
        for record_id in orphan_ids:
            merged.append(self._with_status(local_by_id[record_id], RecordStatus.MATERIALIZED))

        result = MergeResult(records=merged, conflicted_ids=conflicted_ids, orphan_ids=orphan_ids)

        log.info(
            "catalog_merged",
            total=len(merged),
            conflicted=len(conflicted_ids),
            orphans=len(orphan_ids),
        )
        return result

    def index_local_copies(self, local_records: list[Record]) -> dict[str, Record]:
        """Index usable local copies by id.

        Only MATERIALIZED copies count; anything else in the store is a
        leftover and is ignored.
        """
        indexed: dict[str, Record] = {}
        for record in local_records:
            if record.status != RecordStatus.MATERIALIZED:
                log.warning(
                    "ignoring_local_copy_with_unexpected_status",
                    record_id=record.id,
                    status=record.status.value,
                )
                continue
            indexed[record.id] = record
        return indexed

    def is_stale(self, local: Record, remote: Record) -> bool:
        """
        Check whether the remote copy is strictly newer than the local one.

        Args:
            local: Materialized local copy
            remote: Catalog copy of the same id

        Returns:
            True if the local copy is out of date
        """
        stale = remote.last_modified > local.last_modified
        if stale:
            log.debug(
                "stale_local_copy_detected",
                record_id=local.id,
                local_modified=local.last_modified,
                remote_modified=remote.last_modified,
            )
        return stale

    def _with_status(self, record: Record, status: RecordStatus) -> Record:
        return record.model_copy(update={"status": status, "transfer_progress": 0})
