"""Formatting of records, stats and reports for display."""

from typing import Any

import structlog

from offgrid_sync.models.record import Record, RecordStatus
from offgrid_sync.sync.models import ReconcileReport, TransferReport, VaultStats

log = structlog.stdlib.get_logger()

STATUS_LABELS: dict[RecordStatus, str] = {
    RecordStatus.REMOTE_ONLY: "Not Downloaded",
    RecordStatus.TRANSFERRING: "Downloading",
    RecordStatus.MATERIALIZED: "Downloaded",
    RecordStatus.CONFLICTED: "Out of Sync",
}


class ResultFormatter:
    """Formats vault state for display in the console or a UI.

    Text methods return strings for the CLI; card methods return plain
    dictionaries for richer front ends.
    """

    def __init__(self, excerpt_length: int = 80) -> None:
        """Initialize the formatter.

        Args:
            excerpt_length: Maximum characters of content shown per record
        """
        self.excerpt_length = excerpt_length

    def format_records(self, records: list[Record]) -> str:
        """Format a record list as readable text."""
        if not records:
            return "No records to show."

        lines = [f"{len(records)} record(s):"]
        for i, record in enumerate(records, 1):
            status = STATUS_LABELS[record.status]
            if record.status == RecordStatus.TRANSFERRING:
                status = f"{status} {record.transfer_progress}%"
            lines.append(f"\n{i}. [{record.id}] {record.title}")
            lines.append(f"   Category: {record.category}   Status: {status}")
            lines.append(f"   {self._create_excerpt(record.content, self.excerpt_length)}")

        log.debug("records_formatted", count=len(records))
        return "\n".join(lines)

    def format_stats(self, stats: VaultStats) -> str:
        """Format aggregate vault figures, storage shown in MB."""
        capacity = (
            "unlimited" if stats.capacity_megabytes is None else f"{stats.capacity_megabytes} MB"
        )
        connection = "online" if stats.is_online else "offline (local memory only)"
        return "\n".join(
            [
                f"Connection:     {connection}",
                f"Downloaded:     {stats.materialized_count} / {stats.total_count}",
                f"Not Downloaded: {stats.remote_only_count}",
                f"Downloading:    {stats.transferring_count}",
                f"Out of Sync:    {stats.conflicted_count}",
                f"Storage:        {stats.used_megabytes} MB of {capacity}",
            ]
        )

    def format_transfer_report(self, report: TransferReport) -> str:
        if report.skipped_reason == "offline":
            return "Download skipped: no connection."
        if report.skipped_reason == "already_transferring":
            return "Download skipped: a download is already running."
        if report.skipped_reason == "nothing_to_transfer":
            return "Nothing to download."

        lines = [f"Downloaded {len(report.materialized_ids)} record(s)."]
        if report.quota_exceeded:
            lines.append(f"Storage quota reached at {report.halted_at}; remaining records skipped.")
        if report.cancelled:
            lines.append(f"Download cancelled ({report.cancel_reason}).")
        return "\n".join(lines)

    def format_reconcile_report(self, report: ReconcileReport) -> str:
        if report.skipped:
            return f"Reconcile skipped: {report.skipped_reason.replace('_', ' ')}."

        lines = [
            f"Catalog merged: {report.total} record(s), {report.materialized} downloaded, "
            f"{report.conflicted} out of sync."
        ]
        if report.used_fallback:
            lines.append("Remote catalog unreachable; showing the built-in catalog.")
        for record_id in report.conflicted_ids:
            lines.append(f"  {record_id}: remote copy is newer (resolve with keep-local or pull-remote)")
        return "\n".join(lines)

    def create_record_card(self, record: Record) -> dict[str, Any]:
        """Create a card dictionary for a single record."""
        return {
            "id": record.id,
            "title": record.title,
            "category": record.category,
            "excerpt": self._create_excerpt(record.content, self.excerpt_length),
            "status": record.status.value,
            "status_label": STATUS_LABELS[record.status],
            "progress": record.transfer_progress,
            "available_offline": record.status.holds_local_copy,
            "needs_resolution": record.status == RecordStatus.CONFLICTED,
            "created": record.created_timestamp,
            "last_modified": record.last_modified,
        }

    def create_record_cards(self, records: list[Record]) -> list[dict[str, Any]]:
        cards = [self.create_record_card(record) for record in records]
        log.debug("record_cards_created", count=len(cards))
        return cards

    def _create_excerpt(self, content: str, max_length: int) -> str:
        """Create a content excerpt with ellipsis if needed.

        Breaks at a sentence end when one falls past the halfway mark,
        otherwise at the last space.
        """
        if len(content) <= max_length:
            return content

        excerpt = content[:max_length]

        last_sentence_end = max(excerpt.rfind(". "), excerpt.rfind("? "), excerpt.rfind("! "))

        if last_sentence_end > max_length * 0.5:
            return excerpt[: last_sentence_end + 1]

        last_space = excerpt.rfind(" ")
        if last_space > 0:
            excerpt = excerpt[:last_space]
        return excerpt + "..."
