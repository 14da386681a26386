"""Data models for synchronization operations."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from offgrid_sync.models.record import Record


class ResolutionChoice(str, Enum):
    """How a conflicted record is resolved."""

    KEEP_LOCAL = "keep-local"
    PULL_REMOTE = "pull-remote"


class MergeResult(BaseModel):
    """Outcome of merging the remote catalog with the local store."""

    records: list[Record] = Field(
        default_factory=list, description="Merged records, catalog order then orphans"
    )
    conflicted_ids: list[str] = Field(
        default_factory=list, description="Ids whose remote copy is newer than the local one"
    )
    orphan_ids: list[str] = Field(
        default_factory=list, description="Local copies the catalog no longer lists"
    )

    @property
    def has_conflicts(self) -> bool:
        """Check if any record needs resolution."""
        return bool(self.conflicted_ids)


class ReconcileReport(BaseModel):
    """Report of a reconcile run."""

    total: int = Field(default=0, ge=0, description="Records in the merged view")
    remote_only: int = Field(default=0, ge=0)
    materialized: int = Field(default=0, ge=0)
    conflicted: int = Field(default=0, ge=0)
    conflicted_ids: list[str] = Field(default_factory=list)
    orphan_ids: list[str] = Field(default_factory=list)
    used_fallback: bool = Field(default=False, description="Fallback catalog was served")
    skipped_reason: str | None = Field(default=None, description="Why reconcile did nothing")

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class TransferReport(BaseModel):
    """Report of a bulk or single-record transfer."""

    materialized_ids: list[str] = Field(
        default_factory=list, description="Records materialized by this run"
    )
    quota_exceeded: bool = Field(default=False, description="Admission control halted the run")
    halted_at: str | None = Field(default=None, description="Record refused by admission control")
    cancelled: bool = Field(default=False, description="The run was cancelled mid-transfer")
    cancel_reason: str | None = Field(default=None, description="user or offline")
    skipped_reason: str | None = Field(
        default=None, description="offline, already_transferring or nothing_to_transfer"
    )
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = Field(default=None)

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def completed(self) -> bool:
        """Check if the run went through its whole queue."""
        return not (self.skipped or self.quota_exceeded or self.cancelled)

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


class VaultStats(BaseModel):
    """Aggregate figures shown alongside the record list."""

    materialized_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    transferring_count: int = Field(default=0, ge=0)
    conflicted_count: int = Field(default=0, ge=0)
    remote_only_count: int = Field(default=0, ge=0)
    used_storage: int = Field(default=0, ge=0, description="Bytes held by local copies")
    capacity: int | None = Field(default=None, description="Quota in bytes, None if unbounded")
    is_transferring: bool = Field(default=False)
    is_online: bool = Field(default=True)

    @property
    def used_megabytes(self) -> float:
        return round(self.used_storage / 1_000_000, 1)

    @property
    def capacity_megabytes(self) -> float | None:
        if self.capacity is None:
            return None
        return round(self.capacity / 1_000_000, 1)
