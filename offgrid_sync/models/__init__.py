"""Data models for the offgrid sync vault."""

from offgrid_sync.models.config import (
    AppConfig,
    LoggingConfig,
    QuotaConfig,
    RemoteConfig,
    StorageConfig,
    TransferConfig,
)
from offgrid_sync.models.record import (
    ALLOWED_TRANSITIONS,
    Identity,
    IllegalTransitionError,
    Record,
    RecordStatus,
)

__all__ = [
    "Record",
    "RecordStatus",
    "Identity",
    "IllegalTransitionError",
    "ALLOWED_TRANSITIONS",
    "AppConfig",
    "LoggingConfig",
    "QuotaConfig",
    "RemoteConfig",
    "StorageConfig",
    "TransferConfig",
]
