"""Synchronization engine: transfers, catalog merge, quota and conflicts."""

from offgrid_sync.sync.change_detector import ChangeDetector
from offgrid_sync.sync.connectivity import ConnectivityMonitor
from offgrid_sync.sync.models import (
    MergeResult,
    ReconcileReport,
    ResolutionChoice,
    TransferReport,
    VaultStats,
)
from offgrid_sync.sync.quota import StorageLedger, content_size_cost, uniform_cost
from offgrid_sync.sync.sync_engine import SyncEngine
from offgrid_sync.sync.transfer import CancellationToken, SimulatedTransferDriver, TransferDriver

__all__ = [
    "CancellationToken",
    "ChangeDetector",
    "ConnectivityMonitor",
    "MergeResult",
    "ReconcileReport",
    "ResolutionChoice",
    "SimulatedTransferDriver",
    "StorageLedger",
    "SyncEngine",
    "TransferDriver",
    "TransferReport",
    "VaultStats",
    "content_size_cost",
    "uniform_cost",
]
