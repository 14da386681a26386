"""Remote catalog access"""

from offgrid_sync.ingestion.remote_source import FALLBACK_CATALOG, RemoteSource

__all__ = ["FALLBACK_CATALOG", "RemoteSource"]
