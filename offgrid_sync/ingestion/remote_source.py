"""Remote catalog client with a built-in fallback catalog."""

from typing import Any

import requests
import structlog
from pydantic import ValidationError
from requests.exceptions import RequestException

from offgrid_sync.models.config import RemoteConfig
from offgrid_sync.models.record import Record, RecordStatus
from offgrid_sync.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()


FALLBACK_CATALOG: tuple[Record, ...] = (
    Record(
        id="DATA-001",
        title="Network Config Pack",
        category="WIFI",
        content="Pre-cached local network settings for high-speed offline access.",
        created_timestamp="2024-05-10",
        last_modified=1715340000000,
    ),
    Record(
        id="DATA-002",
        title="Offline Resource Bundle",
        category="SYSTEM",
        content="Core system assets and media files for disconnected browsing.",
        created_timestamp="2024-05-12",
        last_modified=1715512800000,
    ),
    Record(
        id="DATA-003",
        title="Field Operations Guide",
        category="MANUAL",
        content="Step-by-step procedures for manual network overrides.",
        created_timestamp="2024-05-14",
        last_modified=1715685600000,
    ),
    Record(
        id="DATA-004",
        title="Security Auth Keys",
        category="AUTH",
        content="Encrypted tokens required for offline device verification.",
        created_timestamp="2024-05-15",
        last_modified=1715772000000,
    ),
    Record(
        id="DATA-005",
        title="Universal Map Data",
        category="GEO",
        content="High-resolution offline terrain mapping for global navigation.",
        created_timestamp="2024-05-16",
        last_modified=1715858400000,
    ),
)


class RemoteSource:
    """Client for the canonical record catalog.

    Catalog fetches never raise: on timeout, connection failure, HTTP error
    or an undecodable payload the client degrades to ``FALLBACK_CATALOG``.
    """

    def __init__(
        self,
        config: RemoteConfig | None = None,
        session: requests.Session | None = None,
        fallback: tuple[Record, ...] = FALLBACK_CATALOG,
    ):
        """
        Initialize the remote source.

        Args:
            config: Remote catalog configuration (defaults if None)
            session: Optional requests session (one is created if None)
            fallback: Catalog served when the remote is unavailable
        """
        self._config = config or RemoteConfig()
        self._base_url = self._config.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._fallback = fallback
        self.fallback_active = False
        log.info(
            "remote_source_initialized",
            base_url=self._base_url,
            timeout_seconds=self._config.timeout_seconds,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def fetch_catalog(self) -> list[Record]:
        """
        Fetch the full remote catalog.

        Returns:
            Catalog records in catalog order, each REMOTE_ONLY with no owner
        """
        log.info("fetching_catalog", base_url=self._base_url)

        fetch = exponential_backoff_retry(
            max_retries=self._config.max_retries,
            base_delay=self._config.retry_base_delay,
            max_delay=self._config.timeout_seconds * 4,
            exceptions=(RequestException,),
        )(self._request_catalog)

        try:
            payload = fetch()
            records = self._parse_catalog(payload)
        except (RequestException, ValueError) as e:
            log.warning(
                "catalog_fetch_failed_using_fallback",
                base_url=self._base_url,
                error=str(e),
                fallback_count=len(self._fallback),
            )
            self.fallback_active = True
            return [record.as_remote() for record in self._fallback]

        self.fallback_active = False
        log.info("catalog_fetched", record_count=len(records))
        return records

    def push_record(self, record: Record, token: str) -> dict[str, Any]:
        """
        Push a locally held record's content back to the remote catalog.

        Args:
            record: Record to push
            token: Bearer token of the signed-in identity

        Returns:
            The remote's JSON response, or ``{"success": False, "error": ...}``
            when the remote cannot be reached
        """
        url = f"{self._base_url}/data/{record.id}"
        log.info("pushing_record", record_id=record.id, url=url)

        try:
            response = self._session.patch(
                url,
                json=record.model_dump(mode="json", by_alias=True),
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
            result = response.json()
        except (RequestException, ValueError) as e:
            log.error("record_push_failed", record_id=record.id, error=str(e))
            return {"success": False, "error": "Cloud unreachable"}

        log.info("record_pushed", record_id=record.id)
        return result

    def is_reachable(self) -> bool:
        """Probe the catalog endpoint once, without retries."""
        try:
            response = self._session.head(
                f"{self._base_url}/data", timeout=self._config.timeout_seconds
            )
        except RequestException as e:
            log.info("remote_unreachable", base_url=self._base_url, error=str(e))
            return False
        return response.status_code < 500

    def _request_catalog(self) -> Any:
        response = self._session.get(
            f"{self._base_url}/data", timeout=self._config.timeout_seconds
        )
        response.raise_for_status()
        return response.json()

    def _parse_catalog(self, payload: Any) -> list[Record]:
        """
        Convert a catalog JSON payload to records.

        Raises:
            ValueError: If the payload is not a list or no entry is usable
        """
        if not isinstance(payload, list):
            raise ValueError(f"Catalog payload must be a list, got {type(payload).__name__}")

        records: list[Record] = []
        seen: set[str] = set()
        for entry in payload:
            try:
                record = Record.model_validate(entry)
            except ValidationError as e:
                log.warning(
                    "skipping_invalid_catalog_entry",
                    record_id=entry.get("id") if isinstance(entry, dict) else None,
                    error=str(e),
                )
                continue
            if record.id in seen:
                log.warning("skipping_duplicate_catalog_entry", record_id=record.id)
                continue
            seen.add(record.id)
            records.append(
                record.model_copy(
                    update={
                        "status": RecordStatus.REMOTE_ONLY,
                        "transfer_progress": 0,
                        "owner_id": None,
                    }
                )
            )

        if payload and not records:
            raise ValueError("Catalog payload contained no valid records")

        return records
