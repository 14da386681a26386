"""Storage accounting and admission control for the local vault."""

from typing import Callable, Iterable

import structlog

from offgrid_sync.models.config import QuotaConfig
from offgrid_sync.models.record import Record

log = structlog.stdlib.get_logger()

CostFunction = Callable[[Record], int]


def uniform_cost(unit_cost_bytes: int) -> CostFunction:
    """Every record costs the same fixed amount."""

    def cost(record: Record) -> int:
        return unit_cost_bytes

    return cost


def content_size_cost(overhead_bytes: int) -> CostFunction:
    """A record costs its UTF-8 content size plus a fixed overhead."""

    def cost(record: Record) -> int:
        return len(record.content.encode("utf-8")) + overhead_bytes

    return cost


def cost_function_from_config(config: QuotaConfig) -> CostFunction:
    if config.cost_policy == "content_size":
        return content_size_cost(config.unit_cost_bytes)
    return uniform_cost(config.unit_cost_bytes)


class StorageLedger:
    """Running total of storage held by local copies.

    The total is maintained incrementally from per-record charges. The
    charge recorded for an id is what gets released later, so the total
    always equals a rescan of the charged records, even if a record's cost
    would be different today.
    """

    def __init__(self, cost: CostFunction, capacity: int | None = None):
        """
        Initialize the ledger.

        Args:
            cost: Deterministic per-record cost in bytes
            capacity: Maximum total in bytes, or None for unbounded
        """
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive or None")
        self._cost = cost
        self._capacity = capacity
        self._charges: dict[str, int] = {}
        self._used = 0

    @classmethod
    def from_config(cls, config: QuotaConfig) -> "StorageLedger":
        return cls(cost_function_from_config(config), config.capacity_bytes)

    @property
    def used(self) -> int:
        return self._used

    @property
    def capacity(self) -> int | None:
        return self._capacity

    def cost_of(self, record: Record) -> int:
        return self._cost(record)

    def charge_for(self, record_id: str) -> int:
        return self._charges.get(record_id, 0)

    def admits(self, record: Record, releasing: Iterable[str] = ()) -> bool:
        """
        Check whether storing ``record`` keeps the total within capacity.

        Args:
            record: Record about to be transferred
            releasing: Ids whose charges are released before the record lands

        Returns:
            True if the projected total fits
        """
        if self._capacity is None:
            return True
        released = sum(self._charges.get(record_id, 0) for record_id in set(releasing))
        projected = self._used - released + self._cost(record)
        admitted = projected <= self._capacity
        if not admitted:
            log.debug(
                "admission_refused",
                record_id=record.id,
                projected=projected,
                capacity=self._capacity,
            )
        return admitted

    def charge(self, record: Record) -> int:
        """Charge a newly stored record, replacing any earlier charge for its id."""
        self.release(record.id)
        amount = self._cost(record)
        self._charges[record.id] = amount
        self._used += amount
        return amount

    def release(self, record_id: str) -> int:
        """Release the charge held for an id. Unknown ids release nothing."""
        amount = self._charges.pop(record_id, 0)
        self._used -= amount
        return amount

    def reset(self) -> None:
        self._charges.clear()
        self._used = 0

    def rebuild(self, records: Iterable[Record]) -> None:
        """Recompute the charges from the records that hold a local copy."""
        self.reset()
        for record in records:
            if record.status.holds_local_copy:
                self.charge(record)
        log.debug("storage_ledger_rebuilt", used=self._used, charged=len(self._charges))

    def rescan_total(self, records: Iterable[Record]) -> int:
        """Full-rescan total, for checking the incremental figure."""
        return sum(self._cost(r) for r in records if r.status.holds_local_copy)
