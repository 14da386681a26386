"""Transfer drivers and cooperative cancellation for record materialization."""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

import structlog

from offgrid_sync.models.config import TransferConfig
from offgrid_sync.models.record import Record

log = structlog.stdlib.get_logger()


class CancellationToken:
    """One-shot cancellation signal shared by a transfer loop and its stoppers.

    The first ``cancel`` call wins and records its reason; later calls are
    ignored. The transfer loop reads ``cancelled`` at every suspension point.
    """

    def __init__(self) -> None:
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "user") -> bool:
        """Cancel the token.

        Returns:
            True if this call cancelled it, False if it was already cancelled
        """
        if self._reason is not None:
            return False
        self._reason = reason
        log.debug("cancellation_requested", reason=reason)
        return True


class TransferDriver(ABC):
    """Produces progress checkpoints while a record's payload is transferred.

    A driver only reports progress. It never touches record status, the
    store or the quota; the sync engine owns all of that. Each ``await``
    inside ``transfer`` is a suspension point at which the engine observes
    cancellation.
    """

    @abstractmethod
    def transfer(self, record: Record) -> AsyncIterator[int]:
        """Yield non-decreasing progress percentages ending at 100.

        Implement as an async generator; the engine closes it early when a
        transfer is cancelled.

        Args:
            record: Catalog version of the record being materialized
        """
        pass


class SimulatedTransferDriver(TransferDriver):
    """Paced stand-in for a chunked transfer.

    Reports each configured checkpoint after sleeping ``step_delay``
    seconds, so progress is visible and cancellation has somewhere to land.
    """

    def __init__(self, checkpoints: Sequence[int] = (20, 40, 60, 80, 100), step_delay: float = 0.15):
        checkpoints = list(checkpoints)
        if not checkpoints or checkpoints[-1] != 100:
            raise ValueError("checkpoints must end at 100")
        if any(b < a for a, b in zip(checkpoints, checkpoints[1:])):
            raise ValueError("checkpoints must be non-decreasing")
        if step_delay < 0:
            raise ValueError("step_delay cannot be negative")
        self._checkpoints = checkpoints
        self._step_delay = step_delay

    @classmethod
    def from_config(cls, config: TransferConfig) -> "SimulatedTransferDriver":
        return cls(checkpoints=config.checkpoints, step_delay=config.step_delay_seconds)

    async def transfer(self, record: Record) -> AsyncIterator[int]:
        for progress in self._checkpoints:
            await asyncio.sleep(self._step_delay)
            yield progress
