"""Cooperative cancellation shared by the orchestrator, workers and retry policy."""

import asyncio
from typing import Optional

import structlog

from meshusage.core.exceptions import CollectionCancelled

logger = structlog.get_logger(__name__)


class CancellationToken:
    """A one-shot cancellation signal observed at dispatch boundaries and in sleeps.

    Cancelling never interrupts a call already in flight; workers notice the
    signal at their next check.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "collection cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug("Cancellation requested", reason=reason)

    def cancel_after(self, seconds: float) -> None:
        """Cancel once ``seconds`` have elapsed, bounding the whole run."""
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(seconds, self.cancel, f"deadline of {seconds:g}s exceeded")

    def clear_deadline(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CollectionCancelled(self.reason or "collection cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first, in which case raise."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
