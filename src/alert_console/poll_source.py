"""
Poll Ingestion Source.

Fetches the alert collection on a fixed interval and on demand, and emits
the whole response as one batch event. Every request gets a sequence number
so the dispatcher can discard a slow response that lands after a newer one.
"""

import asyncio
import logging
from typing import Callable, Optional

from .backend import AlertBackendClient, BackendError
from .events import IngestEvent, PollBatchReceived, PollFailed
from .models import FilterCriteria, PollTrigger

logger = logging.getLogger(__name__)


class PollSource:
    """
    Interval-driven fetch of the current alert collection.

    Args:
        backend: Backend client.
        emit: Callback receiving typed ingest events.
        criteria: Callable returning the filters the request should carry.
        interval_seconds: Time between background polls.
        auto_refresh: Whether background polling starts enabled.
    """

    def __init__(
        self,
        backend: AlertBackendClient,
        emit: Callable[[IngestEvent], None],
        criteria: Callable[[], FilterCriteria] = FilterCriteria,
        interval_seconds: float = 15.0,
        auto_refresh: bool = True,
    ):
        self.backend = backend
        self._emit = emit
        self._criteria = criteria
        self.interval_seconds = interval_seconds
        self.auto_refresh = auto_refresh

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._seq = 0
        self.request_count = 0
        self.failure_count = 0

    def start(self) -> None:
        """Start the background timer."""
        if self._running:
            logger.warning("[POLL] Poll source already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="alert-poll-source")
        logger.info(f"[POLL] Started with interval={self.interval_seconds}s")

    async def stop(self) -> None:
        """Cancel the timer. No events are emitted after this returns."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[POLL] Stopped")

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = enabled
        logger.info(f"[POLL] Live polling {'enabled' if enabled else 'paused'}")

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            if self._running and self.auto_refresh:
                await self.refresh(PollTrigger.AUTO)

    async def refresh(self, trigger: PollTrigger = PollTrigger.MANUAL) -> bool:
        """
        Issue one poll request and emit its outcome.

        Args:
            trigger: Why the request was made; only explicit triggers
                surface failures to the user.

        Returns:
            True if the request succeeded.
        """
        self._seq += 1
        seq = self._seq
        self.request_count += 1
        criteria = self._criteria()

        try:
            body = await self.backend.fetch_alerts(criteria)
        except BackendError as e:
            self.failure_count += 1
            self._emit(PollFailed(error=str(e), trigger=trigger, seq=seq))
            return False

        logger.debug(f"[POLL] Response #{seq} ({trigger.value}) received")
        self._emit(PollBatchReceived(body=body, trigger=trigger, seq=seq))
        return True

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "auto_refresh": self.auto_refresh,
            "interval_seconds": self.interval_seconds,
            "requests": self.request_count,
            "failures": self.failure_count,
            "last_seq": self._seq,
        }
