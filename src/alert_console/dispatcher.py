"""
Ingest Event Dispatcher.

Serializes events from the push channel and the poll source through a
single asyncio queue so the store only ever has one writer, whatever order
the two producers deliver in.

For every ingest the dispatcher reads the store's delta exactly once and
hands it to the notification gate.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .events import (
    IngestEvent,
    PollBatchReceived,
    PollFailed,
    PushAlertReceived,
    PushConnectionChanged,
)
from .models import PollTrigger, SourceKind
from .normalizer import normalize, unwrap_poll_envelope
from .notification_gate import NotificationDecision, NotificationGate
from .notifications import NotificationCenter, NotificationLevel
from .store import AlertStore, sort_by_recency

logger = logging.getLogger(__name__)


class IngestDispatcher:
    """
    Single consumer of ingestion events.

    Args:
        store: Canonical alert store (the dispatcher is its only ingest writer).
        gate: Notification gate consulted after each ingest.
        notifications: Where toasts and surfaced errors are published.
        on_ingest: Called after every applied push or poll ingest, once the
            store reflects it.
    """

    def __init__(
        self,
        store: AlertStore,
        gate: NotificationGate,
        notifications: NotificationCenter,
        on_ingest: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.gate = gate
        self.notifications = notifications
        self.on_ingest = on_ingest
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._accepting = False

        self.push_connected = False
        self.last_push_error: Optional[str] = None
        self.last_poll_at: Optional[datetime] = None
        self.last_poll_error: Optional[str] = None
        self._last_applied_poll_seq = 0
        self._stats = {
            "events": 0,
            "stale_batches": 0,
            "notifications": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._task is not None:
            return
        self._accepting = True
        self._task = asyncio.create_task(self._run(), name="alert-ingest-dispatcher")

    async def stop(self) -> None:
        """Stop consuming; anything still queued is discarded."""
        self._accepting = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    def emit(self, event: IngestEvent) -> None:
        """Queue an event from a producer. Ignored once stopped."""
        if not self._accepting:
            logger.debug(f"[DISPATCH] Dropping {type(event).__name__} after stop")
            return
        self._queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self.handle(event)
            except Exception as e:
                # One bad event must not kill the consumer
                logger.error(f"[DISPATCH] Failed to handle {type(event).__name__}: {e}")
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle(self, event: IngestEvent) -> Optional[NotificationDecision]:
        """Apply one event to the store. Returns the notification raised, if any."""
        self._stats["events"] += 1

        if isinstance(event, PushAlertReceived):
            decision = self._on_push_alert(event)
            self._after_ingest()
            return decision
        if isinstance(event, PollBatchReceived):
            decision = self._on_poll_batch(event)
            self._after_ingest()
            return decision
        if isinstance(event, PollFailed):
            self._on_poll_failed(event)
            return None
        if isinstance(event, PushConnectionChanged):
            self._on_connection_changed(event)
            return None

        logger.warning(f"[DISPATCH] Unknown event type: {type(event).__name__}")
        return None

    def _after_ingest(self) -> None:
        if self.on_ingest is not None:
            self.on_ingest()

    def _on_push_alert(self, event: PushAlertReceived) -> Optional[NotificationDecision]:
        alert = normalize(event.payload, SourceKind.PUSH, now=event.received_at)
        if self.store.ingest_one(alert):
            logger.info(f"[PUSH] Real-time alert received: {alert.id} ({alert.severity.value})")
        return self._decide(SourceKind.PUSH, now=event.received_at)

    def _on_poll_batch(self, event: PollBatchReceived) -> Optional[NotificationDecision]:
        if event.seq < self._last_applied_poll_seq:
            self._stats["stale_batches"] += 1
            logger.info(
                f"[POLL] Ignoring stale response #{event.seq} "
                f"(already applied #{self._last_applied_poll_seq})"
            )
            return None
        self._last_applied_poll_seq = event.seq

        alerts = [
            normalize(record, SourceKind.POLL, now=event.received_at)
            for record in unwrap_poll_envelope(event.body)
        ]
        self.store.ingest_batch(alerts)
        self.last_poll_at = event.received_at
        self.last_poll_error = None

        # Only background polls may interrupt; explicit loads just consume the delta
        if event.trigger != PollTrigger.AUTO:
            self.store.delta()
            return None
        return self._decide(SourceKind.POLL, now=event.received_at)

    def _on_poll_failed(self, event: PollFailed) -> None:
        self.last_poll_error = event.error
        if event.trigger == PollTrigger.AUTO:
            logger.warning(f"[POLL] Background poll failed, retrying next tick: {event.error}")
            return

        logger.error(f"[POLL] Get alerts error ({event.trigger.value}): {event.error}")
        self.notifications.notify(
            NotificationLevel.ERROR,
            "Failed to load alerts",
            "Failed to load alerts",
        )

    def _on_connection_changed(self, event: PushConnectionChanged) -> None:
        if event.connected == self.push_connected:
            return
        self.push_connected = event.connected
        if event.connected:
            self.last_push_error = None
            logger.info("[PUSH] Alerts stream connected")
        else:
            self.last_push_error = event.error
            logger.warning(f"[PUSH] Alerts stream disconnected: {event.error or 'closed'}")

    def _decide(self, source: SourceKind, now: Optional[datetime] = None) -> Optional[NotificationDecision]:
        delta_ids = self.store.delta()
        delta = sort_by_recency(
            a for a in (self.store.get(i) for i in delta_ids) if a is not None
        )
        decision = self.gate.should_notify(delta, source, now=now)
        if decision is None:
            return None

        self._stats["notifications"] += 1
        logger.info(f"[NOTIFY] {decision.message}")
        self.notifications.notify(
            decision.level,
            decision.title,
            decision.message,
            alert_ids=decision.alert_ids,
            auto_close_ms=decision.auto_close_ms,
        )
        return decision

    def get_status(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "running": self._task is not None,
            "queued": self._queue.qsize(),
            "push_connected": self.push_connected,
            "last_push_error": self.last_push_error,
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
            "last_poll_error": self.last_poll_error,
            "last_applied_poll_seq": self._last_applied_poll_seq,
        }
