"""
Alert View Lifecycle.

Owns everything one live alert view needs: the canonical store, the
interaction clock, the notification gate and center, the selection
coordinator, the ingest dispatcher and both ingestion sources. start()
loads the initial collection and starts the producers; stop() tears them
all down so no ingest happens afterwards.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .backend import AlertBackendClient
from .config import AlertConsoleSettings, get_settings
from .dispatcher import IngestDispatcher
from .filters import apply_filters, severity_counts
from .models import Alert, BulkDeleteResult, DeleteOutcome, FilterCriteria, PollTrigger
from .notification_gate import InteractionClock, NotificationGate
from .notifications import NotificationCenter
from .poll_source import PollSource
from .push_channel import PushChannel
from .selection import SelectionCoordinator
from .store import AlertStore

logger = logging.getLogger(__name__)


class AlertView:
    """
    One running alert console view.

    Args:
        settings: Console settings (defaults to the environment).
        backend: Backend client; built from settings when omitted.
        notifications: Notification center; a private one when omitted.
    """

    def __init__(
        self,
        settings: Optional[AlertConsoleSettings] = None,
        backend: Optional[AlertBackendClient] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self.settings = settings or get_settings()
        self.backend = backend or AlertBackendClient(self.settings)
        self.notifications = notifications or NotificationCenter(
            max_history=self.settings.notification_history
        )
        self.tz = self.settings.tzinfo

        self.store = AlertStore()
        self.clock = InteractionClock()
        self.gate = NotificationGate(self.clock, idle_threshold_ms=self.settings.idle_threshold_ms)
        self.selection = SelectionCoordinator(self.store, self.backend, self.notifications, self.clock)
        self.dispatcher = IngestDispatcher(
            self.store, self.gate, self.notifications, on_ingest=self._prune_selection
        )

        self.criteria = FilterCriteria()
        self.poll_source = PollSource(
            self.backend,
            self.dispatcher.emit,
            criteria=lambda: self.criteria,
            interval_seconds=self.settings.poll_interval_seconds,
            auto_refresh=self.settings.auto_refresh,
        )
        self.push_channel: Optional[PushChannel] = None
        if self.settings.push_enabled:
            self.push_channel = PushChannel(
                self.backend,
                self.settings.resolved_push_url,
                self.dispatcher.emit,
                reconnect_initial=self.settings.push_reconnect_initial_seconds,
                reconnect_max=self.settings.push_reconnect_max_seconds,
            )
        self.running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Initial load, then start the push subscription and poll timer."""
        if self.running:
            return
        logger.info("[VIEW] Starting alert view")
        self.running = True
        self.dispatcher.start()
        await self.poll_source.refresh(PollTrigger.INITIAL)
        await self.dispatcher.join()
        if self.push_channel is not None:
            self.push_channel.start()
        self.poll_source.start()

    async def stop(self) -> None:
        """Tear everything down; no ingest callbacks fire afterwards."""
        if not self.running:
            return
        self.running = False
        await self.poll_source.stop()
        if self.push_channel is not None:
            await self.push_channel.stop()
        await self.dispatcher.stop()
        await self.backend.aclose()
        logger.info(f"[VIEW] Stopped. Store stats: {self.store.get_stats()}")

    async def __aenter__(self) -> "AlertView":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def visible(self) -> List[Alert]:
        return apply_filters(self.store.ordered(), self.criteria, tz=self.tz)

    def visible_ids(self) -> List[str]:
        return [a.id for a in self.visible()]

    def summary(self) -> Dict[str, Any]:
        """Severity cards (whole canonical set) plus the visible count."""
        return {
            "counts": severity_counts(self.store.ordered()),
            "total": len(self.store),
            "visible": len(self.visible()),
            "selected": len(self.selection.selected),
        }

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def set_criteria(self, criteria: FilterCriteria, refetch: bool = True) -> List[Alert]:
        """
        Apply new filters.

        Severity and acknowledgement are server-side filters too, so a
        changed criteria re-polls the backend before the projection is read.
        """
        self.clock.mark()
        server_side_changed = criteria.poll_params() != self.criteria.poll_params()
        self.criteria = criteria
        if refetch and server_side_changed:
            await self.poll_source.refresh(PollTrigger.FILTERS)
            await self.dispatcher.join()
        visible = self.visible()
        self.selection.prune(a.id for a in visible)
        return visible

    def _prune_selection(self) -> None:
        # Merged fields can move a selected alert out of the filtered view
        self.selection.prune(self.visible_ids())

    async def update_criteria(self, **changes: Any) -> List[Alert]:
        return await self.set_criteria(replace(self.criteria, **changes))

    async def clear_criteria(self) -> List[Alert]:
        return await self.set_criteria(FilterCriteria())

    async def refresh(self) -> bool:
        """Manual refresh; failures are surfaced to the user."""
        self.clock.mark()
        ok = await self.poll_source.refresh(PollTrigger.MANUAL)
        await self.dispatcher.join()
        return ok

    def toggle_one(self, alert_id: str) -> bool:
        return self.selection.toggle_one(alert_id, self.visible_ids())

    def toggle_all(self) -> List[str]:
        return self.selection.toggle_all(self.visible_ids())

    async def delete_one(self, alert_id: str) -> DeleteOutcome:
        return await self.selection.delete_one(alert_id)

    async def delete_selected(self) -> BulkDeleteResult:
        self._prune_selection()
        return await self.selection.delete_selected()

    def set_auto_refresh(self, enabled: bool) -> None:
        self.clock.mark()
        self.poll_source.set_auto_refresh(enabled)

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "criteria": self.criteria.to_dict(),
            "store": self.store.get_stats(),
            "dispatcher": self.dispatcher.get_status(),
            "poll": self.poll_source.get_status(),
            "push": self.push_channel.get_status() if self.push_channel else None,
            "idle": self.gate.is_idle(),
            "last_interaction_at": self.clock.last_interaction_at.isoformat(),
            "notifications": self.notifications.get_stats(),
        }
