"""
Selection & Bulk Mutation Coordinator.

Tracks which visible alerts are selected and deletes alerts through a
backend that only supports one id per request. A bulk delete fans out one
request per id concurrently and reconciles the outcome per id: succeeded
ids leave the store and the selection, failed ids stay in both, and one
aggregate error is surfaced.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Protocol

from .models import BulkDeleteResult, DeleteOutcome
from .notification_gate import InteractionClock
from .notifications import NotificationCenter, NotificationLevel
from .store import AlertStore

logger = logging.getLogger(__name__)


class SupportsDelete(Protocol):
    async def delete_alert(self, alert_id: str) -> None: ...


class SelectionCoordinator:
    """
    Selection set plus single and bulk delete.

    Args:
        store: Canonical alert store.
        backend: Anything with an async ``delete_alert(id)`` that raises on failure.
        notifications: Where delete results are surfaced.
        clock: Interaction clock, marked on every selection or delete action.
    """

    def __init__(
        self,
        store: AlertStore,
        backend: SupportsDelete,
        notifications: NotificationCenter,
        clock: InteractionClock,
    ):
        self.store = store
        self.backend = backend
        self.notifications = notifications
        self.clock = clock
        # dict keeps selection order stable for display and fan-out
        self._selected: Dict[str, None] = {}

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    def is_selected(self, alert_id: str) -> bool:
        return alert_id in self._selected

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_one(self, alert_id: str, visible_ids: Optional[Iterable[str]] = None) -> bool:
        """
        Flip selection of one alert.

        Args:
            alert_id: Alert to toggle.
            visible_ids: Current visible projection; ids outside it can't
                be selected.

        Returns:
            Whether the alert is selected afterwards.
        """
        self.clock.mark()
        if alert_id in self._selected:
            del self._selected[alert_id]
            return False

        if alert_id not in self.store:
            return False
        if visible_ids is not None and alert_id not in set(visible_ids):
            return False

        self._selected[alert_id] = None
        return True

    def toggle_all(self, visible_ids: Iterable[str]) -> List[str]:
        """
        Select every visible alert, or clear if they already are all selected.

        Select-all is relative to the visible projection only.
        """
        self.clock.mark()
        visible = list(visible_ids)
        if visible and len(self._selected) == len(visible) and all(
            i in self._selected for i in visible
        ):
            self._selected.clear()
        else:
            self._selected = dict.fromkeys(visible)
        return self.selected

    def clear(self) -> None:
        self._selected.clear()

    def prune(self, visible_ids: Iterable[str]) -> List[str]:
        """Drop selected ids that are no longer visible. Returns the dropped ids."""
        visible = set(visible_ids)
        dropped = [i for i in self._selected if i not in visible]
        for alert_id in dropped:
            del self._selected[alert_id]
        return dropped

    def _forget(self, ids: Iterable[str]) -> None:
        for alert_id in ids:
            self._selected.pop(alert_id, None)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def _delete(self, alert_id: str) -> DeleteOutcome:
        try:
            await self.backend.delete_alert(alert_id)
        except Exception as e:
            logger.error(f"[DELETE] Delete alert error for {alert_id}: {e}")
            return DeleteOutcome(alert_id=alert_id, ok=False, error=str(e))
        return DeleteOutcome(alert_id=alert_id, ok=True)

    async def delete_one(self, alert_id: str) -> DeleteOutcome:
        """
        Delete a single alert.

        On success the alert leaves the store and the selection; on failure
        nothing changes and an error is surfaced.
        """
        self.clock.mark()
        outcome = await self._delete(alert_id)

        if outcome.ok:
            self.store.remove([alert_id])
            self._forget([alert_id])
            self.notifications.notify(NotificationLevel.SUCCESS, "Alert deleted", "Alert deleted")
        else:
            self.notifications.notify(
                NotificationLevel.ERROR, "Failed to delete alert", "Failed to delete alert"
            )
        return outcome

    async def delete_selected(self) -> BulkDeleteResult:
        """
        Delete every selected alert, one concurrent request per id.

        Best effort with no retry: waits for all outcomes, then applies only
        the succeeded ids. A single aggregate error covers all failures.
        """
        ids = self.selected
        if not ids:
            self.notifications.notify(
                NotificationLevel.INFO, "No alerts selected", "No alerts selected"
            )
            return BulkDeleteResult()

        self.clock.mark()
        logger.info(f"[DELETE] Deleting {len(ids)} selected alert(s)")
        outcomes = await asyncio.gather(*(self._delete(alert_id) for alert_id in ids))
        result = BulkDeleteResult(outcomes={o.alert_id: o for o in outcomes})

        succeeded = result.succeeded
        if succeeded:
            self.store.remove(succeeded)
            self._forget(succeeded)

        failed = result.failed
        if failed:
            logger.warning(f"[DELETE] Bulk delete: {len(succeeded)} deleted, {len(failed)} failed")
            self.notifications.notify(
                NotificationLevel.ERROR,
                "Failed to delete selected alerts",
                f"Failed to delete {len(failed)} of {len(ids)} selected alerts",
                alert_ids=failed,
            )
        else:
            self.notifications.notify(
                NotificationLevel.SUCCESS,
                "Selected alerts deleted",
                f"Deleted {len(succeeded)} selected alert{'s' if len(succeeded) > 1 else ''}",
                alert_ids=succeeded,
            )
        return result
