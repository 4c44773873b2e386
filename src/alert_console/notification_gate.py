"""
Idle-Aware Notification Gate.

Decides whether newly arrived alerts should interrupt the user with a toast.
Push deliveries always do. Poll discoveries only do once the user has been
idle for longer than the configured threshold, so background polling
doesn't spam toasts while someone is editing filters.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .models import HIGH_RISK_SEVERITIES, Alert, SourceKind
from .notifications import NotificationLevel

logger = logging.getLogger(__name__)

HIGH_RISK_LABEL = "High-risk security alerts detected"
NEW_ALERTS_LABEL = "New alerts received"
MAX_TITLE_LENGTH = 80


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InteractionClock:
    """Last time the user did something in the alert view."""

    def __init__(self, now: Callable[[], datetime] = _utcnow):
        self._now = now
        self.last_interaction_at: datetime = now()

    def mark(self, at: Optional[datetime] = None) -> datetime:
        """Record a user interaction (filter edit, selection, refresh, delete)."""
        self.last_interaction_at = at or self._now()
        return self.last_interaction_at

    def idle_for(self, now: Optional[datetime] = None) -> timedelta:
        return (now or self._now()) - self.last_interaction_at


@dataclass
class NotificationDecision:
    """What the gate wants shown to the user."""

    level: NotificationLevel
    title: str
    message: str
    alert_ids: List[str] = field(default_factory=list)
    auto_close_ms: int = 5000


def truncate_title(title: str, limit: int = MAX_TITLE_LENGTH) -> str:
    if len(title) > limit:
        return title[: limit - 3] + "..."
    return title


class NotificationGate:
    """
    Turns a delta of new alerts into an optional toast.

    Args:
        clock: Shared interaction clock (read-only here).
        idle_threshold_ms: Idle time after which poll discoveries notify.
    """

    def __init__(self, clock: InteractionClock, idle_threshold_ms: int = 8000):
        self.clock = clock
        self.idle_threshold = timedelta(milliseconds=idle_threshold_ms)

    def is_idle(self, now: Optional[datetime] = None) -> bool:
        return self.clock.idle_for(now) > self.idle_threshold

    def should_notify(
        self,
        delta: Sequence[Alert],
        source: SourceKind,
        now: Optional[datetime] = None,
    ) -> Optional[NotificationDecision]:
        """
        Decide on a notification for newly ingested alerts.

        Args:
            delta: Alerts newly added to the canonical set, newest first.
            source: Channel the delta came from.
            now: Decision instant (defaults to the clock's now).

        Returns:
            A NotificationDecision, or None when the user shouldn't be
            interrupted.
        """
        if not delta:
            return None

        if source == SourceKind.PUSH:
            return self._push_decision(delta)

        if not self.is_idle(now):
            logger.debug(
                f"[NOTIFY] Suppressing poll toast for {len(delta)} alert(s), user active"
            )
            return None

        return self._poll_decision(delta)

    @staticmethod
    def _push_decision(delta: Sequence[Alert]) -> NotificationDecision:
        # Delta arrives newest first; label by the newest
        alert = delta[0]
        severity = alert.severity.value.upper()
        return NotificationDecision(
            level=NotificationLevel.WARNING,
            title=f"Live {severity} alert",
            message=f"Live {severity} alert: {truncate_title(alert.title)}",
            alert_ids=[a.id for a in delta],
            auto_close_ms=6000,
        )

    @staticmethod
    def _poll_decision(delta: Sequence[Alert]) -> NotificationDecision:
        high_risk = any(a.severity in HIGH_RISK_SEVERITIES for a in delta)
        label = HIGH_RISK_LABEL if high_risk else NEW_ALERTS_LABEL
        count = len(delta)
        plural = "s" if count > 1 else ""
        return NotificationDecision(
            level=NotificationLevel.INFO,
            title=label,
            message=f"{label}: {count} new alert{plural}",
            alert_ids=[a.id for a in delta],
        )
