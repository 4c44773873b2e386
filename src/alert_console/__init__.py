"""
Alert Console Module.

Real-time reconciliation of security alerts arriving over a push stream
and a poll fallback into one deduplicated, ordered view.
"""

from .filters import apply_filters, severity_counts
from .models import Alert, FilterCriteria, Severity, SourceKind, PollTrigger
from .normalizer import normalize, unwrap_poll_envelope
from .notification_gate import InteractionClock, NotificationGate
from .notifications import NotificationCenter, NotificationLevel
from .store import AlertStore
from .view import AlertView

__all__ = [
    "Alert",
    "AlertStore",
    "AlertView",
    "FilterCriteria",
    "InteractionClock",
    "NotificationCenter",
    "NotificationGate",
    "NotificationLevel",
    "PollTrigger",
    "Severity",
    "SourceKind",
    "apply_filters",
    "normalize",
    "severity_counts",
    "unwrap_poll_envelope",
]
