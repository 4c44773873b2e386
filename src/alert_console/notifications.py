"""Toast notifications raised by the alert view.

New-alert toasts, delete results and load errors are kept in a short
history and fanned out to live subscribers (the console API streams them
to the browser over SSE).
"""
import asyncio
import threading
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, List, Optional

# Per-subscriber backlog before a stalled reader is dropped
SUBSCRIBER_BACKLOG = 100


class NotificationLevel(str, Enum):
    """Toast styles understood by the UI."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A user-facing toast."""

    level: NotificationLevel
    title: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    alert_ids: List[str] = field(default_factory=list)
    auto_close_ms: int = 5000

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "id": self.id,
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "auto_close_ms": self.auto_close_ms,
        }
        if self.alert_ids:
            result["alert_ids"] = list(self.alert_ids)
        return result


class NotificationCenter:
    """
    Fan-out of toasts to SSE subscribers plus a bounded replay history.

    Args:
        max_history: Notifications kept for replay and the history endpoint.
    """

    def __init__(self, max_history: int = 100):
        self._history: deque[Notification] = deque(maxlen=max_history)
        self._subscribers: set[asyncio.Queue] = set()
        self._by_level: Counter = Counter()
        self._lock = threading.Lock()

    def notify(
        self,
        level: NotificationLevel,
        title: str,
        message: str,
        alert_ids: Optional[List[str]] = None,
        auto_close_ms: int = 5000,
    ) -> Notification:
        """Build a notification and publish it."""
        notification = Notification(
            level=level,
            title=title,
            message=message,
            alert_ids=list(alert_ids or []),
            auto_close_ms=auto_close_ms,
        )
        self.publish(notification)
        return notification

    def publish(self, notification: Notification) -> None:
        with self._lock:
            self._history.append(notification)
            self._by_level[notification.level.value] += 1
            stalled = {q for q in self._subscribers if not self._offer(q, notification)}
            self._subscribers -= stalled

    @staticmethod
    def _offer(queue: asyncio.Queue, notification: Notification) -> bool:
        try:
            queue.put_nowait(notification)
        except asyncio.QueueFull:
            return False
        return True

    async def subscribe(
        self,
        include_history: bool = True,
        history_count: int = 10,
    ) -> AsyncIterator[Notification]:
        """
        Yield notifications as they are published, never returning.

        With include_history, the last `history_count` notifications are
        replayed first, oldest to newest.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_BACKLOG)
        with self._lock:
            if include_history and history_count > 0:
                for notification in list(self._history)[-history_count:]:
                    queue.put_nowait(notification)
            self._subscribers.add(queue)

        try:
            while True:
                yield await queue.get()
        finally:
            with self._lock:
                self._subscribers.discard(queue)

    def get_history(self, count: int = 50) -> List[Notification]:
        """Recent notifications, newest first."""
        with self._lock:
            recent = list(self._history)[-count:]
        recent.reverse()
        return recent

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "total_published": sum(self._by_level.values()),
                "by_level": dict(self._by_level),
                "current_subscribers": len(self._subscribers),
                "history_size": len(self._history),
            }
