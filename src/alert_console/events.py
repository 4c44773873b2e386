"""Typed events emitted by the ingestion sources onto the dispatcher."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .models import PollTrigger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PushAlertReceived:
    """One `new-alert` frame from the push stream."""

    payload: Any
    received_at: datetime = field(default_factory=_utcnow)


@dataclass
class PushConnectionChanged:
    """Push stream connected or dropped."""

    connected: bool
    error: Optional[str] = None
    at: datetime = field(default_factory=_utcnow)


@dataclass
class PollBatchReceived:
    """A successful poll response."""

    body: Any
    trigger: PollTrigger
    seq: int
    received_at: datetime = field(default_factory=_utcnow)


@dataclass
class PollFailed:
    """A poll request that errored."""

    error: str
    trigger: PollTrigger
    seq: int
    at: datetime = field(default_factory=_utcnow)


IngestEvent = Union[PushAlertReceived, PushConnectionChanged, PollBatchReceived, PollFailed]
