"""
Alert Console Data Model.

Canonical alert record and the small value objects that flow between the
ingestion sources, the merge engine and the console view.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    """Alert severity as shown on the summary cards."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"  # anything the backend sends that we don't recognise

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Map a raw wire value onto a severity, falling back to UNKNOWN."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


HIGH_RISK_SEVERITIES = (Severity.CRITICAL, Severity.HIGH)


class SourceKind(str, Enum):
    """Which ingestion channel delivered an alert."""

    PUSH = "push"
    POLL = "poll"


class PollTrigger(str, Enum):
    """What caused a poll request to be issued."""

    INITIAL = "initial"
    AUTO = "auto"
    MANUAL = "manual"
    FILTERS = "filters"


@dataclass
class Alert:
    """Canonical security alert held in the console's alert set."""

    id: str
    severity: Severity
    created_at: datetime
    source: SourceKind
    title: str = "Security Alert"
    description: str = ""
    keywords: List[str] = field(default_factory=list)

    # Only poll records carry these; None means "not known yet"
    acknowledged: Optional[bool] = None
    resolved: Optional[bool] = None

    # Monotonic insert order, set by the store
    ingest_seq: int = 0

    # Canonical field names the wire payload actually carried
    provided: frozenset = field(default_factory=frozenset, compare=False, repr=False)

    def search_text(self) -> str:
        """Text the free-text search is matched against."""
        return f"{self.title} {self.description} {' '.join(self.keywords)}".lower()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "keywords": list(self.keywords),
            "createdAt": self.created_at.isoformat(),
            "source": self.source.value,
        }

        if self.acknowledged is not None:
            result["acknowledged"] = self.acknowledged
        if self.resolved is not None:
            result["resolved"] = self.resolved

        return result


@dataclass(frozen=True)
class FilterCriteria:
    """Immutable filter settings applied to the canonical alert set.

    Bounds left as None are not applied. Times are minutes since midnight.
    """

    severity: str = "all"
    only_unacknowledged: bool = False
    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    time_from: Optional[int] = None
    time_to: Optional[int] = None

    def poll_params(self) -> Dict[str, str]:
        """Query parameters the backend understands for this criteria."""
        params = {}
        if self.severity != "all":
            params["severity"] = self.severity
        if self.only_unacknowledged:
            params["acknowledged"] = "false"
        return params

    def to_dict(self) -> dict:
        return {
            "severity": self.severity,
            "only_unacknowledged": self.only_unacknowledged,
            "search": self.search,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "time_from": _format_minutes(self.time_from),
            "time_to": _format_minutes(self.time_to),
        }


def _format_minutes(minutes: Optional[int]) -> Optional[str]:
    if minutes is None:
        return None
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass
class DeleteOutcome:
    """Result of one delete request against the backend."""

    alert_id: str
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.alert_id, "ok": self.ok, "error": self.error}


@dataclass
class BulkDeleteResult:
    """Per-id outcomes of a fanned-out bulk delete."""

    outcomes: Dict[str, DeleteOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return [i for i, o in self.outcomes.items() if o.ok]

    @property
    def failed(self) -> List[str]:
        return [i for i, o in self.outcomes.items() if not o.ok]

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)

    def to_dict(self) -> dict:
        return {
            "requested": len(self.outcomes),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes.values()],
        }
