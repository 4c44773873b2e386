"""Filter composer: derives the visible alert list from the canonical set."""

from datetime import date, datetime, time, timezone, tzinfo
from typing import Dict, Iterable, List, Optional

from .models import Alert, FilterCriteria, Severity
from .store import count_severities, sort_by_recency

SEVERITY_CHOICES = ("all",) + tuple(s.value for s in Severity if s != Severity.UNKNOWN)


def parse_time_of_day(value: Optional[str]) -> Optional[int]:
    """Parse "HH:MM" into minutes since midnight. Empty input means unset."""
    if value is None or not value.strip():
        return None
    try:
        hours, minutes = value.strip().split(":")[:2]
        parsed = time(int(hours), int(minutes))
    except (ValueError, TypeError):
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")
    return parsed.hour * 60 + parsed.minute


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD". Empty input means unset."""
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_severity(value: Optional[str]) -> str:
    if value is None or not value.strip():
        return "all"
    lowered = value.strip().lower()
    if lowered not in SEVERITY_CHOICES:
        raise ValueError(f"Invalid severity: {value!r}")
    return lowered


def _matches(alert: Alert, criteria: FilterCriteria, needle: str, tz: tzinfo) -> bool:
    if needle and needle not in alert.search_text():
        return False

    local = alert.created_at.astimezone(tz)

    if criteria.date_from is not None:
        start = datetime.combine(criteria.date_from, time(0, 0, 0), tzinfo=tz)
        if local < start:
            return False
    if criteria.date_to is not None:
        end = datetime.combine(criteria.date_to, time(23, 59, 59), tzinfo=tz)
        if local > end:
            return False

    minutes = local.hour * 60 + local.minute
    if criteria.time_from is not None and minutes < criteria.time_from:
        return False
    if criteria.time_to is not None and minutes > criteria.time_to:
        return False

    if criteria.severity != "all" and alert.severity.value != criteria.severity:
        return False

    if criteria.only_unacknowledged and alert.acknowledged is True:
        return False

    return True


def apply_filters(
    alerts: Iterable[Alert],
    criteria: FilterCriteria,
    tz: tzinfo = timezone.utc,
) -> List[Alert]:
    """
    Return the alerts matching the criteria, newest first.

    Pure: neither the input collection nor the alerts in it are modified,
    so this is safe to call on every render.

    Args:
        alerts: Canonical alerts (any order).
        criteria: Filter settings.
        tz: Timezone used for the calendar-day and time-of-day bounds.
    """
    needle = criteria.search.strip().lower()
    return sort_by_recency(a for a in alerts if _matches(a, criteria, needle, tz))


def severity_counts(alerts: Iterable[Alert]) -> Dict[str, int]:
    """Summary-card counts. Callers pass the full canonical set, not the visible list."""
    return count_severities(alerts)
