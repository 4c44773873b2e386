"""
Alert Entity Normalizer.

Maps the two wire shapes the backend produces (push-channel payloads and
poll-response records) onto the canonical Alert record. Never raises:
records without a usable id come back as None and are dropped by the store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from .models import Alert, Severity, SourceKind

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Security Alert"

# Fields a poll record may overwrite on an existing entry
MERGEABLE_FIELDS = ("severity", "title", "description", "keywords", "acknowledged", "resolved")

# Epoch values above this are taken to be milliseconds
_EPOCH_MS_CUTOFF = 10**11


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a wire timestamp into an aware datetime.

    Accepts ISO-8601 strings (with or without a trailing Z), epoch seconds
    or milliseconds, and datetime objects. Naive values are taken as UTC.

    Returns:
        The parsed instant, or None when the value can't be understood.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MS_CUTOFF else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_keywords(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [k.strip() for k in value.split(",") if k.strip()]
    if isinstance(value, (list, tuple)):
        return [str(k) for k in value if k is not None]
    return []


def _coerce_flag(value: Any) -> Optional[bool]:
    """Read an optional boolean; anything unrecognised stays unknown."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    return None


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value)
    return text if text.strip() else default


def normalize(raw: Any, source: SourceKind, now: Optional[datetime] = None) -> Optional[Alert]:
    """
    Normalize a raw payload from either ingestion channel.

    Args:
        raw: Decoded JSON object from the push stream or a poll response.
        source: Channel the payload arrived on.
        now: Ingest instant, substituted when createdAt is unusable.

    Returns:
        The canonical Alert, or None if the payload has no usable id.
    """
    if not isinstance(raw, dict):
        return None

    # Push payloads prefer `id`, poll records prefer `_id`; accept either
    if source == SourceKind.PUSH:
        raw_id = raw.get("id") or raw.get("_id")
    else:
        raw_id = raw.get("_id") or raw.get("id")

    if raw_id is None or isinstance(raw_id, (dict, list, bool)):
        return None
    alert_id = str(raw_id).strip()
    if not alert_id:
        return None

    now = now or datetime.now(timezone.utc)
    created_raw = raw.get("createdAt", raw.get("created_at", raw.get("timestamp")))
    parsed_at = parse_timestamp(created_raw)
    created_at = parsed_at or now

    alert = Alert(
        id=alert_id,
        severity=Severity.parse(raw.get("severity")),
        created_at=created_at,
        source=source,
        title=_text(raw.get("title"), DEFAULT_TITLE),
        description=_text(raw.get("description"), ""),
        keywords=_coerce_keywords(raw.get("keywords")),
        provided=_present_fields(raw, parsed_at is not None),
    )

    # Push payloads never carry state flags
    if source == SourceKind.POLL:
        alert.acknowledged = _coerce_flag(raw.get("acknowledged"))
        alert.resolved = _coerce_flag(raw.get("resolved"))

    return alert


def unwrap_poll_envelope(body: Any) -> list:
    """
    Extract the alert records from a poll response body.

    The backend returns either a bare list or {"alerts": [...]}.
    """
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        alerts = body.get("alerts")
        if isinstance(alerts, list):
            return alerts
    logger.debug(f"[NORMALIZE] Unexpected poll envelope: {type(body).__name__}")
    return []


def _present_fields(raw: dict, has_timestamp: bool) -> frozenset:
    """Canonical field names carried by the raw record, used for field-merging."""
    present = {name for name in MERGEABLE_FIELDS if raw.get(name) is not None}
    if has_timestamp:
        present.add("created_at")
    return frozenset(present)
