"""
Canonical alert store and merge engine.

Both ingestion channels feed this store. It keeps one deduplicated,
recency-ordered alert set keyed by alert id and tracks which ids arrived
since the last notification decision.

Merge policy:
- Push ingest is insert-if-absent. Re-delivery of a known id is ignored.
- Poll ingest field-merges onto existing entries and never evicts entries
  the batch omits (the poll request may have been filtered).
- Ids confirmed deleted by the backend are tombstoned so that a stale
  response can't bring them back.
"""

import logging
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Set

from .models import Alert, Severity
from .normalizer import MERGEABLE_FIELDS

logger = logging.getLogger(__name__)

# Deleted ids remembered to block resurrection by stale data
MAX_TOMBSTONES = 10_000


class AlertStore:
    """
    Canonical alert set shared by the ingestion sources and the view.

    One instance per alert view; nothing in the package holds a global
    store, so tests can build isolated instances freely.
    """

    def __init__(self, max_tombstones: int = MAX_TOMBSTONES):
        self._alerts: Dict[str, Alert] = {}
        self._delta: Set[str] = set()
        self._previous_batch_ids: Set[str] = set()
        self._deleted_ids: "OrderedDict[str, None]" = OrderedDict()
        self._max_tombstones = max_tombstones
        self._seq = 0
        self._lock = threading.Lock()
        self._stats = {
            "push_ingested": 0,
            "poll_batches": 0,
            "dropped": 0,
            "deleted": 0,
        }

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def ingest_one(self, alert: Optional[Alert]) -> bool:
        """
        Insert a push-delivered alert if its id is unknown.

        Args:
            alert: Normalized alert, or None for a payload that failed to
                normalize (counted as dropped).

        Returns:
            True if the alert was inserted.
        """
        with self._lock:
            if alert is None:
                self._stats["dropped"] += 1
                return False

            if alert.id in self._alerts or alert.id in self._deleted_ids:
                logger.debug(f"[MERGE] Ignoring repeated push for {alert.id}")
                return False

            self._insert(alert)
            self._delta.add(alert.id)
            self._stats["push_ingested"] += 1
            return True

    def ingest_batch(self, alerts: Iterable[Optional[Alert]]) -> List[str]:
        """
        Merge a poll batch into the canonical set.

        The batch becomes the new comparison basis for "new since last
        poll". Unknown ids are inserted; known ids are field-merged with the
        fields the poll record actually carried. Entries missing from the
        batch are left alone.

        Args:
            alerts: Normalized alerts; None entries are counted as dropped.

        Returns:
            Ids from this batch that were not in the previous batch.
        """
        with self._lock:
            batch: Dict[str, Alert] = {}
            for alert in alerts:
                if alert is None:
                    self._stats["dropped"] += 1
                    continue
                # First occurrence wins inside a single response
                batch.setdefault(alert.id, alert)

            new_ids = [i for i in batch if i not in self._previous_batch_ids]
            self._previous_batch_ids = set(batch)
            self._stats["poll_batches"] += 1

            inserted = 0
            merged = 0
            for alert_id, alert in batch.items():
                if alert_id in self._deleted_ids:
                    continue
                existing = self._alerts.get(alert_id)
                if existing is None:
                    self._insert(alert)
                    inserted += 1
                    if alert_id in new_ids:
                        self._delta.add(alert_id)
                elif self._merge_fields(existing, alert):
                    merged += 1

            logger.debug(
                f"[MERGE] Poll batch: {len(batch)} records, {len(new_ids)} new vs previous, "
                f"{inserted} inserted, {merged} updated"
            )
            return new_ids

    def delta(self) -> List[str]:
        """Return and clear the ids inserted since the last call."""
        with self._lock:
            ids = [i for i in self._delta if i in self._alerts]
            self._delta.clear()
            return ids

    def _insert(self, alert: Alert) -> None:
        self._seq += 1
        alert.ingest_seq = self._seq
        self._alerts[alert.id] = alert

    @staticmethod
    def _merge_fields(existing: Alert, incoming: Alert) -> bool:
        """Copy the fields the incoming record carried onto the existing entry."""
        changed = False
        for name in MERGEABLE_FIELDS:
            if name not in incoming.provided:
                continue
            value = getattr(incoming, name)
            # A flag that failed to parse is still unknown
            if value is None:
                continue
            if getattr(existing, name) != value:
                setattr(existing, name, value)
                changed = True

        # Only replace a timestamp we had to make up at ingest time
        if "created_at" in incoming.provided and "created_at" not in existing.provided:
            existing.created_at = incoming.created_at
            existing.provided = existing.provided | {"created_at"}
            changed = True
        return changed

    # ------------------------------------------------------------------
    # Deletion (backend-confirmed only)
    # ------------------------------------------------------------------

    def remove(self, ids: Iterable[str]) -> List[str]:
        """
        Remove alerts the backend has confirmed deleted.

        Returns:
            Ids that were actually present and removed.
        """
        removed = []
        with self._lock:
            for alert_id in ids:
                self._tombstone(alert_id)
                self._delta.discard(alert_id)
                if self._alerts.pop(alert_id, None) is not None:
                    removed.append(alert_id)
            self._stats["deleted"] += len(removed)
        return removed

    def _tombstone(self, alert_id: str) -> None:
        self._deleted_ids[alert_id] = None
        self._deleted_ids.move_to_end(alert_id)
        # Oldest deletions are forgotten first
        while len(self._deleted_ids) > self._max_tombstones:
            self._deleted_ids.popitem(last=False)

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def __contains__(self, alert_id: str) -> bool:
        with self._lock:
            return alert_id in self._alerts

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def ordered(self) -> List[Alert]:
        """All alerts, newest first; equal timestamps put the later ingest first."""
        with self._lock:
            alerts = list(self._alerts.values())
        return sort_by_recency(alerts)

    def severity_counts(self) -> Dict[str, int]:
        """Per-severity totals over the whole canonical set."""
        with self._lock:
            alerts = list(self._alerts.values())
        return count_severities(alerts)

    @property
    def dropped_count(self) -> int:
        with self._lock:
            return self._stats["dropped"]

    def get_stats(self) -> dict:
        with self._lock:
            return {
                **self._stats,
                "size": len(self._alerts),
                "pending_delta": len(self._delta),
            }


def sort_by_recency(alerts: Iterable[Alert]) -> List[Alert]:
    return sorted(alerts, key=lambda a: (a.created_at, a.ingest_seq), reverse=True)


def count_severities(alerts: Iterable[Alert]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    for alert in alerts:
        counts[alert.severity.value] += 1
    return counts
