"""
Unit tests for the canonical alert store (merge & dedup engine).

These tests verify:
1. Push ingest is idempotent
2. Poll batches field-merge and never evict push-only entries
3. The delta is consumed exactly once
4. Recency ordering and tie-breaking
5. Deleted ids can't be resurrected by stale data

Usage:
    pytest tests/test_store.py -v
"""
from alert_console.models import Severity, SourceKind
from alert_console.normalizer import normalize
from alert_console.store import AlertStore

from conftest import make_alert, poll_record, push_payload


def push(alert_id, **kwargs):
    return make_alert(alert_id, source=SourceKind.PUSH, **kwargs)


def poll(alert_id, **kwargs):
    return make_alert(alert_id, source=SourceKind.POLL, **kwargs)


class TestIngestOne:
    """Push path: insert if absent."""

    def test_idempotent_ingest(self):
        """Ingesting the same push twice equals ingesting it once."""
        once = AlertStore()
        once.ingest_one(push("A"))

        twice = AlertStore()
        twice.ingest_one(push("A"))
        twice.ingest_one(push("A"))

        assert [a.id for a in once.ordered()] == [a.id for a in twice.ordered()]
        assert once.delta() == ["A"]
        assert twice.delta() == ["A"]

    def test_repeated_push_does_not_update_fields(self):
        store = AlertStore()
        store.ingest_one(push("A", title="Original"))
        inserted = store.ingest_one(push("A", title="Changed"))

        assert inserted is False
        assert store.get("A").title == "Original"

    def test_none_is_counted_as_dropped(self):
        store = AlertStore()
        assert store.ingest_one(None) is False
        assert store.dropped_count == 1
        assert len(store) == 0


class TestIngestBatch:
    """Poll path: field-merge, never evict."""

    def test_merge_preserves_push_only_entries(self):
        store = AlertStore()
        store.ingest_one(push("A"))
        store.ingest_one(push("B"))

        store.ingest_batch([poll("A")])

        assert {a.id for a in store.ordered()} == {"A", "B"}

    def test_field_merge_sets_acknowledged_keeps_title(self):
        store = AlertStore()
        store.ingest_one(push("A", title="Brute force login"))
        assert store.get("A").acknowledged is None

        record = {"_id": "A", "acknowledged": True}
        store.ingest_batch([normalize(record, SourceKind.POLL)])

        merged = store.get("A")
        assert merged.acknowledged is True
        assert merged.title == "Brute force login"

    def test_poll_overwrites_fields_it_carries(self):
        store = AlertStore()
        store.ingest_one(push("A", severity="low", title="Old"))
        store.ingest_batch([poll("A", severity="critical", title="New", resolved=True)])

        merged = store.get("A")
        assert merged.severity == Severity.CRITICAL
        assert merged.title == "New"
        assert merged.resolved is True
        assert merged.source == SourceKind.PUSH

    def test_new_ids_against_previous_batch(self):
        store = AlertStore()
        assert store.ingest_batch([poll("1"), poll("2")]) == ["1", "2"]
        assert store.ingest_batch([poll("2"), poll("3")]) == ["3"]

    def test_delta_excludes_alerts_already_delivered_by_push(self):
        """A poll that finds an alert push already delivered must not re-announce it."""
        store = AlertStore()
        store.ingest_one(push("A"))
        store.delta()

        store.ingest_batch([poll("A"), poll("B")])

        assert store.delta() == ["B"]

    def test_malformed_records_dropped_and_counted(self):
        store = AlertStore()
        alerts = [normalize(r, SourceKind.POLL) for r in [poll_record("1"), {"title": "no id"}, "junk"]]

        store.ingest_batch(alerts)

        assert len(store) == 1
        assert store.dropped_count == 2

    def test_empty_batch_never_evicts(self):
        store = AlertStore()
        store.ingest_batch([poll("1"), poll("2")])
        store.ingest_batch([])

        assert len(store) == 2

    def test_duplicate_ids_inside_one_batch(self):
        store = AlertStore()
        store.ingest_batch([poll("1", title="first"), poll("1", title="second")])

        assert len(store) == 1
        assert store.get("1").title == "first"


class TestDelta:
    def test_delta_cleared_after_read(self):
        store = AlertStore()
        store.ingest_one(push("A"))

        assert store.delta() == ["A"]
        assert store.delta() == []

    def test_removed_ids_leave_delta(self):
        store = AlertStore()
        store.ingest_one(push("A"))
        store.remove(["A"])

        assert store.delta() == []


class TestOrdering:
    def test_ordered_by_created_at_desc(self):
        store = AlertStore()
        store.ingest_batch([poll("old", minutes=0), poll("new", minutes=30), poll("mid", minutes=10)])

        assert [a.id for a in store.ordered()] == ["new", "mid", "old"]

    def test_ties_broken_by_latest_ingest(self):
        store = AlertStore()
        store.ingest_one(push("first", minutes=5))
        store.ingest_one(push("second", minutes=5))

        assert [a.id for a in store.ordered()] == ["second", "first"]


class TestRemove:
    def test_remove_returns_present_ids(self):
        store = AlertStore()
        store.ingest_batch([poll("1"), poll("2")])

        assert store.remove(["1", "missing"]) == ["1"]
        assert "1" not in store

    def test_deleted_alert_not_resurrected(self):
        """A stale poll or repeated push must not bring back a deleted alert."""
        store = AlertStore()
        store.ingest_batch([poll("1"), poll("2")])
        store.remove(["1"])

        store.ingest_batch([poll("1"), poll("2")])
        store.ingest_one(normalize(push_payload("1"), SourceKind.PUSH))

        assert "1" not in store
        assert len(store) == 1

    def test_tombstones_are_bounded(self):
        """Only the most recent deletions are remembered."""
        store = AlertStore(max_tombstones=2)
        store.ingest_batch([poll("1"), poll("2"), poll("3")])
        store.remove(["1"])
        store.remove(["2"])
        store.remove(["3"])

        store.ingest_one(push("1"))
        store.ingest_one(push("2"))
        store.ingest_one(push("3"))

        assert [a.id for a in store.ordered()] == ["1"]


class TestInsertOrder:
    def test_ingest_seq_follows_insert_order(self):
        store = AlertStore()
        store.ingest_one(push("A"))
        store.ingest_batch([poll("B"), poll("A")])

        assert store.get("A").ingest_seq == 1
        assert store.get("B").ingest_seq == 2


class TestSeverityCounts:
    def test_counts_include_unknown(self):
        store = AlertStore()
        store.ingest_batch([
            poll("1", severity="critical"),
            poll("2", severity="critical"),
            poll("3", severity="low"),
            poll("4", severity="bogus"),
        ])

        counts = store.severity_counts()
        assert counts == {"critical": 2, "high": 0, "medium": 0, "low": 1, "unknown": 1}
