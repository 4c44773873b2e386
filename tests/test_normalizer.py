"""
Unit tests for the alert entity normalizer.

Covers both wire shapes (push payloads and poll records), envelope
unwrapping and the tolerance rules for malformed input.

Usage:
    pytest tests/test_normalizer.py -v
"""
from datetime import datetime, timezone

import pytest

from alert_console.models import Severity, SourceKind
from alert_console.normalizer import (
    DEFAULT_TITLE,
    normalize,
    parse_timestamp,
    unwrap_poll_envelope,
)

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class TestNormalizePush:
    """Push payloads use `id` (or `_id`) and never carry state flags."""

    def test_push_payload_with_id(self):
        alert = normalize(
            {
                "id": "a1",
                "severity": "critical",
                "title": "Possible SQL injection",
                "description": "Payload in login form",
                "createdAt": "2024-01-01T00:00:00Z",
                "keywords": ["sql", "auth"],
            },
            SourceKind.PUSH,
        )

        assert alert.id == "a1"
        assert alert.severity == Severity.CRITICAL
        assert alert.title == "Possible SQL injection"
        assert alert.keywords == ["sql", "auth"]
        assert alert.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert alert.source == SourceKind.PUSH
        assert alert.acknowledged is None
        assert alert.resolved is None

    def test_push_payload_with_underscore_id(self):
        alert = normalize({"_id": "b2", "severity": "low"}, SourceKind.PUSH)
        assert alert.id == "b2"

    def test_push_ignores_state_flags(self):
        """Absent is not False: push never sets acknowledged."""
        alert = normalize({"id": "c3", "acknowledged": True}, SourceKind.PUSH)
        assert alert.acknowledged is None

    def test_defaults_for_missing_fields(self):
        alert = normalize({"id": "d4"}, SourceKind.PUSH, now=NOW)

        assert alert.title == DEFAULT_TITLE
        assert alert.description == ""
        assert alert.keywords == []
        assert alert.severity == Severity.UNKNOWN
        assert alert.created_at == NOW


class TestNormalizePoll:
    """Poll records use `_id` and may carry acknowledged/resolved."""

    def test_poll_record_flags(self):
        alert = normalize(
            {"_id": "p1", "severity": "HIGH", "acknowledged": True, "resolved": "false"},
            SourceKind.POLL,
        )

        assert alert.id == "p1"
        assert alert.severity == Severity.HIGH
        assert alert.acknowledged is True
        assert alert.resolved is False

    def test_poll_record_without_flags_keeps_them_unknown(self):
        alert = normalize({"_id": "p2"}, SourceKind.POLL)
        assert alert.acknowledged is None
        assert alert.resolved is None

    def test_provided_fields_tracked(self):
        alert = normalize({"_id": "p3", "acknowledged": False}, SourceKind.POLL, now=NOW)

        assert "acknowledged" in alert.provided
        assert "title" not in alert.provided
        assert "created_at" not in alert.provided

    def test_comma_separated_keywords(self):
        alert = normalize({"_id": "p4", "keywords": "sql, injection ,"}, SourceKind.POLL)
        assert alert.keywords == ["sql", "injection"]


class TestMalformedInput:
    """The normalizer never raises."""

    @pytest.mark.parametrize("raw", [None, "text", 42, [], {"title": "no id"}, {"id": ""}, {"id": {"x": 1}}])
    def test_unusable_payloads_return_none(self, raw):
        assert normalize(raw, SourceKind.PUSH) is None

    def test_unparseable_created_at_uses_ingest_time(self):
        alert = normalize({"id": "x", "createdAt": "not a date"}, SourceKind.PUSH, now=NOW)
        assert alert.created_at == NOW

    def test_unknown_severity_is_sentinel(self):
        alert = normalize({"id": "x", "severity": "catastrophic"}, SourceKind.PUSH)
        assert alert.severity == Severity.UNKNOWN

    def test_numeric_id_is_stringified(self):
        alert = normalize({"_id": 1234}, SourceKind.POLL)
        assert alert.id == "1234"


class TestParseTimestamp:
    def test_iso_with_z(self):
        assert parse_timestamp("2024-01-01T10:00:00Z") == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        parsed = parse_timestamp("2024-01-01T10:00:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_epoch_seconds_and_millis(self):
        expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
        seconds = expected.timestamp()
        assert parse_timestamp(seconds) == expected
        assert parse_timestamp(int(seconds * 1000)) == expected

    @pytest.mark.parametrize("value", [None, "", "garbage", True, object()])
    def test_unusable_values(self, value):
        assert parse_timestamp(value) is None


class TestUnwrapPollEnvelope:
    def test_bare_list(self):
        assert unwrap_poll_envelope([{"_id": "1"}]) == [{"_id": "1"}]

    def test_alerts_envelope(self):
        assert unwrap_poll_envelope({"alerts": [{"_id": "1"}]}) == [{"_id": "1"}]

    @pytest.mark.parametrize("body", [None, {}, {"alerts": "nope"}, "text", 3])
    def test_unexpected_shapes_yield_empty(self, body):
        assert unwrap_poll_envelope(body) == []
