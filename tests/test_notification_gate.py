"""
Unit tests for the idle-aware notification gate.

Usage:
    pytest tests/test_notification_gate.py -v
"""
from datetime import timedelta

import pytest

from alert_console.models import SourceKind
from alert_console.notification_gate import (
    HIGH_RISK_LABEL,
    NEW_ALERTS_LABEL,
    InteractionClock,
    NotificationGate,
    truncate_title,
)
from alert_console.notifications import NotificationLevel

from conftest import BASE_TIME, make_alert


@pytest.fixture
def clock():
    return InteractionClock(now=lambda: BASE_TIME)


@pytest.fixture
def gate(clock):
    return NotificationGate(clock, idle_threshold_ms=8000)


def at(ms: int):
    return BASE_TIME + timedelta(milliseconds=ms)


class TestIdleBoundary:
    """Poll discoveries notify only once idle time exceeds the threshold."""

    def test_active_user_suppresses_poll_toast(self, gate):
        delta = [make_alert("A", severity="critical")]
        assert gate.should_notify(delta, SourceKind.POLL, now=at(7999)) is None

    def test_idle_user_gets_poll_toast(self, gate):
        delta = [make_alert("A", severity="critical")]
        decision = gate.should_notify(delta, SourceKind.POLL, now=at(8001))

        assert decision is not None
        assert decision.title == HIGH_RISK_LABEL

    def test_exact_threshold_is_not_idle(self, gate):
        assert gate.is_idle(at(8000)) is False
        assert gate.is_idle(at(8001)) is True

    def test_push_notifies_even_when_active(self, gate):
        delta = [make_alert("A", severity="high", source=SourceKind.PUSH)]
        decision = gate.should_notify(delta, SourceKind.PUSH, now=at(1))

        assert decision is not None
        assert decision.level == NotificationLevel.WARNING

    def test_interaction_resets_idle_time(self, gate, clock):
        clock.mark(at(20000))
        delta = [make_alert("A")]

        assert gate.should_notify(delta, SourceKind.POLL, now=at(25000)) is None
        assert gate.should_notify(delta, SourceKind.POLL, now=at(28001)) is not None

    def test_empty_delta_never_notifies(self, gate):
        assert gate.should_notify([], SourceKind.PUSH, now=at(60000)) is None
        assert gate.should_notify([], SourceKind.POLL, now=at(60000)) is None


class TestLabels:
    def test_high_risk_label_for_critical_or_high(self, gate):
        delta = [make_alert("1", severity="low"), make_alert("2", severity="high")]
        decision = gate.should_notify(delta, SourceKind.POLL, now=at(9000))

        assert decision.level == NotificationLevel.INFO
        assert decision.message == f"{HIGH_RISK_LABEL}: 2 new alerts"
        assert decision.alert_ids == ["1", "2"]

    def test_plain_label_for_low_risk(self, gate):
        delta = [make_alert("1", severity="medium")]
        decision = gate.should_notify(delta, SourceKind.POLL, now=at(9000))

        assert decision.title == NEW_ALERTS_LABEL
        assert decision.message == f"{NEW_ALERTS_LABEL}: 1 new alert"

    def test_push_message_names_severity_and_title(self, gate):
        delta = [make_alert("A", severity="critical", title="Possible SQL injection", source=SourceKind.PUSH)]
        decision = gate.should_notify(delta, SourceKind.PUSH)

        assert decision.title == "Live CRITICAL alert"
        assert decision.message == "Live CRITICAL alert: Possible SQL injection"
        assert decision.auto_close_ms == 6000

    def test_push_message_names_newest_alert(self, gate):
        delta = [
            make_alert("new", severity="critical", minutes=5, title="Ransomware beacon", source=SourceKind.PUSH),
            make_alert("old", severity="low", minutes=1, title="New device login", source=SourceKind.PUSH),
        ]
        decision = gate.should_notify(delta, SourceKind.PUSH)

        assert decision.message == "Live CRITICAL alert: Ransomware beacon"
        assert decision.alert_ids == ["new", "old"]


class TestTruncateTitle:
    def test_short_title_unchanged(self):
        assert truncate_title("Port scan") == "Port scan"

    def test_long_title_truncated_with_ellipsis(self):
        result = truncate_title("x" * 200)
        assert len(result) == 80
        assert result.endswith("...")

    def test_long_push_title_truncated_in_message(self, gate):
        delta = [make_alert("A", title="y" * 120, source=SourceKind.PUSH)]
        decision = gate.should_notify(delta, SourceKind.PUSH)

        assert decision.message.endswith("...")
        assert len(decision.message) == len("Live HIGH alert: ") + 80
