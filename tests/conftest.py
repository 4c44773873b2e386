"""
Pytest fixtures for Alert Console tests.
"""
import sys
import json
from pathlib import Path
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from dotenv import load_dotenv

# Ensure src/ and the repo root are on sys.path so tests can import
# alert_console and server.console_api without installing the project.
ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for path in (SRC, ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# Load environment variables
load_dotenv()

from alert_console.backend import AlertBackendClient, BackendError  # noqa: E402
from alert_console.config import AlertConsoleSettings  # noqa: E402
from alert_console.models import Alert, SourceKind  # noqa: E402
from alert_console.normalizer import normalize  # noqa: E402


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Alert factories
# ============================================================================


def push_payload(alert_id: str, severity: str = "high", minutes: int = 0, **extra) -> dict:
    """Push-shaped payload (uses `id`, never carries acknowledged/resolved)."""
    payload = {
        "id": alert_id,
        "severity": severity,
        "title": extra.pop("title", f"Alert {alert_id}"),
        "createdAt": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
    }
    payload.update(extra)
    return payload


def poll_record(alert_id: str, severity: str = "high", minutes: int = 0, **extra) -> dict:
    """Poll-shaped record (uses `_id`)."""
    record = {
        "_id": alert_id,
        "severity": severity,
        "title": extra.pop("title", f"Alert {alert_id}"),
        "createdAt": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
    }
    record.update(extra)
    return record


def make_alert(
    alert_id: str,
    severity: str = "high",
    minutes: int = 0,
    source: SourceKind = SourceKind.POLL,
    **extra,
) -> Alert:
    builder = push_payload if source == SourceKind.PUSH else poll_record
    return normalize(builder(alert_id, severity, minutes, **extra), source)


@pytest.fixture
def alert_factory():
    return make_alert


# ============================================================================
# Fake alert backend
# ============================================================================


class FakeAlertBackend:
    """
    In-memory stand-in for the alert backend, served through
    httpx.MockTransport so the real client code path is exercised.
    """

    def __init__(self, records=None, envelope: bool = True):
        self.records = list(records or [])
        self.envelope = envelope
        self.failing_deletes: set[str] = set()
        self.fail_fetch = False
        self.requests: list[httpx.Request] = []
        self.deleted: list[str] = []
        self.stream_frames: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path == "/logs/alerts":
            if self.fail_fetch:
                return httpx.Response(500, json={"error": "boom"})
            body = {"alerts": self.records} if self.envelope else self.records
            return httpx.Response(200, json=body)

        if request.method == "DELETE" and path.startswith("/logs/alerts/"):
            alert_id = path.rsplit("/", 1)[-1]
            if alert_id in self.failing_deletes:
                return httpx.Response(500, json={"error": "delete failed"})
            self.deleted.append(alert_id)
            self.records = [r for r in self.records if r.get("_id") != alert_id]
            return httpx.Response(200, json={"status": "deleted"})

        if request.method == "GET" and path == "/alerts/stream":
            body = "".join(self.stream_frames).encode()
            return httpx.Response(
                200, content=body, headers={"content-type": "text/event-stream"}
            )

        return httpx.Response(404)

    def sse_frame(self, payload, event: str = "new-alert") -> None:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        self.stream_frames.append(f"event: {event}\ndata: {data}\n\n")


@pytest.fixture
def fake_backend():
    return FakeAlertBackend()


@pytest.fixture
def settings():
    return AlertConsoleSettings(
        api_base="http://backend.test",
        poll_interval_seconds=3600,
        push_enabled=False,
        idle_threshold_ms=8000,
        display_timezone="UTC",
    )


@pytest.fixture
def backend_client(fake_backend, settings):
    """AlertBackendClient wired to the fake backend."""
    client = httpx.AsyncClient(
        base_url=settings.api_base,
        transport=httpx.MockTransport(fake_backend.handler),
    )
    return AlertBackendClient(settings, client=client)


class RecordingDeleter:
    """Minimal async deleter for selection tests."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls: list[str] = []

    async def delete_alert(self, alert_id: str) -> None:
        self.calls.append(alert_id)
        if alert_id in self.failing:
            raise BackendError(f"Delete of {alert_id} returned status 500", status_code=500)
