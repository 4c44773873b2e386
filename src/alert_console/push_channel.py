"""
Push Ingestion Channel.

Keeps a server-sent-events subscription to the alert backend open for the
lifetime of the alert view and forwards every `new-alert` frame to the
dispatcher. Connectivity changes are reported as events too; polling keeps
running as the fallback of record while the stream is down.
"""

import asyncio
import json
import logging
from typing import Callable, Optional, Tuple

import httpx

from .backend import AlertBackendClient, BackendError
from .events import IngestEvent, PushAlertReceived, PushConnectionChanged

logger = logging.getLogger(__name__)

ALERT_EVENT_TYPES = ("new-alert", "alert", "message")


class SSEFrameParser:
    """Incremental parser for `text/event-stream` lines."""

    def __init__(self):
        self._event_type: Optional[str] = None
        self._data: list[str] = []

    def feed(self, line: str) -> Optional[Tuple[str, str]]:
        """
        Consume one line.

        Returns:
            (event_type, data) when the line completes a frame, else None.
        """
        line = line.rstrip("\r\n")

        if line.startswith(":"):
            # Comment / keep-alive
            return None
        if line.startswith("event:"):
            self._event_type = line[6:].strip()
            return None
        if line.startswith("data:"):
            self._data.append(line[5:].lstrip())
            return None
        if line == "":
            if not self._data:
                self._event_type = None
                return None
            frame = (self._event_type or "message", "\n".join(self._data))
            self._event_type = None
            self._data = []
            return frame
        # id:, retry: and unknown fields are ignored
        return None


class PushChannel:
    """
    Persistent subscription to the backend's alert stream.

    Args:
        backend: Backend client used to open the stream.
        url: Stream URL.
        emit: Callback receiving typed ingest events.
        reconnect_initial: First reconnect delay in seconds.
        reconnect_max: Upper bound for the exponential reconnect delay.
    """

    def __init__(
        self,
        backend: AlertBackendClient,
        url: str,
        emit: Callable[[IngestEvent], None],
        reconnect_initial: float = 1.0,
        reconnect_max: float = 30.0,
    ):
        self.backend = backend
        self.url = url
        self._emit = emit
        self.reconnect_initial = reconnect_initial
        self.reconnect_max = reconnect_max

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.connected = False
        self.event_count = 0
        self.reconnects = 0

    def start(self) -> None:
        if self._running:
            logger.warning("[PUSH] Channel already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="alert-push-channel")
        logger.info(f"[PUSH] Subscribing to {self.url}")

    async def stop(self) -> None:
        """Close the subscription. No events are emitted after this returns."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.connected = False
        logger.info(f"[PUSH] Stopped. Total events received: {self.event_count}")

    def _send(self, event: IngestEvent) -> None:
        if self._running:
            self._emit(event)

    async def _run(self) -> None:
        delay = self.reconnect_initial

        while self._running:
            error: Optional[str] = None
            try:
                async with self.backend.stream(self.url) as response:
                    if response.status_code != 200:
                        raise BackendError(
                            f"Stream subscription returned status {response.status_code}",
                            status_code=response.status_code,
                        )
                    self.connected = True
                    delay = self.reconnect_initial
                    self._send(PushConnectionChanged(connected=True))

                    parser = SSEFrameParser()
                    async for line in response.aiter_lines():
                        frame = parser.feed(line)
                        if frame is not None:
                            self._handle_frame(*frame)
                error = "stream closed by server"
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, BackendError) as e:
                error = str(e) or type(e).__name__

            self.connected = False
            self._send(PushConnectionChanged(connected=False, error=error))

            if not self._running:
                break
            self.reconnects += 1
            logger.info(f"[PUSH] Reconnecting in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.reconnect_max)

    def _handle_frame(self, event_type: str, data: str) -> None:
        if event_type not in ALERT_EVENT_TYPES:
            logger.debug(f"[PUSH] Ignoring '{event_type}' frame")
            return

        self.event_count += 1
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.debug(f"[PUSH] Unparseable alert frame: {e}")
            payload = None  # counted as dropped by the store

        self._send(PushAlertReceived(payload=payload))

    def get_status(self) -> dict:
        return {
            "url": self.url,
            "running": self._running,
            "connected": self.connected,
            "event_count": self.event_count,
            "reconnects": self.reconnects,
        }
