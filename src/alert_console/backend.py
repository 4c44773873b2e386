"""
Alert Backend Client.

Thin async wrapper over the backend's alert endpoints. The backend only
offers single-alert deletion; bulk deletes are fanned out by the caller.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import AlertConsoleSettings, get_settings
from .models import FilterCriteria

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when the alert backend can't be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AlertBackendClient:
    """
    Async client for the alert backend.

    Args:
        settings: Console settings (base URL, token, timeout).
        client: Optional pre-built httpx.AsyncClient, mainly for tests.
    """

    def __init__(
        self,
        settings: Optional[AlertConsoleSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.api_base,
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
        )

    def _headers(self) -> Dict[str, str]:
        if self.settings.api_token:
            return {"Authorization": f"Bearer {self.settings.api_token}"}
        return {}

    async def fetch_alerts(self, criteria: Optional[FilterCriteria] = None) -> Any:
        """
        GET the current alert collection.

        Args:
            criteria: Current filters; severity and acknowledgement are
                passed through as query parameters.

        Returns:
            Decoded JSON body (bare list or {"alerts": [...]} envelope).
        """
        params = (criteria or FilterCriteria()).poll_params()
        try:
            response = await self._client.get(
                self.settings.alerts_path, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise BackendError(f"Alert fetch failed: {e}") from e

        if response.status_code != 200:
            raise BackendError(
                f"Alert fetch returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Alert fetch returned invalid JSON: {e}") from e

    async def delete_alert(self, alert_id: str) -> None:
        """DELETE a single alert. Raises BackendError unless the backend confirms."""
        path = f"{self.settings.alerts_path.rstrip('/')}/{alert_id}"
        try:
            response = await self._client.delete(path, headers=self._headers())
        except httpx.HTTPError as e:
            raise BackendError(f"Delete of {alert_id} failed: {e}") from e

        if not response.is_success:
            raise BackendError(
                f"Delete of {alert_id} returned status {response.status_code}",
                status_code=response.status_code,
            )
        logger.info(f"[DELETE] Backend confirmed deletion of {alert_id}")

    def stream(self, url: str) -> Any:
        """Open a streaming GET (used by the push channel)."""
        return self._client.stream(
            "GET",
            url,
            headers={"Accept": "text/event-stream", **self._headers()},
            timeout=httpx.Timeout(self.settings.request_timeout_seconds, read=None),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
