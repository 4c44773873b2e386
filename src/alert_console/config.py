"""Alert console configuration loaded from environment variables."""
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class AlertConsoleSettings(BaseSettings):
    """Engine settings, read from ALERTS_* environment variables."""

    # Alert backend
    api_base: str = "http://localhost:4000"
    alerts_path: str = "/logs/alerts"
    push_url: Optional[str] = None
    api_token: Optional[str] = None
    request_timeout_seconds: float = 10.0

    # Ingestion
    poll_interval_seconds: float = 15.0
    auto_refresh: bool = True
    push_enabled: bool = True
    push_reconnect_initial_seconds: float = 1.0
    push_reconnect_max_seconds: float = 30.0

    # Notifications
    idle_threshold_ms: int = 8000
    notification_history: int = 100

    # Calendar-day and time-of-day filters are evaluated in this zone
    display_timezone: str = "UTC"

    @property
    def resolved_push_url(self) -> str:
        return self.push_url or f"{self.api_base.rstrip('/')}/alerts/stream"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)

    class Config:
        env_prefix = "ALERTS_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> AlertConsoleSettings:
    return AlertConsoleSettings()
