"""Console API configuration loaded from environment variables."""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Console API settings loaded from environment."""

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8083

    # Start the alert view (push + polling) with the app
    start_view: bool = True

    # SSE notification stream
    notification_history_count: int = 10

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    class Config:
        env_prefix = "CONSOLE_"


@lru_cache
def get_settings() -> Settings:
    return Settings()
