"""Security Alert Console API - FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from alert_console import AlertView

from .config import get_settings
from .routes import alerts

settings = get_settings()
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own one alert view for the lifetime of the application."""
    view = AlertView()
    app.state.alert_view = view
    if settings.start_view:
        await view.start()
    try:
        yield
    finally:
        await view.stop()
        app.state.alert_view = None
        log.info("Alert view shut down")


app = FastAPI(
    title="Security Alert Console API",
    description="Reconciled real-time view of security alerts",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

app.include_router(alerts.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for the API."""
    return {"status": "healthy", "service": "console-api"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "server.console_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
