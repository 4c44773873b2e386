#!/usr/bin/env python3
"""
Security Alert Backend Simulator for the Alert Console.

Serves an in-memory alert collection the way the real log engine does:
- GET    /logs/alerts           poll endpoint ({"alerts": [...]} envelope)
- DELETE /logs/alerts/{id}      single-alert delete (no bulk variant)
- GET    /alerts/stream         SSE push stream of `new-alert` events
- POST   /alerts/generate       publish one random alert now

Usage:
    python scripts/alert_backend_simulator.py --port 4000 --interval 20
    python scripts/alert_backend_simulator.py --seed-count 25 --delete-failure-rate 0.2
"""

import argparse
import asyncio
import json
import random
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse


# Load environment variables
load_dotenv()

SEVERITIES = ["critical", "high", "medium", "low"]

# Relative weights, most traffic is low-grade noise
SEVERITY_WEIGHTS = [1, 3, 6, 10]

# Alert templates by severity
ALERT_TEMPLATES = {
    "critical": [
        ("Possible SQL injection", "SQL injection payload detected in login form", ["sql", "injection", "auth"]),
        ("Ransomware beacon", "Outbound traffic matches a known ransomware C2 pattern", ["malware", "c2"]),
        ("Privilege escalation", "Service account added to administrators group", ["iam", "privilege"]),
    ],
    "high": [
        ("Brute force login", "Repeated failed logins from a single source", ["auth", "bruteforce"]),
        ("XSS attempt", "Script tag submitted in a comment field", ["xss", "web"]),
        ("Suspicious geolocation", "Login from an unusual country for this account", ["geo", "auth"]),
    ],
    "medium": [
        ("Port scan detected", "Sequential connection attempts across many ports", ["scan", "network"]),
        ("Outdated TLS version", "Client negotiated TLS 1.0", ["tls", "config"]),
    ],
    "low": [
        ("New device login", "First login from a new browser", ["auth", "device"]),
        ("Rate limit reached", "API client hit its hourly rate limit", ["api"]),
    ],
}


def create_alert(
    severity: Optional[str] = None,
    created_at: Optional[datetime] = None,
    acknowledged: bool = False,
) -> dict:
    """Create one backend-shaped alert record."""
    severity = severity or random.choices(SEVERITIES, weights=SEVERITY_WEIGHTS)[0]
    title, description, keywords = random.choice(ALERT_TEMPLATES[severity])
    created_at = created_at or datetime.now(timezone.utc)

    return {
        "_id": uuid.uuid4().hex[:24],
        "severity": severity,
        "title": title,
        "description": description,
        "keywords": list(keywords),
        "createdAt": created_at.isoformat().replace("+00:00", "Z"),
        "acknowledged": acknowledged,
        "resolved": False,
    }


def to_push_payload(alert: dict) -> dict:
    """Shape a stored alert like the push stream does: `id` and no state flags."""
    return {
        "id": alert["_id"],
        "severity": alert["severity"],
        "title": alert["title"],
        "description": alert["description"],
        "createdAt": alert["createdAt"],
        "keywords": alert["keywords"],
    }


def seed_alerts(count: int, hours: int = 48) -> list[dict]:
    """Generate `count` alerts spread over the last `hours` hours."""
    now = datetime.now(timezone.utc)
    alerts = []
    for _ in range(count):
        offset = timedelta(minutes=random.randint(0, hours * 60))
        alerts.append(
            create_alert(created_at=now - offset, acknowledged=random.random() < 0.3)
        )
    return alerts


def filter_alerts(alerts: list[dict], severity: Optional[str], acknowledged: Optional[str]) -> list[dict]:
    """Apply the poll endpoint's query parameters."""
    result = alerts
    if severity and severity != "all":
        result = [a for a in result if a["severity"] == severity]
    if acknowledged is not None:
        wanted = acknowledged.lower() == "true"
        result = [a for a in result if bool(a.get("acknowledged")) == wanted]
    return sorted(result, key=lambda a: a["createdAt"], reverse=True)


class SimulatedBackend:
    """In-memory alert backend with push subscribers."""

    def __init__(self, seed_count: int = 10, delete_failure_rate: float = 0.0):
        self.alerts: dict[str, dict] = {a["_id"]: a for a in seed_alerts(seed_count)}
        self.delete_failure_rate = delete_failure_rate
        self._subscribers: list[asyncio.Queue] = []

    def publish(self, alert: dict) -> None:
        self.alerts[alert["_id"]] = alert
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(to_push_payload(alert))
            except asyncio.QueueFull:
                self._subscribers.remove(queue)

    def delete(self, alert_id: str) -> bool:
        if alert_id not in self.alerts:
            return False
        if random.random() < self.delete_failure_rate:
            raise RuntimeError("simulated delete failure")
        del self.alerts[alert_id]
        return True

    async def subscribe(self):
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)


def create_app(backend: SimulatedBackend, interval: float = 0) -> FastAPI:
    """Build the simulator app. `interval` > 0 publishes a random alert that often."""

    async def generate_forever():
        while True:
            await asyncio.sleep(interval)
            alert = create_alert()
            backend.publish(alert)
            print(f"[SIM] Published {alert['severity']} alert {alert['_id']}: {alert['title']}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        generator = asyncio.create_task(generate_forever()) if interval > 0 else None
        yield
        if generator is not None:
            generator.cancel()

    app = FastAPI(title="Alert Backend Simulator", lifespan=lifespan)

    @app.get("/logs/alerts")
    async def get_alerts(
        severity: Optional[str] = Query(None),
        acknowledged: Optional[str] = Query(None),
    ):
        return {"alerts": filter_alerts(list(backend.alerts.values()), severity, acknowledged)}

    @app.delete("/logs/alerts/{alert_id}")
    async def delete_alert(alert_id: str):
        try:
            found = backend.delete(alert_id)
        except RuntimeError as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not found:
            raise HTTPException(status_code=404, detail="Alert not found")
        return {"status": "deleted", "id": alert_id}

    @app.post("/alerts/generate")
    async def generate_alert(severity: Optional[str] = Query(None)):
        if severity is not None and severity not in SEVERITIES:
            raise HTTPException(status_code=422, detail=f"Unknown severity: {severity}")
        alert = create_alert(severity=severity)
        backend.publish(alert)
        return {"status": "published", "alert": alert}

    @app.get("/alerts/stream")
    async def stream_alerts():
        async def event_generator():
            async for payload in backend.subscribe():
                yield f"event: new-alert\ndata: {json.dumps(payload)}\n\n"

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


def main():
    parser = argparse.ArgumentParser(
        description="Simulated security alert backend for the Alert Console",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=4000, help="Bind port")
    parser.add_argument(
        "--interval",
        type=float,
        default=20.0,
        help="Seconds between generated alerts (0 disables the generator)",
    )
    parser.add_argument("--seed-count", type=int, default=10, help="Alerts present at startup")
    parser.add_argument(
        "--delete-failure-rate",
        type=float,
        default=0.0,
        help="Probability (0-1) that a delete request fails",
    )
    args = parser.parse_args()

    import uvicorn

    backend = SimulatedBackend(
        seed_count=args.seed_count,
        delete_failure_rate=args.delete_failure_rate,
    )
    print(f"[SIM] Serving {len(backend.alerts)} seeded alerts on http://{args.host}:{args.port}")
    uvicorn.run(create_app(backend, interval=args.interval), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
