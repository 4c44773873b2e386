"""Security alerts API routes.

Serves the reconciled alert view to the UI: the filtered timeline, the
severity cards, selection and delete actions, plus a Server-Sent Events
stream of the toasts the view raises.
"""
import json
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from alert_console import AlertView
from alert_console.filters import parse_date, parse_severity, parse_time_of_day

from ..config import get_settings
from ..models.alerts import (
    AlertItem,
    AlertSummary,
    BulkDeleteResponse,
    SelectionState,
    SeverityCounts,
)

router = APIRouter(prefix="/api/alerts", tags=["Alerts"])


def get_view(request: Request) -> AlertView:
    """The alert view owned by the running application."""
    view = getattr(request.app.state, "alert_view", None)
    if view is None:
        raise HTTPException(status_code=503, detail="Alert view not initialised")
    return view


def _to_items(view: AlertView, alerts) -> list[AlertItem]:
    return [
        AlertItem(**alert.to_dict(), selected=view.selection.is_selected(alert.id))
        for alert in alerts
    ]


@router.get("", response_model=list[AlertItem])
async def list_alerts(
    severity: Optional[str] = Query(None, description="all, critical, high, medium or low"),
    search: Optional[str] = Query(None, description="Matches title, description and keywords"),
    only_unacknowledged: Optional[bool] = Query(None),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    time_from: Optional[str] = Query(None, description="HH:MM, inclusive"),
    time_to: Optional[str] = Query(None, description="HH:MM, inclusive"),
    view: AlertView = Depends(get_view),
):
    """
    Get the visible alert timeline, newest first.

    Any filter passed here replaces the view's current value for that
    filter; omitted filters keep their current value. Pass an empty string
    to clear a bound.
    """
    changes = {}
    try:
        if severity is not None:
            changes["severity"] = parse_severity(severity)
        if search is not None:
            changes["search"] = search
        if only_unacknowledged is not None:
            changes["only_unacknowledged"] = only_unacknowledged
        if date_from is not None:
            changes["date_from"] = parse_date(date_from)
        if date_to is not None:
            changes["date_to"] = parse_date(date_to)
        if time_from is not None:
            changes["time_from"] = parse_time_of_day(time_from)
        if time_to is not None:
            changes["time_to"] = parse_time_of_day(time_to)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if changes:
        visible = await view.set_criteria(replace(view.criteria, **changes))
    else:
        visible = view.visible()
    return _to_items(view, visible)


@router.post("/filters/reset", response_model=list[AlertItem])
async def clear_filters(view: AlertView = Depends(get_view)):
    """Reset every filter to its default."""
    return _to_items(view, await view.clear_criteria())


@router.get("/summary", response_model=AlertSummary)
async def get_summary(view: AlertView = Depends(get_view)):
    """
    Severity counts for the summary cards.

    Counts cover every alert in the view, not just the filtered timeline.
    """
    summary = view.summary()
    return AlertSummary(
        counts=SeverityCounts(**summary["counts"]),
        total=summary["total"],
        visible=summary["visible"],
        selected=summary["selected"],
    )


@router.post("/refresh", response_model=list[AlertItem])
async def refresh_alerts(view: AlertView = Depends(get_view)):
    """Re-fetch alerts from the backend now."""
    ok = await view.refresh()
    if not ok:
        raise HTTPException(status_code=502, detail="Failed to load alerts")
    return _to_items(view, view.visible())


@router.get("/selection", response_model=SelectionState)
async def get_selection(view: AlertView = Depends(get_view)):
    return SelectionState(selected=view.selection.selected)


@router.post("/selection/toggle-all", response_model=SelectionState)
async def toggle_all(view: AlertView = Depends(get_view)):
    """Select every visible alert, or clear the selection if all are selected."""
    return SelectionState(selected=view.toggle_all())


@router.post("/selection/{alert_id}/toggle", response_model=SelectionState)
async def toggle_one(alert_id: str, view: AlertView = Depends(get_view)):
    view.toggle_one(alert_id)
    return SelectionState(selected=view.selection.selected)


@router.post("/delete-selected", response_model=BulkDeleteResponse)
async def delete_selected(view: AlertView = Depends(get_view)):
    """
    Delete all selected alerts.

    The backend deletes one alert per request, so this fans out and
    reports each id's outcome. Failed ids stay selected.
    """
    result = await view.delete_selected()
    return BulkDeleteResponse(**result.to_dict())


@router.put("/auto-refresh")
async def set_auto_refresh(
    enabled: bool = Query(..., description="Enable or pause background polling"),
    view: AlertView = Depends(get_view),
):
    view.set_auto_refresh(enabled)
    return {"auto_refresh": enabled}


@router.get("/status")
async def get_status(view: AlertView = Depends(get_view)):
    """Operational status of the push channel, poller and store."""
    return view.status()


# ============================================================================
# Toast notifications (SSE)
# ============================================================================


@router.get("/notifications/stream")
async def stream_notifications(
    include_history: bool = Query(True, description="Include recent notifications on connect"),
    history_count: Optional[int] = Query(None, ge=0, le=50, description="Number of historical notifications"),
    view: AlertView = Depends(get_view),
):
    """
    Stream toast notifications via Server-Sent Events (SSE).

    The stream never closes - clients should handle reconnection.

    Usage with curl:
        curl -N http://localhost:8083/api/alerts/notifications/stream
    """
    if history_count is None:
        history_count = get_settings().notification_history_count

    async def event_generator():
        async for notification in view.notifications.subscribe(
            include_history=include_history,
            history_count=history_count,
        ):
            data = json.dumps(notification.to_dict())
            yield f"event: notification\ndata: {data}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.get("/notifications/history")
async def get_notification_history(
    count: int = Query(50, ge=1, le=100, description="Number of notifications to return"),
    view: AlertView = Depends(get_view),
):
    """Recent notifications, newest first."""
    return [n.to_dict() for n in view.notifications.get_history(count)]


@router.delete("/{alert_id}")
async def delete_alert(alert_id: str, view: AlertView = Depends(get_view)):
    """Delete one alert. The view only changes once the backend confirms."""
    outcome = await view.delete_one(alert_id)
    if not outcome.ok:
        raise HTTPException(status_code=502, detail="Failed to delete alert")
    return {"status": "deleted", "alert_id": alert_id}
