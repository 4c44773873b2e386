"""Pydantic models for alert console API responses."""
from .alerts import (
    AlertItem,
    AlertSummary,
    BulkDeleteResponse,
    DeleteOutcomeItem,
    SelectionState,
    SeverityCounts,
)

__all__ = [
    "AlertItem",
    "AlertSummary",
    "BulkDeleteResponse",
    "DeleteOutcomeItem",
    "SelectionState",
    "SeverityCounts",
]
