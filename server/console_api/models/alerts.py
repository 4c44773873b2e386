"""Alert console response models."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

AlertSeverity = Literal["critical", "high", "medium", "low", "unknown"]
AlertSource = Literal["push", "poll"]


class AlertItem(BaseModel):
    """One row of the alerts timeline."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    severity: AlertSeverity
    title: str
    description: str = ""
    keywords: list[str] = []
    created_at: str = Field(alias="createdAt")
    source: AlertSource
    acknowledged: Optional[bool] = None
    resolved: Optional[bool] = None
    selected: bool = False


class SeverityCounts(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0


class AlertSummary(BaseModel):
    """Severity cards over the full alert set, plus the visible count."""

    counts: SeverityCounts
    total: int
    visible: int
    selected: int


class SelectionState(BaseModel):
    selected: list[str]


class DeleteOutcomeItem(BaseModel):
    id: str
    ok: bool
    error: Optional[str] = None


class BulkDeleteResponse(BaseModel):
    """Per-id outcomes of a bulk delete; partial success is a normal result."""

    requested: int
    succeeded: list[str]
    failed: list[str]
    outcomes: list[DeleteOutcomeItem]
