"""API request/response schemas."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..schemas import ContentKind, ContentRecord, MetricCandidate, Vertical


class RotationRequest(BaseModel):
    count: Optional[int] = Field(default=None, ge=0)


class MetricsRequest(BaseModel):
    metrics: List[MetricCandidate] = Field(default_factory=list)


class MaintenanceRequest(BaseModel):
    kind: ContentKind = ContentKind.ARTICLE
    limit: Optional[int] = Field(default=None, ge=1)


class RunAccepted(BaseModel):
    run_id: str
    status: str  # started
    message: str


class RunStatusResponse(BaseModel):
    run_id: str
    action: str
    status: str  # running | completed | failed
    started_at: datetime
    completed_at: Optional[datetime] = None
    elapsed_seconds: float
    errors: List[str] = Field(default_factory=list)
    result: Optional[Any] = None


class ContentResponse(BaseModel):
    kind: ContentKind
    status: str = "PUBLISHED"
    vertical: Optional[Vertical] = None
    count: int
    items: List[ContentRecord] = Field(default_factory=list)
    generated_at: datetime
