"""
Content data models.

These models carry an item through the pipeline: the ephemeral candidates
produced by the fetcher (or supplied to metric ingestion), the generated
enrichment, and the persisted ContentRecord shared by both collections.

Hierarchy: FeedSource -> CandidateItem -> ContentRecord(kind=ARTICLE)
           MetricCandidate -> ContentRecord(kind=METRIC)
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from topline.schemas.base import ContentKind, ContentStatus, Priority, Vertical
from topline.shared.helpers import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class FeedSource(BaseModel):
    """Static feed source configuration."""
    name: str
    endpoint: str
    vertical: Vertical = Vertical.TECHNOLOGY_MEDIA
    priority: Priority = Priority.MEDIUM
    enabled: bool = True
    language: str = "en"


class CandidateItem(BaseModel):
    """
    Raw item produced by the fetcher.

    published_at is repaired by the fetcher before the item leaves it, so
    downstream stages can rely on it being set and not in the future.
    """
    title: str
    link: str
    snippet: str = ""
    source_name: str
    source_vertical: Vertical = Vertical.TECHNOLOGY_MEDIA
    source_priority: Priority = Priority.MEDIUM
    published_at: Optional[datetime] = None


class MetricCandidate(BaseModel):
    """Statistic supplied to metric ingestion."""
    title: str
    value: float
    unit: str
    source_name: str
    source_url: str
    summary: str = ""
    vertical: Optional[Vertical] = None
    priority: Priority = Priority.MEDIUM
    published_at: Optional[datetime] = None

    @field_validator('published_at')
    @classmethod
    def normalize_published_at(cls, v):
        return to_naive_utc(v)


class Enrichment(BaseModel):
    """Generated commentary that passed specificity validation."""
    why_it_matters: str
    talk_track: str
    strategy: str = ""


class ContentRecord(BaseModel):
    """
    Persisted article or metric.

    importance_score is clamped into [0, 100] on construction; vertical must
    be a member of the Vertical enum (unknown labels are rejected).
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: ContentKind
    title: str
    summary: str = ""
    source_url: str
    source_name: str
    vertical: Vertical = Vertical.OTHER
    priority: Priority = Priority.MEDIUM
    status: ContentStatus = ContentStatus.DRAFT
    importance_score: int = 50
    why_it_matters: str = ""
    talk_track: str = ""

    # Metrics only
    value: Optional[float] = None
    unit: Optional[str] = None

    published_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_selected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator('importance_score', mode='before')
    @classmethod
    def clamp_score(cls, v):
        try:
            score = int(round(float(v)))
        except (TypeError, ValueError):
            logger.debug(f"Non-numeric importance_score {v!r}, using 50")
            return 50
        return max(0, min(100, score))

    @field_validator('vertical', mode='before')
    @classmethod
    def resolve_vertical(cls, v):
        if isinstance(v, Vertical):
            return v
        return Vertical.from_label(v)

    @field_validator('published_at', 'created_at', 'updated_at', 'last_selected_at', 'expires_at')
    @classmethod
    def normalize_timestamps(cls, v):
        return to_naive_utc(v)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class DuplicateCheckResult(BaseModel):
    is_duplicate: bool = False
    existing_id: Optional[str] = None
    reason: str = ""


class CreateResult(BaseModel):
    """Outcome of create_safely: a new id, or the reason it was not inserted."""
    success: bool
    id: Optional[str] = None
    reason: str = ""
    duplicate: bool = False
