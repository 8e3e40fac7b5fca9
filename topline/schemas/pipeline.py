"""
Run bookkeeping models.

These track what happened during a pipeline run, a rotation or a
maintenance pass, and are what operators see in logs, in the
pipeline_runs table and on the HTTP surface.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .base import ContentKind
from .content import CandidateItem


class SourceFetchResult(BaseModel):
    """Items fetched from one source. error is set when the fetch failed."""
    source_name: str
    items: List[CandidateItem] = Field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceRunStats(BaseModel):
    """Per-source counters for a pipeline run."""
    source_name: str
    fetched: int = 0
    added: int = 0
    irrelevant: int = 0
    duplicates: int = 0
    failed: int = 0
    fetch_seconds: float = 0.0
    errors: List[str] = Field(default_factory=list)


class RunSummary(BaseModel):
    """Operator-facing summary of a pipeline run."""
    run_id: str
    status: str = "running"
    mock_mode: bool = False
    sources: Dict[str, SourceRunStats] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    run_time_seconds: float = 0.0

    def stats_for(self, source_name: str) -> SourceRunStats:
        if source_name not in self.sources:
            self.sources[source_name] = SourceRunStats(source_name=source_name)
        return self.sources[source_name]

    def _total(self, field: str) -> int:
        return sum(getattr(s, field) for s in self.sources.values())

    @property
    def fetched(self) -> int:
        return self._total("fetched")

    @property
    def added(self) -> int:
        return self._total("added")

    @property
    def irrelevant(self) -> int:
        return self._total("irrelevant")

    @property
    def duplicates(self) -> int:
        return self._total("duplicates")

    @property
    def failed(self) -> int:
        return self._total("failed")

    def totals(self) -> Dict[str, int]:
        return {
            "fetched": self.fetched,
            "added": self.added,
            "irrelevant": self.irrelevant,
            "duplicates": self.duplicates,
            "failed": self.failed,
        }


class RotationResult(BaseModel):
    kind: ContentKind
    archived: int = 0
    published_ids: List[str] = Field(default_factory=list)
    rotated_at: Optional[datetime] = None


class MaintenanceResult(BaseModel):
    """Counters for reclassify / regenerate / cleanup passes."""
    kind: ContentKind
    action: str
    examined: int = 0
    updated: int = 0
    removed: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
