"""
Schemas package: all data models for the curation pipeline.

Models are organized by domain in submodules:
  - base.py: Vertical, Priority, ContentStatus, ContentKind enums
  - content.py: FeedSource, CandidateItem, MetricCandidate, ContentRecord, Enrichment
  - pipeline.py: SourceFetchResult, RunSummary, RotationResult, MaintenanceResult
"""

from topline.schemas.base import (
    Vertical, Priority, ContentStatus, ContentKind,
)

from topline.schemas.content import (
    FeedSource, CandidateItem, MetricCandidate, Enrichment, ContentRecord,
    DuplicateCheckResult, CreateResult,
)

from topline.schemas.pipeline import (
    SourceFetchResult, SourceRunStats, RunSummary, RotationResult, MaintenanceResult,
)
