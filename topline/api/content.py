"""Read-side router -- published and archived content, service health."""

from typing import Optional

from fastapi import APIRouter, Query

from ..schemas import ContentKind, ContentStatus, Vertical
from ..shared.helpers import utcnow
from .dependencies import DB, AppSettings
from .run_manager import run_manager
from .schemas import ContentResponse

router = APIRouter()


@router.get("/content/{kind}", response_model=ContentResponse)
async def get_content(
    kind: ContentKind,
    db: DB,
    vertical: Optional[Vertical] = None,
    limit: int = Query(default=50, ge=1, le=200),
):
    """Currently published records, priority first then newest. Optionally one vertical."""
    items = db.get_published(kind, limit=limit, vertical=vertical)
    return ContentResponse(
        kind=kind, vertical=vertical, count=len(items), items=items, generated_at=utcnow(),
    )


@router.get("/content/{kind}/archive", response_model=ContentResponse)
async def get_archive(
    kind: ContentKind,
    db: DB,
    vertical: Optional[Vertical] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """Previously shown records, most recently shown first."""
    items = db.get_archived(kind, limit=limit, offset=offset, vertical=vertical)
    return ContentResponse(
        kind=kind, status="ARCHIVED", vertical=vertical, count=len(items), items=items, generated_at=utcnow(),
    )


@router.get("/health")
async def health(db: DB, settings: AppSettings):
    counts = {
        kind.value: {status.value: db.count_records(kind, status=status) for status in ContentStatus}
        for kind in ContentKind
    }
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "running": run_manager.is_running,
        "content": counts,
        "config": {
            "mock_mode": settings.mock_mode,
            "openai_model": settings.openai_model,
            "openai_lite_model": settings.openai_lite_model,
            "llm_configured": bool(settings.openai_api_key),
            "scorer_use_llm": settings.scorer_use_llm,
            "feed_max_items_per_source": settings.feed_max_items_per_source,
            "pipeline_source_concurrency": settings.pipeline_source_concurrency,
        },
    }
