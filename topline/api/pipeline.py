"""Pipeline API router -- trigger ingestion, rotation and maintenance runs.

Long operations (ingestion, metric ingestion, maintenance) run as background
tasks: the trigger returns a run_id immediately and the caller polls
GET /runs/{run_id}. Rotation is a handful of queries and answers inline.

Every writer refuses to start while another run is in progress (409).
Generation-backed operations check credentials before they are scheduled,
so a missing key is reported as 503 on the trigger itself.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel

from ..config import ConfigurationError
from ..pipeline import CurationPipeline
from ..schemas import ContentKind, RotationResult
from .dependencies import DB, Pipeline
from .run_manager import ManagedRun, run_manager
from .schemas import (
    MaintenanceRequest, MetricsRequest, RotationRequest, RunAccepted, RunStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _refuse_overlap():
    if run_manager.is_running:
        raise HTTPException(409, "A run is already in progress")


def _require_generation(pipeline: CurationPipeline):
    try:
        pipeline.llm
    except ConfigurationError as e:
        raise HTTPException(503, str(e))


async def _execute(run: ManagedRun, work: Callable[[], Awaitable]):
    """Background task: run `work` and record the outcome on `run`."""
    logger.info(f"Starting {run.run_id}")
    try:
        result = await work()
    except Exception as e:
        logger.error(f"{run.run_id} failed: {e}")
        run.finish(error=f"{type(e).__name__}: {e}")
        return
    run.finish(result)
    logger.info(f"Finished {run.run_id} in {run.elapsed_seconds}s")


def _start(action: str, background_tasks: BackgroundTasks, work: Callable[[], Awaitable]) -> RunAccepted:
    run = run_manager.create_run(action)
    background_tasks.add_task(_execute, run, work)
    return RunAccepted(
        run_id=run.run_id,
        status="started",
        message=f"{action} started. Poll /runs/{run.run_id}",
    )


def _payload(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_payload(r) for r in result]
    return result


def _status(run: ManagedRun) -> RunStatusResponse:
    return RunStatusResponse(
        run_id=run.run_id,
        action=run.action,
        status=run.status,
        started_at=run.started_at,
        completed_at=run.completed_at,
        elapsed_seconds=run.elapsed_seconds,
        errors=run.errors,
        result=_payload(run.result),
    )


@router.post("/pipeline/run", response_model=RunAccepted)
async def run_pipeline(pipeline: Pipeline, background_tasks: BackgroundTasks):
    """Fetch all enabled feeds and store new DRAFT articles, in the background."""
    _refuse_overlap()
    _require_generation(pipeline)
    return _start("pipeline", background_tasks, pipeline.run)


@router.post("/metrics", response_model=RunAccepted)
async def ingest_metrics(body: MetricsRequest, pipeline: Pipeline, background_tasks: BackgroundTasks):
    _refuse_overlap()
    _require_generation(pipeline)

    async def work():
        return await pipeline.ingest_metrics(body.metrics)
    return _start("metrics", background_tasks, work)


@router.post("/rotation/{kind}", response_model=RotationResult)
async def rotate(kind: ContentKind, pipeline: Pipeline, body: Optional[RotationRequest] = None):
    """Archive the visible set of `kind` and publish a fresh selection."""
    _refuse_overlap()
    count = body.count if body else None
    run = run_manager.create_run(f"rotate_{kind.value}")
    try:
        result = pipeline.rotation.rotate(kind, count=count)
    except Exception as e:
        run.finish(error=str(e))
        logger.error(f"{run.run_id} failed: {e}")
        raise HTTPException(500, str(e))
    run.finish(result)
    return result


@router.post("/maintenance/reclassify", response_model=RunAccepted)
async def reclassify(body: MaintenanceRequest, pipeline: Pipeline, background_tasks: BackgroundTasks):
    _refuse_overlap()
    _require_generation(pipeline)

    async def work():
        return await pipeline.reclassify(body.kind, limit=body.limit)
    return _start("reclassify", background_tasks, work)


@router.post("/maintenance/regenerate", response_model=RunAccepted)
async def regenerate(body: MaintenanceRequest, pipeline: Pipeline, background_tasks: BackgroundTasks):
    _refuse_overlap()
    _require_generation(pipeline)

    async def work():
        return await pipeline.regenerate_generic_content(body.kind, limit=body.limit)
    return _start("regenerate", background_tasks, work)


@router.post("/maintenance/cleanup", response_model=RunAccepted)
async def cleanup(pipeline: Pipeline, background_tasks: BackgroundTasks, body: Optional[MaintenanceRequest] = None):
    """Dedupe, archive expired and purge. Both collections unless one is given."""
    _refuse_overlap()
    kinds = [body.kind] if body else list(ContentKind)

    async def work():
        return [pipeline.cleanup(kind) for kind in kinds]
    return _start("cleanup", background_tasks, work)


@router.get("/runs/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str):
    """Poll one triggered run. Finished runs carry their result."""
    run = run_manager.get_run(run_id)
    if not run:
        raise HTTPException(404, "Run not found")
    return _status(run)


@router.get("/runs")
async def list_runs(db: DB, limit: int = 20):
    """Recent triggers held in memory plus the stored pipeline run history."""
    return {
        "recent": [_status(r) for r in run_manager.list_runs(limit=limit)],
        "runs": db.get_pipeline_runs(limit=limit),
    }
