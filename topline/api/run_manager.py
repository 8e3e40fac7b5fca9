"""Run manager -- tracks in-process pipeline and maintenance runs.

Used by the API to refuse overlapping runs (409) and to answer status polls
for runs executing in the background. Run ids are timestamp-based
(e.g. "pipeline_20260226_143022_000123"). Only the most recent finished
runs are kept in memory; the pipeline_runs table is the durable history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..shared.helpers import utcnow

MAX_FINISHED_RUNS = 50


@dataclass
class ManagedRun:
    """State for one triggered operation."""
    run_id: str
    action: str
    status: str = "running"  # running | completed | failed
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    result: Optional[Any] = None
    errors: List[str] = field(default_factory=list)

    def finish(self, result: Any = None, error: Optional[str] = None):
        self.completed_at = utcnow()
        if error:
            self.status = "failed"
            self.errors.append(error)
        else:
            self.status = "completed"
            self.result = result

    @property
    def elapsed_seconds(self) -> float:
        return round(((self.completed_at or utcnow()) - self.started_at).total_seconds(), 2)


class RunManager:
    """Singleton that tracks runs across API requests."""

    def __init__(self, max_finished: int = MAX_FINISHED_RUNS):
        self._runs: Dict[str, ManagedRun] = {}
        self.max_finished = max_finished

    def create_run(self, action: str) -> ManagedRun:
        self._prune()
        run_id = f"{action}_{utcnow().strftime('%Y%m%d_%H%M%S_%f')}"
        if run_id in self._runs:
            run_id = f"{run_id}_{len(self._runs)}"
        run = ManagedRun(run_id=run_id, action=action)
        self._runs[run_id] = run
        return run

    def get_run(self, run_id: str) -> Optional[ManagedRun]:
        return self._runs.get(run_id)

    def list_runs(self, limit: int = 20) -> List[ManagedRun]:
        runs = sorted(self._runs.values(), key=lambda r: r.started_at, reverse=True)
        return runs[:limit]

    @property
    def is_running(self) -> bool:
        return any(r.status == "running" for r in self._runs.values())

    def _prune(self):
        # Oldest finished runs go first; running ones are never dropped
        finished = sorted(
            (r for r in self._runs.values() if r.status != "running"),
            key=lambda r: r.started_at,
        )
        for run in finished[:max(0, len(finished) - self.max_finished)]:
            del self._runs[run.run_id]

    def reset(self):
        self._runs.clear()


# Module-level singleton
run_manager = RunManager()
