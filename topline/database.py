"""
SQLite database: stores curated content and pipeline run history.

Tables:
  - articles: Article ContentRecords (UNIQUE source_url)
  - metrics: Metric ContentRecords (UNIQUE source_url)
  - pipeline_runs: Run history with per-source counters and errors
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    create_engine, Column, String, Integer, Float, Text, DateTime, Boolean, case,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .schemas import ContentKind, ContentRecord, ContentStatus, RunSummary, Vertical
from .shared.helpers import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


# ── Models ───────────────────────────────────────────────────────────────────

class _ContentColumns:
    """Columns shared by the articles and metrics tables."""
    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    summary = Column(Text, default="")
    source_url = Column(String(1000), nullable=False, unique=True)
    source_name = Column(String(200), nullable=False, index=True)
    vertical = Column(String(60), nullable=False, default="Other")
    priority = Column(String(10), nullable=False, default="MEDIUM")
    status = Column(String(12), nullable=False, default="DRAFT", index=True)
    importance_score = Column(Integer, default=50)
    why_it_matters = Column(Text, default="")
    talk_track = Column(Text, default="")
    published_at = Column(DateTime, default=utcnow, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_selected_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)


class ArticleModel(_ContentColumns, Base):
    """Curated news article."""
    __tablename__ = "articles"


class MetricModel(_ContentColumns, Base):
    """Curated statistic with its value and unit."""
    __tablename__ = "metrics"

    value = Column(Float)
    unit = Column(String(60))


class PipelineRunModel(Base):
    """Pipeline run history."""
    __tablename__ = "pipeline_runs"

    id = Column(String(50), primary_key=True)
    status = Column(String(20), default="running")
    mock_mode = Column(Boolean, default=False)
    items_fetched = Column(Integer, default=0)
    items_added = Column(Integer, default=0)
    items_irrelevant = Column(Integer, default=0)
    items_duplicate = Column(Integer, default=0)
    items_failed = Column(Integer, default=0)
    source_stats = Column(Text)  # JSON object keyed by source name
    errors = Column(Text)  # JSON array
    run_time_seconds = Column(Float, default=0)
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime)


_MODELS = {
    ContentKind.ARTICLE: ArticleModel,
    ContentKind.METRIC: MetricModel,
}


def model_for(kind: ContentKind):
    return _MODELS[ContentKind(kind)]


def _to_record(row, kind: ContentKind) -> ContentRecord:
    return ContentRecord(
        id=row.id,
        kind=kind,
        title=row.title,
        summary=row.summary or "",
        source_url=row.source_url,
        source_name=row.source_name,
        vertical=row.vertical,
        priority=row.priority,
        status=row.status,
        importance_score=row.importance_score if row.importance_score is not None else 50,
        why_it_matters=row.why_it_matters or "",
        talk_track=row.talk_track or "",
        value=getattr(row, "value", None),
        unit=getattr(row, "unit", None),
        published_at=row.published_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_selected_at=row.last_selected_at,
        expires_at=row.expires_at,
    )


def _row_values(record: ContentRecord) -> Dict[str, Any]:
    values = {
        "id": record.id,
        "title": record.title,
        "summary": record.summary,
        "source_url": record.source_url,
        "source_name": record.source_name,
        "vertical": record.vertical.value,
        "priority": record.priority.value,
        "status": record.status.value,
        "importance_score": record.importance_score,
        "why_it_matters": record.why_it_matters,
        "talk_track": record.talk_track,
        "published_at": record.published_at,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "last_selected_at": record.last_selected_at,
        "expires_at": record.expires_at,
    }
    if record.kind == ContentKind.METRIC:
        values["value"] = record.value
        values["unit"] = record.unit
    return values


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager: singleton in the app, one per test."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url
        if "aiosqlite" in url:
            url = url.replace("sqlite+aiosqlite", "sqlite")

        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            self.engine = create_engine(
                url, echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Content: create / find ────────────────────────────────────────

    def insert_record(self, record: ContentRecord) -> str:
        """Insert a record. Raises sqlalchemy IntegrityError on a duplicate source_url."""
        model = model_for(record.kind)
        with self.get_session() as session:
            session.add(model(**_row_values(record)))
            session.flush()
        return record.id

    def get_record(self, kind: ContentKind, record_id: str) -> Optional[ContentRecord]:
        model = model_for(kind)
        with self.get_session() as session:
            row = session.get(model, record_id)
            return _to_record(row, ContentKind(kind)) if row else None

    def find_by_source_url(self, kind: ContentKind, source_url: str) -> Optional[ContentRecord]:
        model = model_for(kind)
        with self.get_session() as session:
            row = session.query(model).filter(model.source_url == source_url).first()
            return _to_record(row, ContentKind(kind)) if row else None

    def find_by_title_and_source(self, kind: ContentKind, title: str, source_name: str) -> Optional[ContentRecord]:
        model = model_for(kind)
        with self.get_session() as session:
            row = session.query(model).filter(
                model.title == title,
                model.source_name == source_name,
            ).first()
            return _to_record(row, ContentKind(kind)) if row else None

    def find_recent_by_source(self, kind: ContentKind, source_name: str, since: datetime) -> List[ContentRecord]:
        """Records from one source created at or after `since`, newest first."""
        model = model_for(kind)
        with self.get_session() as session:
            rows = session.query(model).filter(
                model.source_name == source_name,
                model.created_at >= since,
            ).order_by(model.created_at.desc()).all()
            return [_to_record(r, ContentKind(kind)) for r in rows]

    def list_records(
        self,
        kind: ContentKind,
        statuses: Optional[List[ContentStatus]] = None,
        published_since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ContentRecord]:
        """Query records with optional filters, newest published first."""
        model = model_for(kind)
        with self.get_session() as session:
            q = session.query(model)
            if statuses:
                q = q.filter(model.status.in_([ContentStatus(s).value for s in statuses]))
            if published_since is not None:
                q = q.filter(model.published_at >= published_since)
            q = q.order_by(model.published_at.desc())
            if limit:
                q = q.limit(limit)
            return [_to_record(r, ContentKind(kind)) for r in q.all()]

    def count_records(self, kind: ContentKind, status: Optional[ContentStatus] = None) -> int:
        model = model_for(kind)
        with self.get_session() as session:
            q = session.query(model)
            if status is not None:
                q = q.filter(model.status == ContentStatus(status).value)
            return q.count()

    # ── Content: update / delete ──────────────────────────────────────

    def update_record(self, kind: ContentKind, record_id: str, updates: Dict[str, Any]) -> bool:
        """Update specific fields of a record. Enum values are stored by value."""
        model = model_for(kind)
        with self.get_session() as session:
            row = session.get(model, record_id)
            if row is None:
                return False
            for key, value in updates.items():
                if hasattr(value, "value"):
                    value = value.value
                if hasattr(row, key):
                    setattr(row, key, value)
            row.updated_at = utcnow()
            return True

    def replace_published(self, kind: ContentKind, record_ids: List[str], selected_at: datetime) -> int:
        """Swap the visible set in one transaction.

        Everything currently PUBLISHED is ARCHIVED, then `record_ids` are
        PUBLISHED and stamped with last_selected_at. Returns the count archived.
        """
        model = model_for(kind)
        now = utcnow()
        with self.get_session() as session:
            archived = session.query(model).filter(
                model.status == ContentStatus.PUBLISHED.value,
            ).update(
                {"status": ContentStatus.ARCHIVED.value, "updated_at": now},
                synchronize_session=False,
            )
            if record_ids:
                session.query(model).filter(model.id.in_(record_ids)).update(
                    {
                        "status": ContentStatus.PUBLISHED.value,
                        "last_selected_at": selected_at,
                        "updated_at": now,
                    },
                    synchronize_session=False,
                )
            return archived

    def archive_expired(self, kind: ContentKind, now: datetime) -> int:
        """ARCHIVE non-archived records whose expires_at has passed."""
        model = model_for(kind)
        with self.get_session() as session:
            return session.query(model).filter(
                model.expires_at.isnot(None),
                model.expires_at <= now,
                model.status != ContentStatus.ARCHIVED.value,
            ).update(
                {"status": ContentStatus.ARCHIVED.value, "updated_at": utcnow()},
                synchronize_session=False,
            )

    def delete_expired_archived(self, kind: ContentKind, before: datetime) -> int:
        """Delete ARCHIVED records that expired before `before`."""
        model = model_for(kind)
        with self.get_session() as session:
            return session.query(model).filter(
                model.status == ContentStatus.ARCHIVED.value,
                model.expires_at.isnot(None),
                model.expires_at < before,
            ).delete(synchronize_session=False)

    def delete_records(self, kind: ContentKind, record_ids: List[str]) -> int:
        if not record_ids:
            return 0
        model = model_for(kind)
        with self.get_session() as session:
            return session.query(model).filter(model.id.in_(record_ids)).delete(
                synchronize_session=False,
            )

    # ── Outbound read contract ────────────────────────────────────────

    def get_published(
        self,
        kind: ContentKind,
        limit: int = 50,
        vertical: Optional[Vertical] = None,
    ) -> List[ContentRecord]:
        """PUBLISHED records ordered by priority (HIGH first), then recency.

        With `vertical`, only that vertical's records are returned.
        """
        model = model_for(kind)
        priority_order = case(
            (model.priority == "HIGH", 0),
            (model.priority == "MEDIUM", 1),
            else_=2,
        )
        with self.get_session() as session:
            q = session.query(model).filter(model.status == ContentStatus.PUBLISHED.value)
            if vertical is not None:
                q = q.filter(model.vertical == Vertical(vertical).value)
            rows = q.order_by(priority_order, model.published_at.desc()).limit(limit).all()
            return [_to_record(r, ContentKind(kind)) for r in rows]

    def get_archived(
        self,
        kind: ContentKind,
        limit: int = 50,
        offset: int = 0,
        vertical: Optional[Vertical] = None,
    ) -> List[ContentRecord]:
        """ARCHIVED records, most recently shown first (never-shown ones last)."""
        model = model_for(kind)
        with self.get_session() as session:
            q = session.query(model).filter(model.status == ContentStatus.ARCHIVED.value)
            if vertical is not None:
                q = q.filter(model.vertical == Vertical(vertical).value)
            rows = q.order_by(
                model.last_selected_at.is_(None),
                model.last_selected_at.desc(),
                model.published_at.desc(),
            ).offset(offset).limit(limit).all()
            return [_to_record(r, ContentKind(kind)) for r in rows]

    # ── Pipeline Runs ─────────────────────────────────────────────────

    def save_pipeline_run(self, summary: RunSummary) -> str:
        """Save (upsert) a pipeline run record."""
        with self.get_session() as session:
            run = PipelineRunModel(
                id=summary.run_id,
                status=summary.status,
                mock_mode=summary.mock_mode,
                items_fetched=summary.fetched,
                items_added=summary.added,
                items_irrelevant=summary.irrelevant,
                items_duplicate=summary.duplicates,
                items_failed=summary.failed,
                source_stats=json.dumps(
                    {name: s.model_dump() for name, s in summary.sources.items()}
                ),
                errors=json.dumps(summary.errors),
                run_time_seconds=summary.run_time_seconds,
                started_at=summary.started_at,
                completed_at=summary.completed_at,
            )
            session.merge(run)  # merge = upsert
            return run.id

    def get_pipeline_runs(self, limit: int = 20) -> List[Dict]:
        """Get recent pipeline runs."""
        with self.get_session() as session:
            runs = session.query(PipelineRunModel).order_by(
                PipelineRunModel.started_at.desc()
            ).limit(limit).all()
            return [
                {
                    "run_id": r.id,
                    "status": r.status,
                    "mock_mode": r.mock_mode,
                    "fetched": r.items_fetched,
                    "added": r.items_added,
                    "irrelevant": r.items_irrelevant,
                    "duplicates": r.items_duplicate,
                    "failed": r.items_failed,
                    "sources": json.loads(r.source_stats) if r.source_stats else {},
                    "run_time_seconds": r.run_time_seconds,
                    "errors": json.loads(r.errors) if r.errors else [],
                    "started_at": r.started_at.isoformat() if r.started_at else None,
                    "completed_at": r.completed_at.isoformat() if r.completed_at else None,
                }
                for r in runs
            ]


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
