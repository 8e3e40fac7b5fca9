"""
Multi-strategy duplicate detection against the persisted corpus.

STRATEGIES (first match wins, cheapest first):
  1. URL:            exact source_url match
  2. TITLE+SOURCE:   exact (title, source_name) match
  3. FUZZY TITLE:    same source, recent window, normalized edit-distance ratio
  4. FUZZY CONTENT:  articles only; same source, shorter window, summary prefix

The storage layer's UNIQUE(source_url) constraint is the real guarantee.
These checks are a fast path, and they fail open: an internal error is
logged and the item is treated as new.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from ..config import CurationConfig
from ..database import Database
from ..schemas import ContentKind, ContentRecord, CreateResult, DuplicateCheckResult
from ..shared.helpers import utcnow
from .similarity import normalize_text, similarity

logger = logging.getLogger(__name__)


class DuplicateChecker:

    def __init__(self, db: Database, config: CurationConfig):
        self.db = db
        self.config = config

    def _title_rules(self, kind: ContentKind) -> Tuple[int, float, int]:
        """(window days, threshold, minimum title length) for the collection."""
        if kind == ContentKind.METRIC:
            return (
                self.config.metric_title_window_days,
                self.config.metric_title_threshold,
                self.config.metric_min_title_length,
            )
        return (
            self.config.article_title_window_days,
            self.config.article_title_threshold,
            self.config.article_min_title_length,
        )

    def check_duplicate(
        self,
        draft: ContentRecord,
        kind: Optional[ContentKind] = None,
        now: Optional[datetime] = None,
    ) -> DuplicateCheckResult:
        kind = ContentKind(kind or draft.kind)
        now = now or utcnow()
        try:
            return self._check(draft, kind, now)
        except Exception as e:
            logger.error(f"Duplicate check failed for '{draft.title[:60]}', treating as new: {e}")
            return DuplicateCheckResult(is_duplicate=False, reason=f"check failed: {e}")

    def _check(self, draft: ContentRecord, kind: ContentKind, now: datetime) -> DuplicateCheckResult:
        # 1. Exact URL
        existing = self.db.find_by_source_url(kind, draft.source_url)
        if existing:
            return DuplicateCheckResult(is_duplicate=True, existing_id=existing.id, reason="url")

        # 2. Exact title + source
        existing = self.db.find_by_title_and_source(kind, draft.title, draft.source_name)
        if existing:
            return DuplicateCheckResult(is_duplicate=True, existing_id=existing.id, reason="title_source")

        # 3. Fuzzy title
        window_days, threshold, min_length = self._title_rules(kind)
        if len(draft.title) >= min_length:
            title_norm = normalize_text(draft.title)
            since = now - timedelta(days=window_days)
            for record in self.db.find_recent_by_source(kind, draft.source_name, since):
                score = similarity(title_norm, normalize_text(record.title))
                if score > threshold:
                    logger.debug(f"Fuzzy title match {score:.2f}: '{draft.title[:50]}' ~ '{record.title[:50]}'")
                    return DuplicateCheckResult(
                        is_duplicate=True, existing_id=record.id,
                        reason=f"fuzzy_title ({score:.2f})",
                    )

        # 4. Fuzzy content (articles only)
        if kind == ContentKind.ARTICLE and len(draft.summary or "") > self.config.content_min_summary_length:
            prefix_len = self.config.content_prefix_chars
            summary_norm = normalize_text(draft.summary)[:prefix_len]
            since = now - timedelta(days=self.config.content_window_days)
            for record in self.db.find_recent_by_source(kind, draft.source_name, since):
                if not record.summary:
                    continue
                score = similarity(summary_norm, normalize_text(record.summary)[:prefix_len])
                if score > self.config.content_threshold:
                    logger.debug(f"Fuzzy content match {score:.2f}: '{draft.title[:50]}' ~ '{record.title[:50]}'")
                    return DuplicateCheckResult(
                        is_duplicate=True, existing_id=record.id,
                        reason=f"fuzzy_content ({score:.2f})",
                    )

        return DuplicateCheckResult(is_duplicate=False)

    def create_safely(self, record: ContentRecord, now: Optional[datetime] = None) -> CreateResult:
        """Check for a duplicate, then insert.

        A unique-constraint violation at insert time (two ingestions racing on
        the same URL) is reported as a duplicate rather than raised.
        """
        check = self.check_duplicate(record, record.kind, now)
        if check.is_duplicate:
            return CreateResult(success=False, id=check.existing_id, reason=check.reason, duplicate=True)
        try:
            new_id = self.db.insert_record(record)
        except IntegrityError:
            logger.info(f"Insert raced on {record.source_url}, treating as duplicate")
            return CreateResult(success=False, reason="unique_constraint", duplicate=True)
        return CreateResult(success=True, id=new_id)

    def cleanup_duplicates(self, kind: ContentKind) -> int:
        """Keep the oldest record per (title, source_name); delete the rest.

        Returns the number of records removed.
        """
        kind = ContentKind(kind)
        groups: Dict[Tuple[str, str], List[ContentRecord]] = defaultdict(list)
        for record in self.db.list_records(kind):
            groups[(record.title, record.source_name)].append(record)

        doomed = []
        for records in groups.values():
            if len(records) < 2:
                continue
            records.sort(key=lambda r: r.created_at)
            doomed.extend(r.id for r in records[1:])

        removed = self.db.delete_records(kind, doomed)
        if removed:
            logger.info(f"Duplicate cleanup ({kind.value}): removed {removed} records")
        return removed
