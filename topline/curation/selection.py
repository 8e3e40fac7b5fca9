"""
Selection and rotation of the visible subset.

select_for_publication is a pure function over a candidate pool:
  1. ELIGIBILITY: not PUBLISHED, inside the lookback window, not expired,
     and never selected or selected before the cool-down window
  2. DIVERSITY:   newest first, at most one per vertical (enumeration order)
  3. FILL:        remaining slots from the newest leftovers, any vertical

RotationScheduler applies it to the stored corpus: select, then archive
what is currently PUBLISHED and publish the selection in one transaction.
An empty selection leaves the visible set untouched.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from ..config import CurationConfig
from ..database import Database
from ..schemas import ContentKind, ContentRecord, ContentStatus, RotationResult, Vertical
from ..shared.helpers import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionPolicy:
    """Eligibility windows for one collection. cooldown=None means never reuse."""
    lookback: timedelta
    cooldown: Optional[timedelta]

    @classmethod
    def for_kind(cls, kind: ContentKind, config: CurationConfig) -> "SelectionPolicy":
        if ContentKind(kind) == ContentKind.METRIC:
            return cls(
                lookback=timedelta(days=config.metric_lookback_days),
                cooldown=timedelta(days=config.metric_cooldown_days),
            )
        cooldown = None
        if config.article_cooldown_days is not None:
            cooldown = timedelta(days=config.article_cooldown_days)
        return cls(lookback=timedelta(hours=config.article_lookback_hours), cooldown=cooldown)


def is_eligible(record: ContentRecord, policy: SelectionPolicy, now: datetime) -> bool:
    if record.status == ContentStatus.PUBLISHED:
        return False
    if record.published_at < now - policy.lookback:
        return False
    if record.is_expired(now):
        return False
    if record.last_selected_at is None:
        return True
    if policy.cooldown is None:
        return False
    return record.last_selected_at <= now - policy.cooldown


def select_for_publication(
    pool: List[ContentRecord],
    count: int,
    policy: SelectionPolicy,
    now: datetime,
) -> List[ContentRecord]:
    """Pick up to `count` records, one per vertical before any repeats."""
    if count <= 0:
        return []
    candidates = [r for r in pool if is_eligible(r, policy, now)]
    candidates.sort(key=lambda r: (r.published_at, r.created_at), reverse=True)

    selected: List[ContentRecord] = []
    taken = set()

    # Pass 1: newest record of each vertical, in enumeration order
    for vertical in Vertical:
        if len(selected) >= count:
            break
        for record in candidates:
            if record.vertical == vertical and record.id not in taken:
                selected.append(record)
                taken.add(record.id)
                break

    # Pass 2: fill with the newest leftovers
    for record in candidates:
        if len(selected) >= count:
            break
        if record.id not in taken:
            selected.append(record)
            taken.add(record.id)

    return selected


class RotationScheduler:

    def __init__(self, db: Database, config: CurationConfig):
        self.db = db
        self.config = config

    def default_count(self, kind: ContentKind) -> int:
        if ContentKind(kind) == ContentKind.METRIC:
            return self.config.metric_rotation_count
        return self.config.article_rotation_count

    def rotate(self, kind: ContentKind, count: Optional[int] = None, now: Optional[datetime] = None) -> RotationResult:
        """Archive the current PUBLISHED set and publish a fresh selection."""
        kind = ContentKind(kind)
        now = now or utcnow()
        count = self.default_count(kind) if count is None else count
        policy = SelectionPolicy.for_kind(kind, self.config)

        # The current visible set competes as if already archived
        pool = [
            r.model_copy(update={"status": ContentStatus.ARCHIVED}) if r.status == ContentStatus.PUBLISHED else r
            for r in self.db.list_records(kind, published_since=now - policy.lookback)
        ]
        selected = select_for_publication(pool, count, policy, now)
        ids = [r.id for r in selected]
        if not ids:
            logger.info(f"[ROTATE] {kind.value}: nothing eligible in pool of {len(pool)}, visible set kept")
            return RotationResult(kind=kind, archived=0, published_ids=[], rotated_at=now)

        archived = self.db.replace_published(kind, ids, selected_at=now)

        verticals = sorted({r.vertical.value for r in selected})
        logger.info(
            f"[ROTATE] {kind.value}: archived {archived}, published {len(ids)}/{count} "
            f"from pool of {len(pool)} ({len(verticals)} verticals)"
        )
        return RotationResult(kind=kind, archived=archived, published_ids=ids, rotated_at=now)

    def archive_expired(self, kind: ContentKind, now: Optional[datetime] = None) -> int:
        moved = self.db.archive_expired(ContentKind(kind), now or utcnow())
        if moved:
            logger.info(f"Archived {moved} expired {ContentKind(kind).value} records")
        return moved

    def purge_expired(self, kind: ContentKind, older_than_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        """Delete ARCHIVED records that expired more than `older_than_days` ago."""
        days = self.config.purge_after_days if older_than_days is None else older_than_days
        cutoff = (now or utcnow()) - timedelta(days=days)
        removed = self.db.delete_expired_archived(ContentKind(kind), cutoff)
        if removed:
            logger.info(f"Purged {removed} long-expired {ContentKind(kind).value} records")
        return removed
