"""
Selection and rotation: diversity, eligibility windows and the publish cycle.
"""

from datetime import timedelta

from topline.curation.selection import RotationScheduler, SelectionPolicy, is_eligible, select_for_publication
from topline.schemas import ContentKind, ContentStatus, Priority, Vertical
from topline.shared.helpers import utcnow

DAY_POLICY = SelectionPolicy(lookback=timedelta(hours=24), cooldown=None)
PUBLISHED = ContentStatus.PUBLISHED


def _pool(make_record):
    return [
        make_record(title="tech newest", vertical=Vertical.TECHNOLOGY_MEDIA, hours_old=1),
        make_record(title="tech second", vertical=Vertical.TECHNOLOGY_MEDIA, hours_old=2),
        make_record(title="tech third", vertical=Vertical.TECHNOLOGY_MEDIA, hours_old=3),
        make_record(title="retail newest", vertical=Vertical.CONSUMER_RETAIL, hours_old=4),
        make_record(title="retail older", vertical=Vertical.CONSUMER_RETAIL, hours_old=10),
        make_record(title="health only", vertical=Vertical.HEALTHCARE, hours_old=12),
    ]


def test_one_per_vertical_before_any_repeat(make_record):
    selected = select_for_publication(_pool(make_record), 3, DAY_POLICY, utcnow())
    assert [r.title for r in selected] == ["tech newest", "retail newest", "health only"]


def test_every_vertical_appears_before_any_repeat(make_record):
    verticals = list(Vertical)
    pool = [
        make_record(title=f"{v.value} story", vertical=v, hours_old=index + 2)
        for index, v in enumerate(verticals)
    ]
    # A burst of newer technology stories must not crowd the others out
    pool += [make_record(title=f"tech burst {n}", vertical=Vertical.TECHNOLOGY_MEDIA, hours_old=0)
             for n in range(5)]

    selected = select_for_publication(pool, len(verticals), DAY_POLICY, utcnow())
    assert len(selected) == len(verticals) == 12
    assert {r.vertical for r in selected} == set(verticals)

    wider = select_for_publication(pool, len(verticals) + 3, DAY_POLICY, utcnow())
    assert {r.vertical for r in wider} == set(verticals)
    assert sum(1 for r in wider if r.vertical == Vertical.TECHNOLOGY_MEDIA) == 4


def test_remaining_slots_filled_newest_first(make_record):
    selected = select_for_publication(_pool(make_record), 5, DAY_POLICY, utcnow())
    assert [r.title for r in selected] == [
        "tech newest", "retail newest", "health only", "tech second", "tech third",
    ]


def test_count_larger_than_pool_returns_everything_once(make_record):
    pool = _pool(make_record)
    selected = select_for_publication(pool, 50, DAY_POLICY, utcnow())
    assert len(selected) == len(pool)
    assert len({r.id for r in selected}) == len(pool)
    assert select_for_publication(pool, 0, DAY_POLICY, utcnow()) == []


def test_eligibility_rules(make_record):
    now = utcnow()
    assert is_eligible(make_record(hours_old=2), DAY_POLICY, now)
    assert not is_eligible(make_record(hours_old=30), DAY_POLICY, now)
    assert not is_eligible(make_record(status=ContentStatus.PUBLISHED), DAY_POLICY, now)
    assert not is_eligible(make_record(expires_at=now - timedelta(minutes=1)), DAY_POLICY, now)
    # Articles are never reused once shown
    assert not is_eligible(make_record(last_selected_at=now - timedelta(days=30)), DAY_POLICY, now)


def test_recently_selected_metric_is_held_back(config, make_record):
    now = utcnow()
    policy = SelectionPolicy.for_kind(ContentKind.METRIC, config)
    assert policy.cooldown == timedelta(days=config.metric_cooldown_days)

    recent = make_record(title="recent", kind=ContentKind.METRIC, hours_old=48,
                         last_selected_at=now - timedelta(days=1), status=ContentStatus.ARCHIVED)
    rested = make_record(title="rested", kind=ContentKind.METRIC, hours_old=48,
                         last_selected_at=now - timedelta(days=4), status=ContentStatus.ARCHIVED)
    fresh = make_record(title="fresh", kind=ContentKind.METRIC, hours_old=72)

    selected = select_for_publication([recent, rested, fresh], 3, policy, now)
    assert {r.title for r in selected} == {"rested", "fresh"}


# ════════════════════════════════════════════════════════════════════
# Rotation against storage
# ════════════════════════════════════════════════════════════════════

def test_rotation_publishes_then_archives(db, config, make_record):
    scheduler = RotationScheduler(db, config)
    records = _pool(make_record)
    for record in records:
        db.insert_record(record)

    first = scheduler.rotate(ContentKind.ARTICLE, count=3)
    assert first.archived == 0
    assert len(first.published_ids) == 3
    published = db.get_published(ContentKind.ARTICLE)
    assert {r.vertical for r in published} == {
        Vertical.TECHNOLOGY_MEDIA, Vertical.CONSUMER_RETAIL, Vertical.HEALTHCARE,
    }
    assert all(r.last_selected_at is not None for r in published)

    second = scheduler.rotate(ContentKind.ARTICLE, count=3)
    assert second.archived == 3
    assert set(second.published_ids).isdisjoint(first.published_ids)
    assert len(second.published_ids) == 3

    # Everything has been shown once; articles are not reused, so the
    # current visible set stays up rather than leaving the feed empty
    third = scheduler.rotate(ContentKind.ARTICLE, count=3)
    assert third.archived == 0
    assert third.published_ids == []
    assert {r.id for r in db.get_published(ContentKind.ARTICLE)} == set(second.published_ids)
    assert db.count_records(ContentKind.ARTICLE, ContentStatus.ARCHIVED) == 3


def test_rotation_over_exhausted_pool_keeps_visible_set(db, config, make_record):
    scheduler = RotationScheduler(db, config)
    only = make_record(title="only story")
    db.insert_record(only)

    assert scheduler.rotate(ContentKind.ARTICLE).published_ids == [only.id]
    again = scheduler.rotate(ContentKind.ARTICLE)

    assert again.archived == 0
    assert [r.id for r in db.get_published(ContentKind.ARTICLE)] == [only.id]


def test_metric_reenters_rotation_after_cooldown(db, config, make_record):
    scheduler = RotationScheduler(db, config)
    metric = make_record(title="ad spend", kind=ContentKind.METRIC, hours_old=24)
    db.insert_record(metric)
    now = utcnow()

    scheduler.rotate(ContentKind.METRIC, now=now)
    held = scheduler.rotate(ContentKind.METRIC, now=now + timedelta(days=1))
    assert held.published_ids == []
    assert db.get_record(ContentKind.METRIC, metric.id).status == ContentStatus.PUBLISHED

    later = now + timedelta(days=config.metric_cooldown_days + 1)
    back = scheduler.rotate(ContentKind.METRIC, now=later)
    assert back.archived == 1
    assert back.published_ids == [metric.id]
    assert db.get_record(ContentKind.METRIC, metric.id).last_selected_at == later


def test_published_read_orders_by_priority_then_recency(db, config, make_record):
    rows = [
        make_record(title="medium new", priority=Priority.MEDIUM, hours_old=1, status=PUBLISHED),
        make_record(title="high old", priority=Priority.HIGH, hours_old=5, status=PUBLISHED),
        make_record(title="low newest", priority=Priority.LOW, hours_old=0, status=PUBLISHED),
        make_record(title="high new", priority=Priority.HIGH, hours_old=2, status=PUBLISHED),
    ]
    for row in rows + [make_record(title="draft", priority=Priority.HIGH)]:
        db.insert_record(row)

    titles = [r.title for r in db.get_published(ContentKind.ARTICLE)]
    assert titles == ["high new", "high old", "medium new", "low newest"]


def test_archive_and_purge_expired(db, config, make_record):
    scheduler = RotationScheduler(db, config)
    now = utcnow()
    expired = make_record(title="expired", expires_at=now - timedelta(hours=1))
    long_gone = make_record(title="long gone", status=ContentStatus.ARCHIVED,
                            expires_at=now - timedelta(days=config.purge_after_days + 1))
    live = make_record(title="live", expires_at=now + timedelta(hours=5))
    for record in (expired, long_gone, live):
        db.insert_record(record)

    assert scheduler.archive_expired(ContentKind.ARTICLE, now=now) == 1
    assert db.get_record(ContentKind.ARTICLE, expired.id).status == ContentStatus.ARCHIVED

    assert scheduler.purge_expired(ContentKind.ARTICLE, now=now) == 1
    assert db.get_record(ContentKind.ARTICLE, long_gone.id) is None
    assert db.get_record(ContentKind.ARTICLE, live.id).status == ContentStatus.DRAFT
