"""
End-to-end pipeline runs over a fake feed transport, in-memory storage and
the deterministic mock generator.
"""

import asyncio
import json
import random

import httpx
import pytest

from topline.config import ConfigurationError, Settings
from topline.curation.enricher import content_words
from topline.pipeline import CurationPipeline
from topline.schemas import ContentKind, FeedSource, MetricCandidate, Vertical
from topline.tools.mock_responses import get_mock_response
from topline.tools.rss_tool import RSSTool

SNIPPET = "Acme unveiled a self-serve ad platform for brand marketers on Tuesday."


def _item(title, link, description=SNIPPET):
    return (
        f"<item><title>{title}</title><link>{link}</link>"
        f"<description>{description}</description>"
        "<pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate></item>"
    )


def _feed(*items):
    return (
        '<?xml version="1.0" encoding="utf-8"?><rss version="2.0"><channel><title>Wire</title>'
        + "".join(items)
        + "</channel></rss>"
    )


ACME_FEED = _feed(
    _item("Acme Launches AI Ad Platform", "https://wire.example/acme-1"),
    _item("Acme Launches AI Ad Platform!!", "https://wire.example/acme-2"),
    _item("Local bakery wins regional prize", "https://wire.example/bakery", description=""),
)

SOURCES = [
    FeedSource(name="Test Wire", endpoint="https://wire.example/feed"),
    FeedSource(name="Down Wire", endpoint="https://down.example/feed"),
]


def _handler(request):
    if request.url.host == "wire.example":
        return httpx.Response(200, text=ACME_FEED)
    return httpx.Response(503, text="maintenance")


def _pipeline(db, config, settings, llm):
    fetcher = RSSTool(settings, transport=httpx.MockTransport(_handler), rng=random.Random(1))
    return CurationPipeline(db=db, llm=llm, settings=settings, config=config, fetcher=fetcher)


class _RecordingFetcher:
    def __init__(self):
        self.calls = 0

    async def fetch_all_sources(self, sources=None):
        self.calls += 1
        return []


# ════════════════════════════════════════════════════════════════════
# Ingestion
# ════════════════════════════════════════════════════════════════════

def test_near_duplicate_headlines_produce_one_record(db, config, settings, scripted_llm):
    pipeline = _pipeline(db, config, settings, scripted_llm(default=get_mock_response))

    summary = asyncio.run(pipeline.run(SOURCES))

    assert summary.status == "completed"
    stats = summary.sources["Test Wire"]
    assert stats.fetched == 3
    assert stats.added == 1
    assert stats.duplicates == 1
    assert stats.irrelevant == 1
    assert summary.sources["Down Wire"].errors

    records = db.list_records(ContentKind.ARTICLE)
    assert len(records) == 1
    record = records[0]
    assert record.title == "Acme Launches AI Ad Platform"
    assert record.vertical == Vertical.TECHNOLOGY_MEDIA
    assert record.importance_score >= 40
    assert record.expires_at is not None

    source_words = content_words(f"{record.title} {SNIPPET}")
    generated_words = content_words(f"{record.why_it_matters} {record.talk_track}")
    assert len(source_words & generated_words) >= 2


def test_second_run_adds_nothing_new(db, config, settings, scripted_llm):
    pipeline = _pipeline(db, config, settings, scripted_llm(default=get_mock_response))
    asyncio.run(pipeline.run(SOURCES))
    again = asyncio.run(pipeline.run(SOURCES))

    assert again.added == 0
    assert again.duplicates == 2
    assert db.count_records(ContentKind.ARTICLE) == 1
    runs = db.get_pipeline_runs()
    assert len(runs) == 2
    assert {r["added"] for r in runs} == {0, 1}


def test_enrichment_failure_drops_item_without_placeholder(db, config, settings, scripted_llm):
    generic = json.dumps({
        "why_it_matters": "Digital transformation is accelerating.",
        "talk_track": "Use this to discuss the market.",
    })
    pipeline = _pipeline(db, config, settings, scripted_llm(default=generic))

    summary = asyncio.run(pipeline.run(SOURCES))

    assert summary.failed == 2
    assert summary.added == 0
    assert db.count_records(ContentKind.ARTICLE) == 0


def test_missing_credentials_fail_before_fetching(db, config):
    settings = Settings(openai_api_key="", mock_mode=False, database_url="sqlite://")
    fetcher = _RecordingFetcher()
    pipeline = CurationPipeline(db=db, settings=settings, config=config, fetcher=fetcher)

    with pytest.raises(ConfigurationError):
        asyncio.run(pipeline.run(SOURCES))

    assert fetcher.calls == 0
    assert db.get_pipeline_runs() == []


def test_generation_calls_are_paced_within_a_source(db, config, settings, scripted_llm, monkeypatch):
    real_sleep = asyncio.sleep
    pauses = []

    async def recording_sleep(delay, *args, **kwargs):
        if delay == 0.5:
            pauses.append(delay)
            return
        await real_sleep(delay, *args, **kwargs)

    monkeypatch.setattr(asyncio, "sleep", recording_sleep)
    paced = settings.model_copy(update={"llm_call_delay_seconds": 0.5})
    feed = _feed(
        _item("Acme Launches AI Ad Platform", "https://wire.example/acme-1"),
        _item("Acme Launches AI Ad Platform!!", "https://wire.example/acme-2"),
        _item("Local bakery wins regional prize", "https://wire.example/bakery", description=""),
        _item("Globex to acquire retail media startup", "https://wire.example/globex",
              description="Globex agreed to acquire a retail media startup serving grocery brands."),
    )
    fetcher = RSSTool(paced, transport=httpx.MockTransport(lambda request: httpx.Response(200, text=feed)))
    pipeline = CurationPipeline(
        db=db, llm=scripted_llm(default=get_mock_response), settings=paced, config=config, fetcher=fetcher,
    )

    summary = asyncio.run(pipeline.run(SOURCES[:1]))

    stats = summary.sources["Test Wire"]
    assert (stats.duplicates, stats.irrelevant) == (1, 1)
    # Only the two items that reached generation are followed by a pause
    assert pauses == [0.5, 0.5]
    stored = db.get_pipeline_runs()[0]["sources"]["Test Wire"]
    assert stored["fetch_seconds"] == stats.fetch_seconds


# ════════════════════════════════════════════════════════════════════
# Metrics and maintenance
# ════════════════════════════════════════════════════════════════════

METRIC = MetricCandidate(
    title="US retail media ad spend",
    value=74.8,
    unit="billion USD",
    source_name="eMarketer",
    source_url="https://emarketer.example/retail-media-2025",
    summary="Retail media ad spend in the US will reach $74.8B this year.",
)


def test_metric_ingestion_quotes_value_and_dedupes(db, config, settings, scripted_llm):
    pipeline = _pipeline(db, config, settings, scripted_llm(default=get_mock_response))

    first = asyncio.run(pipeline.ingest_metrics([METRIC]))
    second = asyncio.run(pipeline.ingest_metrics([METRIC]))

    assert first.added == 1
    assert second.duplicates == 1
    [record] = db.list_records(ContentKind.METRIC)
    assert record.value == 74.8
    assert "$74.8B" in record.why_it_matters
    assert "$74.8B" in record.talk_track
    assert record.expires_at is None


def test_reclassify_updates_and_counts_failures(db, config, settings, scripted_llm, make_record):
    keep = make_record(title="AIG widens cyber cover", vertical=Vertical.OTHER, hours_old=1)
    stuck = make_record(title="Unclear story", vertical=Vertical.OTHER, hours_old=2)
    db.insert_record(keep)
    db.insert_record(stuck)
    llm = scripted_llm(['{"vertical": "Insurance"}', "no", "still no", "nope"])
    pipeline = _pipeline(db, config, settings, llm)

    result = asyncio.run(pipeline.reclassify(ContentKind.ARTICLE))

    assert result.examined == 2
    assert result.updated == 1
    assert result.failed == 1
    assert db.get_record(ContentKind.ARTICLE, keep.id).vertical == Vertical.INSURANCE
    assert db.get_record(ContentKind.ARTICLE, stuck.id).vertical == Vertical.OTHER


def test_regenerate_fixes_only_generic_records(db, config, settings, scripted_llm, make_record):
    stale = make_record(
        title="Acme Launches AI Ad Platform", summary=SNIPPET,
        why_it_matters="The market is evolving.", talk_track="Use this to discuss trends.",
    )
    fine = make_record(
        title="Retail media networks double spend",
        summary="Retail media networks doubled their ad spend with grocery brands.",
        why_it_matters="Retail media networks now compete with grocery brands for the same ad spend.",
        talk_track="Ask which retail media networks carry their grocery spend today.",
    )
    db.insert_record(stale)
    db.insert_record(fine)
    llm = scripted_llm(default=get_mock_response)
    pipeline = _pipeline(db, config, settings, llm)

    result = asyncio.run(pipeline.regenerate_generic_content(ContentKind.ARTICLE))

    assert result.examined == 1
    assert result.updated == 1
    refreshed = db.get_record(ContentKind.ARTICLE, stale.id)
    assert "Acme Launches AI Ad Platform" in refreshed.why_it_matters
    assert db.get_record(ContentKind.ARTICLE, fine.id).why_it_matters == fine.why_it_matters


def test_cleanup_removes_duplicates(db, config, settings, scripted_llm, make_record):
    db.insert_record(make_record(title="Same story", source_url="https://x.com/1", hours_old=3))
    db.insert_record(make_record(title="Same story", source_url="https://x.com/2", hours_old=1))
    pipeline = _pipeline(db, config, settings, scripted_llm())

    result = pipeline.cleanup(ContentKind.ARTICLE)

    assert result.removed == 1
    assert db.count_records(ContentKind.ARTICLE) == 1
