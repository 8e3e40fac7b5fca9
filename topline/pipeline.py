"""
Curation pipeline: one run from feeds to stored DRAFT records.

Flow per item: relevance filter -> dedup -> classify (tier 1) -> enrich ->
score -> create_safely. Sources are processed concurrently under a
semaphore; items inside one source run sequentially with a pause between
generation calls. A failing source or item is counted and skipped, it
never aborts the run. Missing generation credentials abort the run before
anything is fetched.

Also hosts the explicit maintenance passes: metric ingestion, tier-2
re-classification, regeneration of generic commentary and cleanup.
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import List, Optional
from uuid import uuid4

from .config import CurationConfig, Settings, get_curation_config, get_settings
from .curation import (
    ClassificationError, ContentEnricher, DuplicateChecker, EnrichmentError,
    LLMVerticalClassifier, RelevanceFilter, RelevanceScorer, RotationScheduler,
    VerticalClassifier,
)
from .database import Database, get_database
from .schemas import (
    CandidateItem, ContentKind, ContentRecord, FeedSource, MaintenanceResult,
    MetricCandidate, RunSummary, SourceFetchResult, SourceRunStats,
)
from .shared.helpers import utcnow
from .tools import LLMService, RSSTool

logger = logging.getLogger(__name__)


def _new_run_id(prefix: str = "") -> str:
    stamp = utcnow().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}{stamp}_{uuid4().hex[:6]}"


class CurationPipeline:

    def __init__(
        self,
        db: Optional[Database] = None,
        llm=None,
        settings: Optional[Settings] = None,
        config: Optional[CurationConfig] = None,
        fetcher: Optional[RSSTool] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or get_curation_config()
        self.db = db or get_database()
        self._llm = llm
        self.fetcher = fetcher or RSSTool(self.settings)

        self.relevance = RelevanceFilter(self.config)
        self.dedup = DuplicateChecker(self.db, self.config)
        self.classifier = VerticalClassifier(self.config)
        self.rotation = RotationScheduler(self.db, self.config)

    # ── Generation-backed components ──────────────────────────────────

    @property
    def llm(self):
        """The generation service; ConfigurationError when credentials are missing."""
        if self._llm is None:
            self.settings.require_llm_credentials()
            self._llm = LLMService(self.settings)
        return self._llm

    def _generation_stages(self, llm):
        return (
            ContentEnricher(llm, self.config),
            RelevanceScorer(self.config, llm, use_llm=self.settings.scorer_use_llm),
        )

    async def _pause(self):
        if self.settings.llm_call_delay_seconds > 0:
            await asyncio.sleep(self.settings.llm_call_delay_seconds)

    # ── Article ingestion ─────────────────────────────────────────────

    async def run(self, sources: Optional[List[FeedSource]] = None) -> RunSummary:
        """Fetch, curate and store new articles. Returns the run summary."""
        summary = RunSummary(
            run_id=_new_run_id(),
            mock_mode=self.settings.mock_mode,
            started_at=utcnow(),
        )
        started = time.monotonic()

        # Fail loudly before any network traffic
        llm = self.llm
        logger.info("=" * 50)
        logger.info(f"PIPELINE RUN {summary.run_id}")
        logger.info("=" * 50)

        try:
            results = await self.fetcher.fetch_all_sources(sources)
            for result in results:
                stats = summary.stats_for(result.source_name)
                stats.fetched = len(result.items)
                stats.fetch_seconds = result.duration_seconds
                if result.error:
                    stats.errors.append(result.error)
                    summary.errors.append(f"{result.source_name}: {result.error}")

            enricher, scorer = self._generation_stages(llm)
            semaphore = asyncio.Semaphore(max(1, self.settings.pipeline_source_concurrency))

            async def _process_limited(result: SourceFetchResult):
                async with semaphore:
                    await self._process_source(result, summary.stats_for(result.source_name), enricher, scorer)

            await asyncio.gather(*(_process_limited(r) for r in results if r.items))

            self.rotation.archive_expired(ContentKind.ARTICLE)
            summary.status = "completed"
        except Exception as e:
            summary.status = "failed"
            summary.errors.append(f"run: {e}")
            logger.error(f"Pipeline run {summary.run_id} failed: {e}")
            raise
        finally:
            summary.completed_at = utcnow()
            summary.run_time_seconds = round(time.monotonic() - started, 2)
            self.db.save_pipeline_run(summary)
            self._log_summary(summary)

        return summary

    async def _process_source(
        self,
        result: SourceFetchResult,
        stats: SourceRunStats,
        enricher: ContentEnricher,
        scorer: RelevanceScorer,
    ):
        """Process one source's items in order, pausing after generation calls."""
        for item in result.items:
            try:
                called_llm = await self._process_item(item, stats, enricher, scorer)
            except Exception as e:
                stats.failed += 1
                stats.errors.append(f"{item.title[:60]}: {e}")
                logger.warning(f"[FAIL] {item.source_name}: '{item.title[:60]}': {e}")
                called_llm = True
            if called_llm:
                await self._pause()

    async def _process_item(
        self,
        item: CandidateItem,
        stats: SourceRunStats,
        enricher: ContentEnricher,
        scorer: RelevanceScorer,
    ) -> bool:
        """Curate one item. Returns True when a generation call was made."""
        if not self.relevance.is_relevant(item.title, item.snippet, item.source_name):
            stats.irrelevant += 1
            logger.debug(f"Irrelevant: {item.title[:60]}")
            return False

        now = utcnow()
        draft = ContentRecord(
            kind=ContentKind.ARTICLE,
            title=item.title,
            summary=item.snippet,
            source_url=item.link,
            source_name=item.source_name,
            priority=item.source_priority,
            published_at=item.published_at or now,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=self.config.article_ttl_hours),
        )

        check = self.dedup.check_duplicate(draft, ContentKind.ARTICLE, now)
        if check.is_duplicate:
            stats.duplicates += 1
            logger.debug(f"Duplicate ({check.reason}): {item.title[:60]}")
            return False

        vertical = self.classifier.classify(item.title, item.snippet, item.source_vertical)

        try:
            enrichment = await enricher.enrich(item.title, item.snippet, item.source_name, vertical)
        except EnrichmentError as e:
            stats.failed += 1
            stats.errors.append(f"{item.title[:60]}: {e}")
            logger.warning(f"[FAIL] enrichment for '{item.title[:60]}': {'; '.join(e.failures)}")
            return True

        score = await scorer.score(
            item.title, item.snippet, enrichment.why_it_matters, enrichment.talk_track,
            vertical, item.source_name, item.source_priority,
        )
        record = draft.model_copy(update={
            "vertical": vertical,
            "why_it_matters": enrichment.why_it_matters,
            "talk_track": enrichment.talk_track,
            "importance_score": score,
        })

        created = self.dedup.create_safely(record, now)
        if created.success:
            stats.added += 1
            logger.info(f"[ADD] {item.source_name}: '{item.title[:60]}' ({vertical.value}, {score})")
        else:
            stats.duplicates += 1
        return True

    # ── Metric ingestion ──────────────────────────────────────────────

    async def ingest_metrics(self, candidates: List[MetricCandidate]) -> RunSummary:
        """Curate and store metric candidates. Metrics do not expire."""
        summary = RunSummary(
            run_id=_new_run_id("metrics_"),
            mock_mode=self.settings.mock_mode,
            started_at=utcnow(),
        )
        started = time.monotonic()
        enricher, scorer = self._generation_stages(self.llm)

        for index, candidate in enumerate(candidates):
            if index:
                await self._pause()
            stats = summary.stats_for(candidate.source_name)
            stats.fetched += 1
            try:
                await self._ingest_metric(candidate, stats, enricher, scorer)
            except Exception as e:
                stats.failed += 1
                stats.errors.append(f"{candidate.title[:60]}: {e}")
                logger.warning(f"[FAIL] metric '{candidate.title[:60]}': {e}")

        summary.status = "completed"
        summary.completed_at = utcnow()
        summary.run_time_seconds = round(time.monotonic() - started, 2)
        self.db.save_pipeline_run(summary)
        self._log_summary(summary)
        return summary

    async def _ingest_metric(
        self,
        candidate: MetricCandidate,
        stats: SourceRunStats,
        enricher: ContentEnricher,
        scorer: RelevanceScorer,
    ):
        now = utcnow()
        vertical = candidate.vertical or self.classifier.classify(candidate.title, candidate.summary)
        draft = ContentRecord(
            kind=ContentKind.METRIC,
            title=candidate.title,
            summary=candidate.summary,
            source_url=candidate.source_url,
            source_name=candidate.source_name,
            vertical=vertical,
            priority=candidate.priority,
            value=candidate.value,
            unit=candidate.unit,
            published_at=candidate.published_at or now,
            created_at=now,
            updated_at=now,
        )
        check = self.dedup.check_duplicate(draft, ContentKind.METRIC, now)
        if check.is_duplicate:
            stats.duplicates += 1
            return

        try:
            enrichment = await enricher.enrich_metric(
                candidate.title, candidate.value, candidate.unit,
                candidate.source_name, candidate.summary, vertical,
            )
        except EnrichmentError as e:
            stats.failed += 1
            stats.errors.append(f"{candidate.title[:60]}: {e}")
            logger.warning(f"[FAIL] metric enrichment for '{candidate.title[:60]}': {'; '.join(e.failures)}")
            return

        score = await scorer.score(
            candidate.title, candidate.summary, enrichment.why_it_matters, enrichment.talk_track,
            vertical, candidate.source_name, candidate.priority,
        )
        record = draft.model_copy(update={
            "why_it_matters": enrichment.why_it_matters,
            "talk_track": enrichment.talk_track,
            "importance_score": score,
        })
        created = self.dedup.create_safely(record, now)
        if created.success:
            stats.added += 1
        else:
            stats.duplicates += 1

    # ── Maintenance ───────────────────────────────────────────────────

    async def reclassify(self, kind: ContentKind, limit: Optional[int] = None) -> MaintenanceResult:
        """Re-run classification on stored records with the LLM classifier.

        A record whose classification fails keeps its current vertical and is
        counted as failed.
        """
        kind = ContentKind(kind)
        result = MaintenanceResult(kind=kind, action="reclassify")
        classifier = LLMVerticalClassifier(self.llm, self.config)

        for index, record in enumerate(self.db.list_records(kind, limit=limit)):
            if index:
                await self._pause()
            result.examined += 1
            try:
                vertical = await classifier.classify(record.title, record.summary)
            except ClassificationError as e:
                result.failed += 1
                result.errors.append(f"{record.id}: {e}")
                logger.warning(f"[FAIL] reclassify '{record.title[:60]}': {'; '.join(e.failures)}")
                continue
            if vertical != record.vertical:
                self.db.update_record(kind, record.id, {"vertical": vertical})
                result.updated += 1
                logger.info(f"Reclassified '{record.title[:50]}': {record.vertical.value} -> {vertical.value}")

        logger.info(f"Reclassify {kind.value}: {result.updated}/{result.examined} changed, {result.failed} failed")
        return result

    async def regenerate_generic_content(self, kind: ContentKind, limit: Optional[int] = None) -> MaintenanceResult:
        """Regenerate commentary on stored records that fail specificity checks."""
        kind = ContentKind(kind)
        result = MaintenanceResult(kind=kind, action="regenerate")
        enricher = ContentEnricher(self.llm, self.config)

        stale = [r for r in self.db.list_records(kind) if enricher.needs_regeneration(r)]
        if limit:
            stale = stale[:limit]
        for index, record in enumerate(stale):
            if index:
                await self._pause()
            result.examined += 1
            try:
                if kind == ContentKind.METRIC and record.value is not None:
                    enrichment = await enricher.enrich_metric(
                        record.title, record.value, record.unit,
                        record.source_name, record.summary, record.vertical,
                    )
                else:
                    enrichment = await enricher.enrich(
                        record.title, record.summary, record.source_name, record.vertical,
                    )
            except EnrichmentError as e:
                result.failed += 1
                result.errors.append(f"{record.id}: {e}")
                continue
            self.db.update_record(kind, record.id, {
                "why_it_matters": enrichment.why_it_matters,
                "talk_track": enrichment.talk_track,
            })
            result.updated += 1

        logger.info(f"Regenerate {kind.value}: {result.updated}/{result.examined} fixed, {result.failed} failed")
        return result

    def cleanup(self, kind: ContentKind) -> MaintenanceResult:
        """Remove duplicates, archive expired records and purge long-expired ones."""
        kind = ContentKind(kind)
        result = MaintenanceResult(kind=kind, action="cleanup")
        result.removed = self.dedup.cleanup_duplicates(kind)
        result.updated = self.rotation.archive_expired(kind)
        result.removed += self.rotation.purge_expired(kind)
        return result

    # ── Reporting ─────────────────────────────────────────────────────

    def _log_summary(self, summary: RunSummary):
        totals = summary.totals()
        logger.info(
            f"Run {summary.run_id} {summary.status} in {summary.run_time_seconds}s: "
            f"fetched={totals['fetched']} added={totals['added']} "
            f"irrelevant={totals['irrelevant']} duplicates={totals['duplicates']} "
            f"failed={totals['failed']}"
        )
        slowest = max(summary.sources.values(), key=lambda s: s.fetch_seconds, default=None)
        if slowest is not None and slowest.fetch_seconds:
            logger.info(f"  Slowest source: {slowest.source_name} ({slowest.fetch_seconds:.1f}s)")
        for name, stats in sorted(summary.sources.items()):
            if stats.errors:
                logger.info(f"  {name}: {len(stats.errors)} errors (first: {stats.errors[0][:100]})")
