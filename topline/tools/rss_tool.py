"""
RSS Tool for fetching candidate items from the configured feed sources.

Sources are fetched concurrently in bounded batches with a pause between
batches. Each source fetch carries its own timeout; a failing source is
logged, recorded on its SourceFetchResult and contributes zero items.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import feedparser
import httpx
from langdetect import detect, LangDetectException
from langdetect import DetectorFactory
DetectorFactory.seed = 0  # Deterministic language detection

from ..config import DEFAULT_FEED_SOURCES, Settings, get_settings
from ..schemas import CandidateItem, FeedSource, SourceFetchResult
from ..shared.helpers import strip_html_tags, truncate, utcnow

logger = logging.getLogger(__name__)


class RSSTool:
    """
    Multi-source feed fetcher.

    Feed items are untrusted: entries without a title or link are dropped,
    HTML is stripped from summaries, and missing, unparseable or future
    dates are replaced with a random recent timestamp.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._rng = rng or random.Random()
        # Source health tracking, keyed by source name
        self._source_health: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _is_target_language(text: str, target_lang: str = "en") -> bool:
        """Check if text is in the target language using langdetect.

        Returns True if the detected language matches, or if the text is too
        short (< 20 chars) or too ambiguous to detect reliably.
        """
        if not text or len(text.strip()) < 20:
            return True
        try:
            return detect(text[:500]) == target_lang
        except LangDetectException:
            return True

    async def fetch_all_sources(self, sources: Optional[List[FeedSource]] = None) -> List[SourceFetchResult]:
        """
        Fetch every enabled source in batches.

        Args:
            sources: Sources to fetch (defaults to DEFAULT_FEED_SOURCES)

        Returns:
            One SourceFetchResult per enabled source, in input order
        """
        if sources is None:
            sources = DEFAULT_FEED_SOURCES
        enabled = [s for s in sources if s.enabled]
        skipped = len(sources) - len(enabled)
        if skipped:
            logger.debug(f"[RSS] Skipping {skipped} disabled sources")

        batch_size = max(1, self.settings.feed_batch_size)
        results: List[SourceFetchResult] = []

        async with httpx.AsyncClient(
            timeout=self.settings.feed_timeout_seconds,
            headers={"User-Agent": self.settings.feed_user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for start in range(0, len(enabled), batch_size):
                batch = enabled[start:start + batch_size]
                batch_results = await asyncio.gather(
                    *(self._fetch_source(client, source) for source in batch)
                )
                results.extend(batch_results)
                if start + batch_size < len(enabled) and self.settings.feed_batch_pause_seconds > 0:
                    await asyncio.sleep(self.settings.feed_batch_pause_seconds)

        total = sum(len(r.items) for r in results)
        failed = sum(1 for r in results if not r.ok)
        logger.info(f"[RSS] Fetched {total} items from {len(results)} sources ({failed} failed)")
        return results

    async def _fetch_source(self, client: httpx.AsyncClient, source: FeedSource) -> SourceFetchResult:
        """Fetch one source under its timeout. Never raises."""
        started = time.monotonic()
        timeout = self.settings.feed_timeout_seconds
        error = None
        items: List[CandidateItem] = []
        try:
            items = await asyncio.wait_for(self._fetch_rss_source(client, source), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"Fetch timeout ({timeout:.0f}s)"
            logger.warning(f"[TIMEOUT] {source.name}: {error}, skipping")
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.warning(f"[FAIL] {source.name}: {error}")

        self._record_health(source.name, error, len(items))
        if error is None:
            logger.info(f"[OK] {source.name}: {len(items)} items")
        return SourceFetchResult(
            source_name=source.name,
            items=items,
            error=error,
            duration_seconds=round(time.monotonic() - started, 3),
        )

    async def _fetch_rss_source(self, client: httpx.AsyncClient, source: FeedSource) -> List[CandidateItem]:
        """Fetch and parse one RSS/Atom feed."""
        response = await client.get(source.endpoint)
        response.raise_for_status()

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            raise ValueError(f"Unparseable feed: {feed.get('bozo_exception', 'unknown error')}")

        now = utcnow()
        items = []
        for entry in feed.entries:
            if len(items) >= self.settings.feed_max_items_per_source:
                break
            item = self._parse_rss_entry(entry, source, now)
            if item:
                items.append(item)
        return items

    def _parse_rss_entry(self, entry: Dict, source: FeedSource, now: datetime) -> Optional[CandidateItem]:
        """Parse one feed entry; None when the entry is unusable."""
        title = strip_html_tags(entry.get("title", "") or "")
        link = (entry.get("link", "") or "").strip()
        if not title or not link:
            return None

        summary = entry.get("summary", "") or entry.get("description", "")
        summary = truncate(strip_html_tags(summary), 500)

        if self.settings.feed_language_filter:
            check_text = f"{title} {summary[:200]}"
            if not self._is_target_language(check_text, source.language):
                logger.debug(f"Filtered non-{source.language} item: {title[:60]}...")
                return None

        return CandidateItem(
            title=title,
            link=link,
            snippet=summary,
            source_name=source.name,
            source_vertical=source.vertical,
            source_priority=source.priority,
            published_at=self.repair_date(
                entry.get("published_parsed") or entry.get("updated_parsed"), now,
            ),
        )

    def repair_date(self, parsed: Optional[time.struct_time], now: datetime) -> datetime:
        """Trust a feed date only when present, valid and not in the future.

        Anything else becomes a random timestamp within the repair window
        before `now`.
        """
        if parsed:
            try:
                published = datetime(*parsed[:6])
                if published <= now:
                    return published
            except (TypeError, ValueError):
                pass
        window_seconds = max(0, self.settings.feed_date_repair_window_hours) * 3600
        return now - timedelta(seconds=self._rng.uniform(0, window_seconds))

    def _record_health(self, source_name: str, error: Optional[str], item_count: int):
        if error is None:
            self._source_health[source_name] = {
                "last_success": utcnow(),
                "consecutive_failures": 0,
                "items_fetched": item_count,
            }
            return
        health = self._source_health.get(source_name, {"consecutive_failures": 0})
        health["consecutive_failures"] = health.get("consecutive_failures", 0) + 1
        health["last_error"] = error
        self._source_health[source_name] = health

    def get_source_health(self) -> Dict[str, Dict]:
        """Get health status of all sources fetched by this tool."""
        return self._source_health
