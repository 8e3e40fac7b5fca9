"""
Helper utility functions shared by the fetcher, pipeline and storage layers.
"""

import html
import re
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp. SQLite round-trips naive datetimes, so every
    timestamp in the corpus is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC. Naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def strip_html_tags(text: str) -> str:
    """Remove HTML tags and decode entities from feed-supplied text."""
    if not text:
        return ""
    clean = re.sub(r'<[^>]+>', ' ', text)
    clean = html.unescape(clean)
    clean = clean.replace('\xa0', ' ')
    return re.sub(r'\s+', ' ', clean).strip()


def truncate(text: str, limit: int) -> str:
    """Cut text at a word boundary, appending an ellipsis when shortened."""
    if not text or len(text) <= limit:
        return text or ""
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut.rstrip(",.;:") + "..."
