"""
Keyword relevance filter applied to every fetched item.

Biased toward inclusion: the exclude list is a short, narrow denylist,
while any one of several broad signals is enough to keep an item.
"""

import logging
from typing import Optional

from ..config import CurationConfig

logger = logging.getLogger(__name__)


class RelevanceFilter:

    def __init__(self, config: CurationConfig):
        self.config = config
        self._trusted = {s.lower() for s in config.trusted_sources}

    def is_relevant(self, title: str, snippet: str, source_name: Optional[str] = None) -> bool:
        return self.explain(title, snippet, source_name) is not None

    def explain(self, title: str, snippet: str, source_name: Optional[str] = None) -> Optional[str]:
        """Return the reason an item is kept, or None when it is rejected."""
        text = f"{title or ''} {snippet or ''}".lower()

        for keyword in self.config.exclude_keywords:
            if keyword in text:
                logger.debug(f"Excluded ('{keyword}'): {title[:60]}")
                return None

        checks = (
            ("include keyword", self.config.include_keywords),
            ("business term", self.config.business_terms),
            ("industry term", self.config.industry_terms),
            ("action term", self.config.action_terms),
        )
        for reason, terms in checks:
            for term in terms:
                if term in text:
                    return f"{reason}: {term}"

        if len(text.strip()) >= self.config.min_relevant_text_length:
            return "text length"
        if source_name and source_name.lower() in self._trusted:
            return "trusted source"
        return None
