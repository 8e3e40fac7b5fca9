"""
Importance scoring (0-100) for curated items.

The heuristic path is always available and is what most items get. The
LLM path rates four sub-dimensions (martech, adtech, crm, enterprise; each
0-25) and is used for HIGH priority sources when enabled. Any problem with
the LLM answer falls back to the heuristic.
"""

import logging
import re
from typing import Dict, Optional

from ..config import CurationConfig
from ..schemas import Priority, Vertical
from ..tools import json_repair

logger = logging.getLogger(__name__)

DIMENSIONS = ("martech", "adtech", "crm", "enterprise")

_SCORE_SYSTEM = (
    "You rate business news for enterprise sales teams selling marketing, "
    "advertising and customer-data technology. Respond with JSON only."
)


def _contains(text: str, term: str) -> bool:
    return re.search(r'(?<![a-z0-9])' + re.escape(term) + r'(?![a-z0-9])', text) is not None


def clamp_score(value: float) -> int:
    return max(0, min(100, int(round(value))))


class RelevanceScorer:

    def __init__(self, config: CurationConfig, llm=None, use_llm: bool = True):
        self.config = config
        self.llm = llm
        self.use_llm = use_llm

    def heuristic_score(
        self,
        title: str,
        summary: str = "",
        why_it_matters: str = "",
        talk_track: str = "",
        vertical: Optional[Vertical] = None,
        source_name: str = "",
    ) -> int:
        cfg = self.config
        score = cfg.base_score

        # Source reputation
        if any(s in (source_name or "") for s in cfg.premium_sources):
            score += cfg.premium_source_bonus
        elif any(s in (source_name or "") for s in cfg.high_quality_sources):
            score += cfg.high_quality_source_bonus

        text = " ".join(t for t in (title, summary, why_it_matters, talk_track) if t).lower()

        # Keyword categories, each capped
        for category, terms in cfg.score_keyword_categories.items():
            hits = sum(1 for term in terms if _contains(text, term))
            if hits:
                score += min(hits * cfg.category_keyword_bonus, cfg.category_bonus_cap)

        if vertical is not None and Vertical(vertical) in cfg.priority_verticals:
            score += cfg.priority_vertical_bonus

        # Lifestyle/entertainment penalty, uncapped
        penalties = sum(1 for term in cfg.penalty_terms if _contains(text, term))
        score -= penalties * cfg.penalty_per_term

        return clamp_score(score)

    def parse_dimensions(self, raw: str) -> Dict[str, int]:
        """Parse the four sub-scores. Raises ValueError on anything malformed."""
        data = json_repair.parse_json_response(raw)
        dims = {}
        for name in DIMENSIONS:
            value = data.get(name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"'{name}' is not numeric: {value!r}")
            if not 0 <= value <= self.config.llm_dimension_max:
                raise ValueError(f"'{name}' out of range: {value}")
            dims[name] = int(round(value))
        return dims

    async def score_with_llm(
        self,
        title: str,
        summary: str = "",
        why_it_matters: str = "",
        talk_track: str = "",
        vertical: Optional[Vertical] = None,
        source_name: str = "",
    ) -> int:
        fallback_args = (title, summary, why_it_matters, talk_track, vertical, source_name)
        if self.llm is None:
            return self.heuristic_score(*fallback_args)

        vertical_label = Vertical(vertical).value if vertical is not None else "Unknown"
        top = self.config.llm_dimension_max
        prompt = (
            f"Title: {title}\n"
            f"Summary: {summary[:800]}\n"
            f"Why it matters: {why_it_matters}\n"
            f"Talk track: {talk_track}\n"
            f"Vertical: {vertical_label}\n"
            f"Source: {source_name}\n\n"
            f"Rate relevance on four dimensions, each an integer 0-{top}:\n"
            "- martech: marketing technology, automation, data and analytics\n"
            "- adtech: advertising technology, programmatic, media buying\n"
            "- crm: customer relationship and lifecycle management\n"
            "- enterprise: how likely this changes an enterprise budget or vendor decision\n"
            'Respond as JSON: {"martech": 0, "adtech": 0, "crm": 0, "enterprise": 0}'
        )
        try:
            raw = await self.llm.generate(prompt, system_prompt=_SCORE_SYSTEM, temperature=0.1, max_tokens=80)
            dims = self.parse_dimensions(raw)
        except Exception as e:
            logger.warning(f"LLM scoring failed for '{title[:50]}', using heuristic: {e}")
            return self.heuristic_score(*fallback_args)
        return clamp_score(sum(dims.values()))

    async def score(
        self,
        title: str,
        summary: str = "",
        why_it_matters: str = "",
        talk_track: str = "",
        vertical: Optional[Vertical] = None,
        source_name: str = "",
        priority: Priority = Priority.MEDIUM,
    ) -> int:
        """LLM path for HIGH priority sources when enabled; heuristic otherwise."""
        if self.llm is not None and self.use_llm and Priority(priority) == Priority.HIGH:
            return await self.score_with_llm(title, summary, why_it_matters, talk_track, vertical, source_name)
        return self.heuristic_score(title, summary, why_it_matters, talk_track, vertical, source_name)
