"""
Industry-vertical classification.

TIER 1 (VerticalClassifier): deterministic weighted keyword scoring. Company
    mentions weigh more than topic keywords; all terms match on word
    boundaries so "aig" never matches inside "synergistic". This is the only
    tier the ingestion path uses.

TIER 2 (LLMVerticalClassifier): asks the generation service for the
    vertical whose primary subject matter fits. Used only to re-classify
    stored content, and it fails hard rather than guessing.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from ..config import CurationConfig
from ..schemas import Vertical
from ..tools import json_repair
from .strategies import GenerationError, PromptStrategy, run_strategies

logger = logging.getLogger(__name__)


class ClassificationError(GenerationError):
    """Tier-2 classification exhausted its strategies without a valid label."""


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(r'(?<![a-z0-9])' + re.escape(term.lower()) + r'(?![a-z0-9])')


class VerticalClassifier:
    """Tier 1: weighted keyword scoring per vertical."""

    def __init__(self, config: CurationConfig):
        self.config = config
        self._patterns: Dict[Vertical, List[tuple]] = {}
        for vertical in Vertical:
            entries = []
            for company in config.vertical_companies.get(vertical, ()):
                entries.append((company, config.company_weight, _term_pattern(company)))
            for keyword in config.vertical_keywords.get(vertical, ()):
                entries.append((keyword, config.keyword_weight, _term_pattern(keyword)))
            if entries:
                self._patterns[vertical] = entries
        self._generic = [_term_pattern(t) for t in config.generic_fallback_terms]

    def explain(self, title: str, content: str, source_hint: Optional[Vertical] = None) -> Dict[str, dict]:
        """Per-vertical score and matched terms (verticals with no match omitted)."""
        text = f"{title or ''} {content or ''}".lower()
        report = {}
        for vertical, entries in self._patterns.items():
            matched = [term for term, _, pattern in entries if pattern.search(text)]
            if matched:
                weights = {term: weight for term, weight, _ in entries}
                report[vertical.value] = {
                    "score": sum(weights[t] for t in matched),
                    "matches": matched,
                }
        if source_hint is not None:
            logger.debug(f"Classifying with source hint {Vertical(source_hint).value}: {report}")
        return report

    def classify(self, title: str, content: str, source_hint: Optional[Vertical] = None) -> Vertical:
        """Pick the highest-scoring vertical.

        A tie at the top goes to the configured fallback vertical. With no
        matches at all, generic marketing/technology terms route to the
        fallback vertical and everything else to OTHER. The source hint is
        logged only; keyword evidence decides.
        """
        report = self.explain(title, content, source_hint)
        if not report:
            text = f"{title or ''} {content or ''}".lower()
            if any(p.search(text) for p in self._generic):
                return self.config.fallback_vertical
            return Vertical.OTHER

        best = max(entry["score"] for entry in report.values())
        leaders = [label for label, entry in report.items() if entry["score"] == best]
        if len(leaders) > 1:
            logger.debug(f"Vertical tie {leaders} at {best}, using fallback")
            return self.config.fallback_vertical
        return Vertical(leaders[0])


# ── Tier 2 ──────────────────────────────────────────────────────────────────

_SYSTEM_DETAILED = (
    "You are an industry analyst who files business news into exactly one "
    "industry vertical. Judge by the primary subject matter of the story, not "
    "by companies or industries that are only mentioned in passing."
)


def _candidate_labels(request: dict) -> str:
    return "\n".join(f"- {v.value}" for v in request["candidates"])


def _detailed_prompt(request: dict):
    prompt = (
        f"Title: {request['title']}\n"
        f"Content: {request['content'][:1500]}\n\n"
        f"Candidate verticals:\n{_candidate_labels(request)}\n\n"
        "Which vertical is this story primarily about? A story about a bank "
        "buying ad tech is Financial Services only if banking is the subject; "
        "if the ad tech product is the subject it is Technology & Media.\n"
        'Respond as JSON: {"vertical": "<one label from the list, copied exactly>"}'
    )
    return _SYSTEM_DETAILED, prompt


def _simple_prompt(request: dict):
    labels = ", ".join(v.value for v in request["candidates"])
    prompt = (
        f"Title: {request['title']}\n"
        f"Content: {request['content'][:600]}\n\n"
        f"Candidate verticals: {labels}\n"
        "Reply with the single best label from the list and nothing else."
    )
    return "Classify the story into one industry vertical.", prompt


class LLMVerticalClassifier:
    """Tier 2: generation-service classification with escalating retries."""

    STRATEGIES = (
        PromptStrategy("detailed", _detailed_prompt, temperature=0.1, max_tokens=60),
        PromptStrategy("simplified", _simple_prompt, temperature=0.0, max_tokens=30),
        PromptStrategy("lite_model", _simple_prompt, lite=True, temperature=0.0, max_tokens=30),
    )

    def __init__(self, llm, config: CurationConfig):
        self.llm = llm
        self.config = config

    @staticmethod
    def parse_label(raw: str) -> Vertical:
        """Accept {"vertical": "..."} JSON or a bare label. Raises ValueError otherwise."""
        text = json_repair.strip_code_fences(raw or "")
        if "{" in text:
            data = json_repair.parse_json_response(text)
            label = data.get("vertical")
            if not isinstance(label, str):
                raise json_repair.ResponseParseError("No 'vertical' string in response")
        else:
            label = text.splitlines()[0] if text else ""
        return Vertical.from_label(label)

    async def classify(
        self,
        title: str,
        content: str,
        candidates: Optional[Sequence[Vertical]] = None,
    ) -> Vertical:
        """Raises ClassificationError when no strategy yields a valid label."""
        allowed = list(candidates) if candidates else list(Vertical)
        request = {"title": title, "content": content or "", "candidates": allowed}

        def validate(vertical: Vertical) -> Optional[str]:
            if vertical not in allowed:
                return f"'{vertical.value}' is not a candidate"
            return None

        vertical, strategy = await run_strategies(
            self.llm,
            self.STRATEGIES,
            request,
            parse=self.parse_label,
            validate=validate,
            max_attempts=self.config.max_generation_attempts,
            backoff_seconds=self.config.retry_backoff_seconds,
            label=f"classify '{title[:40]}'",
            error_cls=ClassificationError,
        )
        logger.debug(f"LLM classified '{title[:50]}' as {vertical.value} ({strategy})")
        return vertical
