"""
Generated commentary ("why it matters" and "talk track") for curated items.

Output must be specific to its input. The specificity validator rejects any
known boilerplate phrase and requires real overlap in content words with
the source text. Generation escalates through prompt strategies; when all
of them fail the item gets no enrichment at all (EnrichmentError), never
placeholder text.
"""

import logging
import re
from typing import Iterable, Optional, Set

from ..config import CurationConfig, GENERIC_PHRASES, STOP_WORDS
from ..schemas import ContentKind, ContentRecord, Enrichment, Vertical
from ..tools import json_repair
from .strategies import GenerationError, PromptStrategy, run_strategies

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+(?:['&-][a-z0-9]+)*")


class EnrichmentError(GenerationError):
    """No strategy produced specific, well-formed commentary."""


# ── Validation helpers ──────────────────────────────────────────────────────

def content_words(text: str, min_length: int = 4, stop_words: Iterable[str] = STOP_WORDS) -> Set[str]:
    """Distinct lowercase words of at least `min_length` chars, minus stop words."""
    stops = set(stop_words)
    return {
        w for w in _WORD_RE.findall((text or "").lower())
        if len(w) >= min_length and w not in stops
    }


def find_generic_phrase(text: str, denylist: Iterable[str] = GENERIC_PHRASES) -> Optional[str]:
    lowered = (text or "").lower()
    for phrase in denylist:
        if phrase.lower() in lowered:
            return phrase
    return None


def specificity_problem(
    source_text: str,
    generated: str,
    denylist: Iterable[str] = GENERIC_PHRASES,
    min_shared: int = 2,
    min_length: int = 4,
    stop_words: Iterable[str] = STOP_WORDS,
) -> Optional[str]:
    """Why `generated` is not specific to `source_text`, or None when it is."""
    phrase = find_generic_phrase(generated, denylist)
    if phrase:
        return f"generic phrase '{phrase}'"
    shared = content_words(source_text, min_length, stop_words) & content_words(generated, min_length, stop_words)
    if len(shared) < min_shared:
        return f"only {len(shared)} shared content words ({', '.join(sorted(shared)) or 'none'})"
    return None


def is_specific(
    source_text: str,
    generated: str,
    denylist: Iterable[str] = GENERIC_PHRASES,
    min_shared: int = 2,
    min_length: int = 4,
    stop_words: Iterable[str] = STOP_WORDS,
) -> bool:
    return specificity_problem(source_text, generated, denylist, min_shared, min_length, stop_words) is None


def _format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    # Round off float noise (0.1 + 0.2) but keep every digit the value was given with
    return f"{round(value, 10):.10f}".rstrip("0").rstrip(".")


def format_metric_value(value: float, unit: Optional[str]) -> str:
    """Display form of a metric value, e.g. 74.8 billion USD -> $74.8B."""
    number = _format_number(value)
    unit_lower = (unit or "").lower().strip()
    if "billion" in unit_lower:
        return f"${number}B"
    if "million" in unit_lower:
        return f"${number}M"
    if "percent" in unit_lower or "%" in unit_lower:
        return f"{number}%"
    if unit_lower in ("usd", "dollars", "$"):
        return f"${number}"
    if not unit_lower:
        return number
    return f"{number} {unit.strip()}"


def _parse_enrichment(raw: str) -> Enrichment:
    data = json_repair.parse_json_response(raw)
    # camelCase keys show up when the model copies older examples
    if "whyItMatters" in data and "why_it_matters" not in data:
        data["why_it_matters"] = data["whyItMatters"]
    if "talkTrack" in data and "talk_track" not in data:
        data["talk_track"] = data["talkTrack"]
    fields = json_repair.require_string_fields(data, "why_it_matters", "talk_track")
    return Enrichment(**fields)


# ── Prompt strategies ───────────────────────────────────────────────────────

_SYSTEM_DETAILED = (
    "You are a sales intelligence analyst briefing enterprise account "
    "executives who sell marketing, advertising and customer-data technology. "
    "You write short, concrete commentary tied to the specific story in front "
    "of you: name the companies, products and numbers it mentions. Never use "
    "stock phrases that could apply to any story. Always respond with valid JSON."
)

_JSON_SHAPE = '{"why_it_matters": "...", "talk_track": "..."}'


def _article_detailed(req: dict):
    prompt = (
        f"Title: {req['title']}\n"
        f"Content: {req['content'][:1500]}\n"
        f"Source: {req['source_name']}\n"
        f"Vertical: {req['vertical']}\n\n"
        "Write two fields:\n"
        "1. why_it_matters (2-3 sentences): the concrete business consequence of THIS story "
        "for buyers in the vertical: budgets, vendor choices, competitive position or timing.\n"
        "2. talk_track (1-2 sentences): a conversation opener a seller could use with a prospect, "
        "referring to the companies or products named in the story.\n"
        "Reuse specific names and figures from the title and content.\n"
        f"Respond as JSON: {_JSON_SHAPE}"
    )
    return _SYSTEM_DETAILED, prompt


def _article_simple(req: dict):
    prompt = (
        f"Title: {req['title']}\n"
        f"Content: {req['content'][:600]}\n"
        f"Source: {req['source_name']}\n"
        f"Vertical: {req['vertical']}\n\n"
        "In one sentence each, say why this specific story matters to a buyer and how a "
        "seller should bring it up. Mention the names in the title.\n"
        f"JSON only: {_JSON_SHAPE}"
    )
    return "Write specific sales commentary as JSON.", prompt


def _metric_detailed(req: dict):
    prompt = (
        f"Title: {req['title']}\n"
        f"Formatted value: {req['formatted_value']}\n"
        f"Source: {req['source_name']}\n"
        f"Summary: {req['content'][:800]}\n"
        f"Vertical: {req['vertical']}\n\n"
        "Write two fields about THIS metric:\n"
        "1. why_it_matters (2-3 sentences): what the number means for planning, budgets "
        "or benchmarking in the vertical.\n"
        "2. talk_track (1-2 sentences): how a seller should cite the number with a prospect.\n"
        f"Both fields must quote the value exactly as {req['formatted_value']}.\n"
        f"Respond as JSON: {_JSON_SHAPE}"
    )
    return _SYSTEM_DETAILED, prompt


def _metric_strict(req: dict):
    value = req["formatted_value"]
    prompt = (
        f"Title: {req['title']}\n"
        f"Formatted value: {value}\n"
        f"Source: {req['source_name']}\n"
        f"Vertical: {req['vertical']}\n\n"
        f"STRICT RULE: the exact text {value} must appear in why_it_matters AND in talk_track.\n"
        "Example for a different metric (US retail media spend of $45.3B, from eMarketer): "
        '{"why_it_matters": "At $45.3B, retail media now rivals national TV budgets, so CPG '
        'brands are moving trade dollars into retailer networks.", "talk_track": "eMarketer puts '
        'retail media at $45.3B this year; how much of your trade budget follows it?"}\n'
        f"Now write the same two fields for the metric above. JSON only: {_JSON_SHAPE}"
    )
    return "Write metric commentary that quotes the exact value. JSON only.", prompt


class ContentEnricher:

    ARTICLE_STRATEGIES = (
        PromptStrategy("detailed", _article_detailed, temperature=0.7, max_tokens=400),
        PromptStrategy("simplified", _article_simple, temperature=0.5, max_tokens=250),
        PromptStrategy("lite_model", _article_simple, lite=True, temperature=0.5, max_tokens=250),
    )

    METRIC_STRATEGIES = (
        PromptStrategy("detailed", _metric_detailed, temperature=0.7, max_tokens=350),
        PromptStrategy("strict_example", _metric_strict, temperature=0.3, max_tokens=300),
        PromptStrategy("lite_strict", _metric_strict, lite=True, temperature=0.3, max_tokens=300),
    )

    def __init__(self, llm, config: CurationConfig):
        self.llm = llm
        self.config = config

    def _problem(self, source_text: str, generated: str) -> Optional[str]:
        cfg = self.config
        return specificity_problem(
            source_text, generated, cfg.generic_phrases,
            cfg.min_shared_words, cfg.min_word_length, cfg.stop_words,
        )

    async def enrich(self, title: str, content: str, source_name: str, vertical: Vertical) -> Enrichment:
        """Raises EnrichmentError when every strategy fails."""
        source_text = f"{title} {content or ''}"
        request = {
            "title": title,
            "content": content or "",
            "source_name": source_name,
            "vertical": Vertical(vertical).value,
        }

        def validate(result: Enrichment) -> Optional[str]:
            return self._problem(source_text, f"{result.why_it_matters} {result.talk_track}")

        result, strategy = await run_strategies(
            self.llm,
            self.ARTICLE_STRATEGIES,
            request,
            parse=_parse_enrichment,
            validate=validate,
            max_attempts=self.config.max_generation_attempts,
            backoff_seconds=self.config.retry_backoff_seconds,
            label=f"enrich '{title[:40]}'",
            error_cls=EnrichmentError,
        )
        return result.model_copy(update={"strategy": strategy})

    async def enrich_metric(
        self,
        title: str,
        value: float,
        unit: Optional[str],
        source_name: str,
        summary: str,
        vertical: Vertical,
    ) -> Enrichment:
        """Like enrich(), but each field must also quote the formatted value."""
        formatted = format_metric_value(value, unit)
        source_text = f"{title} {summary or ''} {formatted}"
        request = {
            "title": title,
            "formatted_value": formatted,
            "content": summary or "",
            "source_name": source_name,
            "vertical": Vertical(vertical).value,
        }

        def validate(result: Enrichment) -> Optional[str]:
            for name in ("why_it_matters", "talk_track"):
                if formatted.lower() not in getattr(result, name).lower():
                    return f"{name} does not quote {formatted}"
            return self._problem(source_text, f"{result.why_it_matters} {result.talk_track}")

        result, strategy = await run_strategies(
            self.llm,
            self.METRIC_STRATEGIES,
            request,
            parse=_parse_enrichment,
            validate=validate,
            max_attempts=self.config.max_generation_attempts,
            backoff_seconds=self.config.retry_backoff_seconds,
            label=f"enrich metric '{title[:40]}'",
            error_cls=EnrichmentError,
        )
        return result.model_copy(update={"strategy": strategy})

    def needs_regeneration(self, record: ContentRecord) -> bool:
        """True when stored commentary is missing, generic or (metrics) does not quote the value."""
        why, talk = record.why_it_matters or "", record.talk_track or ""
        if not why.strip() or not talk.strip():
            return True
        generated = f"{why} {talk}"
        if record.kind == ContentKind.METRIC and record.value is not None:
            formatted = format_metric_value(record.value, record.unit).lower()
            if formatted not in why.lower() or formatted not in talk.lower():
                return True
            source_text = f"{record.title} {record.summary} {formatted}"
        else:
            source_text = f"{record.title} {record.summary}"
        return self._problem(source_text, generated) is not None
