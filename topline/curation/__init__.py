"""
Curation layer: everything between a fetched item and a published record.

Modules:
- relevance: keyword relevance filter
- similarity / dedup: normalized edit distance and multi-strategy duplicate checks
- classifier: keyword vertical classifier (tier 1) and LLM re-classifier (tier 2)
- scorer: heuristic and LLM-assisted importance scoring
- enricher: "why it matters" / "talk track" generation with specificity validation
- strategies: retry-with-escalating-prompt control flow
- selection: diversity-constrained selection and rotation
"""

from topline.curation.strategies import GenerationError, PromptStrategy, run_strategies
from topline.curation.relevance import RelevanceFilter
from topline.curation.dedup import DuplicateChecker
from topline.curation.classifier import (
    ClassificationError, LLMVerticalClassifier, VerticalClassifier,
)
from topline.curation.scorer import RelevanceScorer
from topline.curation.enricher import (
    ContentEnricher, EnrichmentError, format_metric_value, is_specific,
)
from topline.curation.selection import (
    RotationScheduler, SelectionPolicy, select_for_publication,
)
