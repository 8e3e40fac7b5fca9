"""
Mock LLM responses for MOCK_MODE runs and local development.

Responses are deterministic and built from the prompt itself, so mock
enrichment passes the same specificity checks real output must pass.
Designed to work with pydantic-ai's FunctionModel.
"""

import hashlib
import json
import logging
import re
from typing import Any, Dict

from pydantic_ai.messages import ModelResponse, TextPart

logger = logging.getLogger(__name__)

_FIELD_RE = r'^\s*-?\s*{label}:\s*(.+?)\s*$'


def _field(prompt: str, label: str, default: str = "") -> str:
    match = re.search(_FIELD_RE.format(label=re.escape(label)), prompt, re.MULTILINE | re.IGNORECASE)
    return match.group(1) if match else default


def get_mock_response(prompt: str) -> str:
    """Return a deterministic response for one of the curation prompts."""
    prompt_lower = prompt.lower()
    prompt_hash = int(hashlib.md5(prompt.encode()).hexdigest()[:8], 16)

    if "why_it_matters" in prompt_lower:
        return json.dumps(_mock_enrichment(prompt))
    if "candidate verticals" in prompt_lower:
        return json.dumps(_mock_vertical(prompt))
    if '"martech"' in prompt_lower and '"enterprise"' in prompt_lower:
        return json.dumps({
            "martech": 10 + prompt_hash % 10,
            "adtech": 8 + prompt_hash % 12,
            "crm": 5 + prompt_hash % 10,
            "enterprise": 12 + prompt_hash % 8,
        })
    return "Mock LLM response for testing purposes."


def _mock_enrichment(prompt: str) -> Dict[str, str]:
    title = _field(prompt, "Title", "this announcement").rstrip(".")
    source = _field(prompt, "Source", "the source")
    vertical = _field(prompt, "Vertical", "the category")
    value = _field(prompt, "Formatted value")
    if value:
        return {
            "why_it_matters": (
                f"At {value}, {title} gives {vertical} buyers a concrete benchmark "
                f"for next year's planning, as reported by {source}."
            ),
            "talk_track": (
                f"Open with the {value} figure from {title} and ask how their "
                f"current spend compares."
            ),
        }
    return {
        "why_it_matters": (
            f"{title} gives {vertical} buyers a fresh reason to revisit vendor "
            f"shortlists, based on the {source} report."
        ),
        "talk_track": (
            f"Ask prospects whether {title} changes their plans for the next "
            f"quarter and who on their team owns that decision."
        ),
    }


def _mock_vertical(prompt: str) -> Dict[str, str]:
    # Mirrors the keyword classifier so mock reclassification is stable
    from topline.config import get_curation_config
    from topline.curation.classifier import VerticalClassifier

    classifier = VerticalClassifier(get_curation_config())
    vertical = classifier.classify(_field(prompt, "Title"), _field(prompt, "Content"))
    return {"vertical": vertical.value}


def get_mock_response_for_function_model(messages: list[Any], info: Any) -> ModelResponse:
    """Adapter for pydantic-ai FunctionModel.

    FunctionModel passes ModelMessage objects. We extract the user prompt
    text and delegate to the main mock function.
    """
    prompt = ""
    for msg in messages:
        if hasattr(msg, 'parts'):
            for part in msg.parts:
                if not hasattr(part, 'content') or not isinstance(part.content, str):
                    continue
                if "User" in type(part).__name__:
                    prompt = part.content
    if not prompt and messages:
        prompt = str(messages[-1])

    text = get_mock_response(prompt)
    return ModelResponse(parts=[TextPart(content=text)])
