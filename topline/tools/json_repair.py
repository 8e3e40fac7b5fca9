"""
Defensive parsing for text-generation responses.

Generated output is untrusted. Typical problems handled here:
- Markdown code fences around the payload (```json ... ```)
- Prose before or after the JSON object
- Truncated JSON (unclosed strings/brackets)
- Control characters inside string values

Anything that still cannot be parsed raises ResponseParseError, which the
retry loop treats exactly like a failed validation.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```", re.DOTALL)


class ResponseParseError(ValueError):
    """A generated response could not be turned into the expected structure."""


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the text itself."""
    if not text:
        return ""
    cleaned = text.strip()
    match = _FENCE_RE.search(cleaned)
    if match:
        return match.group(1).strip()
    # Unterminated fence (truncated response)
    if cleaned.startswith("```"):
        cleaned = re.sub(r'^```[a-zA-Z0-9_-]*\n?', '', cleaned)
    return cleaned.strip()


def parse_json_response(response: Optional[str]) -> Dict[str, Any]:
    """Parse a JSON object out of a generated response.

    Raises ResponseParseError when no JSON object can be recovered.
    """
    if not response or not response.strip():
        raise ResponseParseError("Empty response")

    json_str = extract_json_string(strip_code_fences(response))

    for attempt in (
        lambda s: json.loads(s),
        # Literal newlines/tabs inside string values
        lambda s: json.loads(s, strict=False),
        lambda s: json.loads(re.sub(r'[\x00-\x1f\x7f]', ' ', s)),
    ):
        try:
            parsed = attempt(json_str)
        except json.JSONDecodeError:
            continue
        if not isinstance(parsed, dict):
            raise ResponseParseError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed

    logger.debug(f"Failed to parse JSON response: {json_str[:300]}")
    raise ResponseParseError(f"Unparseable JSON: {json_str[:120]}")


def extract_json_string(text: str) -> str:
    """Extract the outermost JSON object from text using brace counting."""
    start = text.find('{')
    if start == -1:
        return text
    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    # Braces never balanced: the response was cut off
    return repair_truncated_json(text[start:])


def repair_truncated_json(text: str) -> str:
    """Close an open string and any open brackets, innermost first."""
    stack = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in ('{', '['):
            stack.append(ch)
        elif ch in ('}', ']') and stack:
            stack.pop()

    if in_string:
        text += '"'
    text = text.rstrip().rstrip(',')
    close_map = {'{': '}', '[': ']'}
    for bracket in reversed(stack):
        text += close_map[bracket]
    return text


def require_string_fields(data: Dict[str, Any], *fields: str) -> Dict[str, str]:
    """Return the named fields, each a non-empty stripped string.

    Raises ResponseParseError naming the first missing or non-string field.
    """
    out = {}
    for field in fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ResponseParseError(f"Field '{field}' missing or not a non-empty string")
        out[field] = value.strip()
    return out
