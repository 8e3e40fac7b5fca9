"""
String normalization and edit-distance similarity used by the duplicate checker.
"""

import re

from rapidfuzz.distance import Levenshtein

_PUNCT_RE = re.compile(r'[^\w\s]')
_SPACE_RE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """Lowercase, punctuation to spaces, collapse whitespace, trim."""
    if not text:
        return ""
    text = _PUNCT_RE.sub(' ', text.lower())
    return _SPACE_RE.sub(' ', text).strip()


def levenshtein(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute edit distance."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """1 - distance / longer length, in [0, 1]. Two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest
