"""
Shared utilities used across the curation layers.

- helpers.py: text cleanup and UTC time helpers
"""

from topline.shared.helpers import strip_html_tags, to_naive_utc, utcnow, truncate
