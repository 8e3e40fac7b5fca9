"""
Common enums used across the curation pipeline.

These define the vocabulary of the system: industry verticals, editorial
priority, record lifecycle status and record kind.
"""

from enum import Enum


class Vertical(str, Enum):
    """Fixed industry-vertical enumeration. OTHER is the catch-all."""
    TECHNOLOGY_MEDIA = "Technology & Media"
    CONSUMER_RETAIL = "Consumer & Retail"
    HEALTHCARE = "Healthcare"
    FINANCIAL_SERVICES = "Financial Services"
    INSURANCE = "Insurance"
    AUTOMOTIVE = "Automotive"
    TRAVEL_HOSPITALITY = "Travel & Hospitality"
    EDUCATION = "Education"
    TELECOM = "Telecom"
    SERVICES = "Services"
    POLITICAL_ADVOCACY = "Political Candidate & Advocacy"
    OTHER = "Other"

    @classmethod
    def from_label(cls, label: str) -> "Vertical":
        """Resolve a label case-insensitively. Raises ValueError for unknown labels."""
        cleaned = " ".join(str(label or "").split()).strip().strip('"').strip("'").strip(".")
        for member in cls:
            if member.value.lower() == cleaned.lower():
                return member
        raise ValueError(f"Unknown vertical: {label!r}")


class Priority(str, Enum):
    """Editorial priority declared by a source or assigned at ingestion."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ContentStatus(str, Enum):
    """
    Record lifecycle.

    DRAFT -> PUBLISHED -> ARCHIVED. ARCHIVED records only come back through
    rotation, and only once their cool-down has elapsed.
    """
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class ContentKind(str, Enum):
    """The two persisted collections."""
    ARTICLE = "article"
    METRIC = "metric"
