"""Frequency bucket normalization."""

from typing import Optional

FREQUENCY_BUCKETS = ("Top 500", "Top 1000", "Top 3000", "Top 5000", "10000+")

FALLBACK_BUCKET = "10000+"

# Coarse labels used by older generations of cards
LEGACY_FREQUENCY_MAP = {
    "High": "Top 1000",
    "Medium": "Top 3000",
    "Low": "10000+",
}


def normalize_frequency(value: Optional[str]) -> str:
    """
    Map a raw frequency label onto the fixed bucket set.

    Valid buckets pass through, legacy High/Medium/Low labels are mapped,
    anything else (including None) becomes "10000+".
    """
    if not value:
        return FALLBACK_BUCKET
    if value in FREQUENCY_BUCKETS:
        return value
    return LEGACY_FREQUENCY_MAP.get(value, FALLBACK_BUCKET)
