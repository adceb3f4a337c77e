"""
Text Normalizer: clean up and pick canonical product texts.

Handles common issues across frames:
- Unicode whitespace variants and repeated spaces
- Truncated readings ("ARLA MILCH" next to "ARLA MILCH 3,8%")
- Picking the most frequent reading among group alternatives
"""
import re
import logging
from collections import Counter
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# All common Unicode whitespace characters
_ALL_SPACES = re.compile(
    r"[\u0009-\u000D\u0020\u0085\u00A0\u1680\u180E\u2000-\u200A\u2028\u2029\u202F\u205F\u3000]+"
)


def collapse_whitespace(text: Optional[str]) -> str:
    """
    Collapse every run of whitespace into a single space and trim.

    Examples:
        "ARLA  MILCH 3,8%" -> "ARLA MILCH 3,8%"
        None -> ""
    """
    if not text:
        return ""
    return _ALL_SPACES.sub(" ", text).strip()


def calculate_frequency(values: List[str]) -> Dict[str, int]:
    """
    Map each distinct value to its percentage share (rounded).

    Insertion order follows first appearance, which keeps ties stable.
    """
    if not values:
        return {}
    total = len(values)
    counts = Counter(values)
    return {value: round(count / total * 100) for value, count in counts.items()}


def sort_by_frequency(values: List[str]) -> List[str]:
    """
    Return distinct values sorted by frequency, least frequent first.

    Equal frequencies keep first-appearance order, so the last element is the
    most frequent value that appeared latest among the tied ones.
    """
    counts = Counter(values)
    return sorted(counts, key=lambda v: counts[v])


def most_frequent(values: List[str]) -> Optional[str]:
    """Most frequent non-empty value, or None."""
    non_empty = [v for v in values if v]
    if not non_empty:
        return None
    return sort_by_frequency(non_empty)[-1]


def filter_truncated_alternatives(alternatives: List[str]) -> List[str]:
    """
    Drop alternatives that are a leading word-prefix of a longer alternative.

    "ARLA MILCH" is dropped when "ARLA MILCH 3,8%" is also present, because
    OCR cut the line short. A prefix that stops mid-word is kept.
    """
    alts = [collapse_whitespace(a) for a in alternatives]
    if len(alts) <= 1:
        return alts

    filtered = []
    for candidate in alts:
        truncated = False
        for other in alts:
            if len(other) > len(candidate) and other.startswith(candidate):
                if other[len(candidate)] == " ":
                    truncated = True
                    break
        if not truncated:
            filtered.append(candidate)

    return filtered or alts


def normalize_by_alternative_texts(alternatives: List[str]) -> Optional[str]:
    """
    Pick the canonical reading among alternative texts of one line item.

    Args:
        alternatives: Product texts recorded for the members of a group

    Returns:
        Most frequent complete (non-truncated) reading, or None if empty
    """
    if not alternatives:
        return None

    best = most_frequent(filter_truncated_alternatives(alternatives))
    logger.debug(f"Normalized {len(alternatives)} alternatives to '{best}'")
    return best
