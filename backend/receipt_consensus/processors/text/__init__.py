"""
Text utilities: whitespace cleanup and canonical text selection.
"""
from .normalizer import (
    collapse_whitespace,
    calculate_frequency,
    sort_by_frequency,
    most_frequent,
    filter_truncated_alternatives,
    normalize_by_alternative_texts,
)

__all__ = [
    "collapse_whitespace",
    "calculate_frequency",
    "sort_by_frequency",
    "most_frequent",
    "filter_truncated_alternatives",
    "normalize_by_alternative_texts",
]
