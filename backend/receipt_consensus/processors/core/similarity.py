"""
Similarity and confidence scoring.

Pure functions over texts and amounts. Every score is an integer in 0..100
and every ratio short-circuits to 0 on a zero denominator.
"""
import math
from decimal import Decimal
from typing import Iterable, List, Sequence, Tuple

from rapidfuzz import fuzz

from ...utils.amounts import format_amount
from ..text.normalizer import calculate_frequency, collapse_whitespace
from .structures import Confidence


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def similarity(a: str, b: str) -> int:
    """
    Fuzzy similarity of two product texts.

    OCR noise shows up as swapped characters, truncation or reordered tokens,
    so the score is the best of ratio, partial_ratio and token_set_ratio.

    Args:
        a: First text
        b: Second text

    Returns:
        Score 0..100 (100 for two empty texts, 0 if only one is empty)
    """
    a = collapse_whitespace(a)
    b = collapse_whitespace(b)
    if not a and not b:
        return 100
    if not a or not b:
        return 0
    score = max(
        fuzz.ratio(a, b),
        fuzz.partial_ratio(a, b),
        fuzz.token_set_ratio(a, b),
    )
    return int(round(score))


def text_ratio(a: str, b: str) -> int:
    """Plain edit-distance ratio, used where truncation must not look similar."""
    return int(round(fuzz.ratio(collapse_whitespace(a), collapse_whitespace(b))))


def prices_match(a: Decimal, b: Decimal) -> bool:
    """Two prices are the same only if their two-decimal forms are equal."""
    return format_amount(a) == format_amount(b)


def _population_stddev(values: Sequence[float]) -> float:
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def product_confidence(
    candidate: str, member_texts: Sequence[str], low_noise_stddev: float = 10.0
) -> Confidence:
    """
    Confidence of a product text against the texts of a group.

    Mean similarity to every member, scaled down by (100 - stddev) / 100 when
    the members disagree (stddev at or above low_noise_stddev).
    """
    if not member_texts:
        return Confidence(0)

    scores = [similarity(candidate, text) for text in member_texts]
    mean = sum(scores) / len(scores)
    stddev = _population_stddev(scores)
    weight = 1.0 if stddev < low_noise_stddev else (100 - stddev) / 100
    return Confidence(int(round(_clamp(mean * weight))))


def price_confidence(candidate: Decimal, member_prices: Sequence[Decimal]) -> Confidence:
    """
    Confidence of a price against the prices of a group.

    Per member: 100 - |delta| / (|price| + |member|) * 100, averaged.
    """
    if not member_prices or candidate == 0:
        return Confidence(0)

    scores = []
    for member in member_prices:
        denominator = abs(candidate) + abs(member)
        if denominator == 0:
            scores.append(100.0)
            continue
        closeness = 100 - float(abs(candidate - member) / denominator) * 100
        scores.append(_clamp(closeness))
    return Confidence(int(round(sum(scores) / len(scores))))


def stability(alternatives: List[str], min_samples: int = 3) -> int:
    """
    Share of the most frequent alternative text, in percent.

    Reports 0 until at least min_samples alternatives have been recorded.
    """
    texts = [collapse_whitespace(a) for a in alternatives]
    if not texts or len(texts) < min_samples:
        return 0
    return max(calculate_frequency(texts).values())


def trustworthiness(pair: Tuple[str, str], pairs: Iterable[Tuple[str, str]]) -> int:
    """Occurrences of pair among pairs, as a percentage of all pairs."""
    pairs = list(pairs)
    if not pairs:
        return 0
    return int(pairs.count(pair) / len(pairs) * 100)
