"""Test similarity and confidence scoring functions."""
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_consensus.processors.core.similarity import (
    price_confidence,
    prices_match,
    product_confidence,
    similarity,
    stability,
    text_ratio,
    trustworthiness,
)
from receipt_consensus.processors.core.structures import Confidence


def test_similarity_empty_texts():
    assert similarity("", "") == 100
    assert similarity("", "ARLA MILCH") == 0
    assert similarity("ARLA MILCH", "") == 0


def test_similarity_ignores_whitespace_runs():
    assert similarity("ARLA  MILCH", "ARLA MILCH") == 100
    assert similarity(" BIO\tBANANEN ", "BIO BANANEN") == 100


def test_similarity_catches_character_swap():
    score = similarity("ARLA MILCH 3,8%", "ARLA MILCH 3.8%")
    assert score == 93, f"Expected 93, got {score}"


def test_similarity_catches_truncation():
    # partial ratio covers the cut-off reading
    assert similarity("ARLA MILCH", "ARLA MILCH 3,8%") == 100
    assert text_ratio("ARLA MILCH", "ARLA MILCH 3,8%") == 80


def test_similarity_catches_token_reorder():
    assert similarity("BANANEN BIO", "BIO BANANEN") == 100


def test_prices_match_on_two_decimal_form():
    assert prices_match(Decimal("1.99"), Decimal("1.990"))
    assert prices_match(Decimal("-0.25"), Decimal("-0.25"))
    assert not prices_match(Decimal("1.99"), Decimal("1.98"))
    assert not prices_match(Decimal("0.25"), Decimal("-0.25"))


def test_product_confidence_identical_members():
    conf = product_confidence("BUTTER", ["BUTTER", "BUTTER", "BUTTER"])
    assert conf.value == 100


def test_product_confidence_penalizes_disagreement():
    # scores [100, 0]: mean 50, stddev 50, weight 0.5
    conf = product_confidence("MILCH", ["MILCH", "XYZQW"])
    assert conf.value == 25


def test_product_confidence_empty_group():
    assert product_confidence("MILCH", []).value == 0


def test_price_confidence():
    assert price_confidence(Decimal("2.00"), [Decimal("2.00"), Decimal("2.00")]).value == 100
    # 100 and 100 - 1/3 * 100
    assert price_confidence(Decimal("2.00"), [Decimal("2.00"), Decimal("1.00")]).value == 83


def test_price_confidence_degenerate_cases():
    assert price_confidence(Decimal("0"), [Decimal("1.00")]).value == 0
    assert price_confidence(Decimal("1.00"), []).value == 0
    # opposite signs are as far apart as it gets
    assert price_confidence(Decimal("1.00"), [Decimal("-1.00")]).value == 0


def test_confidence_combine():
    assert Confidence.combine([Confidence(100), Confidence(50)]) == 75
    assert Confidence.combine([Confidence(100, 3), Confidence(0, 1)]) == 75
    assert Confidence.combine([Confidence(100, 0)]) == 0
    assert Confidence.combine([]) == 0


def test_stability_needs_min_samples():
    assert stability(["BROT", "BROT"], min_samples=3) == 0
    assert stability(["BROT", "BROT", "BROT"], min_samples=3) == 100
    assert stability(["BROT", "BROT", "BR0T"], min_samples=3) == 67
    assert stability([], min_samples=0) == 0


def test_trustworthiness():
    pairs = [("BROT", "2.50"), ("BROT", "2.50"), ("BR0T", "2.50")]
    assert trustworthiness(("BROT", "2.50"), pairs) == 66
    assert trustworthiness(("BR0T", "2.50"), pairs) == 33
    assert trustworthiness(("BROT", "2.50"), []) == 0
    print("[OK] trustworthiness")
