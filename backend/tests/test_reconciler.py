"""Test dropping weak positions so a receipt matches its declared total."""
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_consensus.config import ConsolidationSettings
from receipt_consensus.processors.core.structures import (
    Observation,
    RecognizedPosition,
    RecognizedPrice,
    RecognizedProduct,
    RecognizedReceipt,
    RecognizedTotal,
)
from receipt_consensus.processors.validation.reconciler import (
    is_suspect,
    max_removals,
    reconcile_to_total,
)

T0 = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)


def _position(product: str, price: str, confidence: int = 95, stability: int = 80,
              member_count: int = 8) -> RecognizedPosition:
    observation = Observation(
        product=RecognizedProduct(value=product),
        price=RecognizedPrice(value=Decimal(price)),
        timestamp=T0,
    )
    return RecognizedPosition(
        observation=observation,
        product=product,
        price=Decimal(price),
        confidence=confidence,
        stability=stability,
        trustworthiness=100,
        member_count=member_count,
    )


def _weak(product: str, price: str, confidence: int = 30) -> RecognizedPosition:
    return _position(product, price, confidence=confidence, stability=0, member_count=2)


def _receipt(positions, total: str) -> RecognizedReceipt:
    return RecognizedReceipt(positions=positions, total=RecognizedTotal(value=Decimal(total)))


def test_weak_surplus_position_is_dropped():
    receipt = _receipt(
        [_position("ARLA MILCH 3,8%", "1.99"), _weak("MLCH", "0.99"), _position("BIO BANANEN", "2.49")],
        total="4.48",
    )
    assert not receipt.is_valid

    result = reconcile_to_total(receipt, ConsolidationSettings())

    assert result.changed
    assert [p.product for p in result.removed] == ["MLCH"]
    assert [p.product for p in result.receipt.positions] == ["ARLA MILCH 3,8%", "BIO BANANEN"]
    assert result.receipt.is_valid
    # both remaining positions pass, so the smaller receipt is confirmed
    assert result.receipt.confirmed
    assert len(receipt.positions) == 3
    print("[OK] weak surplus dropped")


def test_established_positions_are_kept():
    receipt = _receipt([_position("ARLA MILCH 3,8%", "1.99"), _position("BIO BANANEN", "2.49")], total="2.49")
    result = reconcile_to_total(receipt)
    assert not result.changed
    assert result.receipt is receipt


def test_missing_amount_is_not_reconciled():
    receipt = _receipt([_position("BROT", "2.50"), _weak("BUTTER", "2.35")], total="30.82")
    assert reconcile_to_total(receipt).receipt is receipt


def test_receipt_without_total_is_untouched():
    receipt = RecognizedReceipt(positions=[_position("BROT", "2.50"), _weak("BUTTER", "2.35")])
    assert reconcile_to_total(receipt).receipt is receipt


def test_no_exact_cover_leaves_receipt_unchanged():
    receipt = _receipt([_position("BROT", "2.50"), _weak("BUTTER", "2.35"), _position("KAESE", "3.10")], total="5.70")
    # surplus 2.25 cannot be covered by 2.35
    assert not reconcile_to_total(receipt).changed


def test_sum_label_read_as_product_is_preferred():
    receipt = _receipt(
        [
            _position("ARLA MILCH 3,8%", "1.99"),
            _position("BIO BANANEN", "2.49"),
            _weak("KAESE", "4.48", confidence=50),
            _weak("SUMME", "4.48", confidence=50),
        ],
        total="8.96",
    )
    result = reconcile_to_total(receipt)
    assert [p.product for p in result.removed] == ["SUMME"]


def test_fewest_removals_win():
    receipt = _receipt(
        [
            _position("KAFFEE CREMA", "12.99"),
            _weak("BROETCHEN", "0.50", confidence=10),
            _weak("PFAND", "0.50", confidence=10),
            _weak("APFEL", "1.00", confidence=30),
            _position("RINDERHACK", "11.00"),
        ],
        total="24.99",
    )
    result = reconcile_to_total(receipt)
    assert [p.product for p in result.removed] == ["APFEL"]
    assert result.receipt.calculated_total == Decimal("24.99")


def test_max_removals():
    assert max_removals(1) == 0
    assert max_removals(2) == 1
    assert max_removals(3) == 1
    assert max_removals(4) == 2
    assert max_removals(10) == 3


def test_is_suspect():
    assert is_suspect("SUMME EUR")
    assert is_suspect("Zu zahlen")
    assert not is_suspect("BROT")
    assert not is_suspect(None)
