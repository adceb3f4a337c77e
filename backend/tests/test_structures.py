"""Test frame parsing and receipt snapshot structures."""
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_consensus.processors.core.structures import (
    RecognizedFrame,
    RecognizedReceipt,
    parse_timestamp,
)
from receipt_consensus.utils.amounts import format_amount, to_decimal


def test_frame_from_dict():
    frame = RecognizedFrame.from_dict({
        "timestamp": "2024-05-01T10:15:00Z",
        "positions": [
            {"product": "ARLA  MILCH 3,8%", "price": "1,99"},
            {"product": "UNREADABLE", "price": "x.yz"},
            {"product": "PFAND", "price": -0.25, "position_index": 7},
        ],
        "store": "rewe markt",
        "total": "30.82",
        "total_label": "SUMME",
        "purchase_date": "2024-05-01",
    })

    assert frame.timestamp == datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)
    assert len(frame.observations) == 2
    milk, deposit = frame.observations
    assert milk.product_text == "ARLA MILCH 3,8%"
    assert milk.formatted_price == "1.99"
    assert milk.timestamp == frame.timestamp
    assert milk.position_index == 0
    assert deposit.formatted_price == "-0.25"
    assert deposit.position_index == 7
    assert frame.store.formatted_value == "REWE MARKT"
    assert frame.total.value == Decimal("30.82")
    assert frame.total_label.formatted_value == "SUMME"
    assert frame.purchase_date.value == date(2024, 5, 1)


def test_frame_from_dict_with_missing_fields():
    frame = RecognizedFrame.from_dict({"timestamp": 1714558500000})
    assert frame.observations == []
    assert frame.store is None
    assert frame.total is None
    assert frame.timestamp.tzinfo is not None


def test_parse_timestamp_variants():
    assert parse_timestamp(None) is None
    assert parse_timestamp("not a time") is None
    naive = parse_timestamp(datetime(2024, 5, 1, 10, 15))
    assert naive.tzinfo == timezone.utc


def test_amount_helpers():
    assert to_decimal(1.1) == Decimal("1.1")
    assert to_decimal("1,234.56") == Decimal("1234.56")
    assert to_decimal("2,49") == Decimal("2.49")
    assert to_decimal("") is None
    assert to_decimal(True) is None
    assert format_amount(Decimal("1.5")) == "1.50"
    assert format_amount(Decimal("-0.001")) == "0.00"
    assert format_amount(None) == ""


def test_empty_receipt():
    receipt = RecognizedReceipt()
    assert receipt.calculated_total == Decimal("0")
    assert not receipt.is_valid
    assert receipt.to_dict()["positions"] == []
