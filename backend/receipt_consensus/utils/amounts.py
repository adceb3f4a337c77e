"""
Amount helpers for receipt prices and totals.

Prices travel through the engine as signed Decimals. Identity between two
prices is decided on the two-decimal string form, so every comparison goes
through format_amount().
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert an incoming amount to Decimal.

    Floats go through str() so 1.1 becomes Decimal("1.1") rather than the
    binary expansion. Strings may use a comma as decimal separator.

    Args:
        value: int, float, str or Decimal

    Returns:
        Decimal value, or None if the value cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def round_amount(value: Decimal) -> Decimal:
    """Round to cents (half-up, the way receipts print amounts)."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(value: Optional[Decimal]) -> str:
    """
    Format an amount as a plain two-decimal string.

    Examples:
        Decimal("1.5") -> "1.50"
        Decimal("-0.25") -> "-0.25"
        None -> ""
    """
    if value is None:
        return ""
    rounded = round_amount(value)
    if rounded == 0:
        # Avoid "-0.00" for tiny negative noise
        rounded = abs(rounded)
    return f"{rounded:.2f}"


def to_cents(value: Decimal) -> int:
    """Convert an amount to integer cents."""
    return int(round_amount(value) * 100)


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    """Sum amounts starting from Decimal zero."""
    return sum(values, Decimal("0"))
