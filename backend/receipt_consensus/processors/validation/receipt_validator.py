"""
Receipt Validator: completeness status and confirmation quorum.

Completeness compares the sum of consolidated positions with the declared
total. Confirmation is independent of it: enough positions must be backed by
large, stable and confident groups.
"""
import math
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from ...config import ConsolidationSettings
from ...utils.amounts import round_amount
from ..core.structures import RecognizedPosition, RecognizedReceipt

logger = logging.getLogger(__name__)


class ReceiptCompleteness(Enum):
    """How well the positions add up to the declared total."""
    INVALID = "invalid"
    INCOMPLETE = "incomplete"
    NEARLY_COMPLETE = "nearly_complete"
    COMPLETE = "complete"


@dataclass
class ReceiptValidationResult:
    """Completeness status of a receipt snapshot."""
    status: ReceiptCompleteness
    match_percentage: int = 0
    calculated_total: Decimal = Decimal("0")
    declared_total: Optional[Decimal] = None

    @property
    def is_complete(self) -> bool:
        return self.status == ReceiptCompleteness.COMPLETE

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "match_percentage": self.match_percentage,
        }


def calculate_match_percentage(calculated: Decimal, declared: Decimal) -> int:
    """
    Match between calculated and declared totals in percent.

    min / max * 100, truncated to int. 0 when either side is not positive.
    """
    calculated = round_amount(calculated)
    declared = round_amount(declared)
    if calculated <= 0 or declared <= 0:
        return 0
    return int(min(calculated, declared) / max(calculated, declared) * 100)


def validate_receipt(
    receipt: RecognizedReceipt, settings: Optional[ConsolidationSettings] = None
) -> ReceiptValidationResult:
    """
    Classify a receipt snapshot.

    Args:
        receipt: Consolidated receipt
        settings: Provides nearly_complete_threshold

    Returns:
        ReceiptValidationResult (INVALID when positions or total are missing)
    """
    settings = settings or ConsolidationSettings()
    calculated = receipt.calculated_total

    if not receipt.positions or receipt.total is None:
        return ReceiptValidationResult(
            status=ReceiptCompleteness.INVALID,
            calculated_total=calculated,
            declared_total=receipt.total.value if receipt.total else None,
        )

    declared = receipt.total.value
    percentage = calculate_match_percentage(calculated, declared)
    if percentage == 100:
        status = ReceiptCompleteness.COMPLETE
    elif percentage >= settings.nearly_complete_threshold:
        status = ReceiptCompleteness.NEARLY_COMPLETE
    else:
        status = ReceiptCompleteness.INCOMPLETE

    return ReceiptValidationResult(
        status=status,
        match_percentage=percentage,
        calculated_total=calculated,
        declared_total=declared,
    )


def required_passing(position_count: int, quorum: float = 0.8) -> int:
    """Passing positions needed: all up to 3 positions, else ceil(quorum * n)."""
    if position_count <= 3:
        return position_count
    return math.ceil(Decimal(str(quorum)) * position_count)


def position_passes(position: RecognizedPosition, settings: ConsolidationSettings) -> bool:
    return (
        position.member_count >= settings.confirmation_min_size
        and position.stability >= settings.stability_threshold
        and position.confidence >= settings.confidence_threshold - 5
    )


def is_confirmed(
    positions: List[RecognizedPosition], settings: Optional[ConsolidationSettings] = None
) -> bool:
    """Whether enough positions pass to finalize the receipt."""
    if not positions:
        return False
    settings = settings or ConsolidationSettings()
    passing = sum(1 for p in positions if position_passes(p, settings))
    return passing >= required_passing(len(positions), settings.confirmation_quorum)
