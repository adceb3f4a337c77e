"""
Validation: completeness status, confirmation quorum and total reconciliation.
"""
from .receipt_validator import (
    ReceiptCompleteness,
    ReceiptValidationResult,
    calculate_match_percentage,
    validate_receipt,
    required_passing,
    position_passes,
    is_confirmed,
)
from .reconciler import (
    ReconcileResult,
    RemovalCandidate,
    is_suspect,
    max_removals,
    removal_candidates,
    reconcile_to_total,
)

__all__ = [
    "ReceiptCompleteness",
    "ReceiptValidationResult",
    "calculate_match_percentage",
    "validate_receipt",
    "required_passing",
    "position_passes",
    "is_confirmed",
    "ReconcileResult",
    "RemovalCandidate",
    "is_suspect",
    "max_removals",
    "removal_candidates",
    "reconcile_to_total",
]
