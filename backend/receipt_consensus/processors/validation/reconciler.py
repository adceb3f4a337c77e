"""
Total Reconciler: drop suspect positions so the receipt adds up.

When the consolidated positions sum to more than the declared total, the
surplus usually comes from a few bad positions: a misread line, a duplicate
or the total line itself read as a product. The reconciler looks for the
smallest set of weak positions (low confidence or few observations) whose
prices cover the surplus exactly and removes them from the snapshot.
Groups in the store are left untouched.
"""
import itertools
import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from ...config import ConsolidationSettings
from ...utils.amounts import format_amount, to_cents
from ..core.structures import RecognizedPosition, RecognizedReceipt
from .receipt_validator import is_confirmed

logger = logging.getLogger(__name__)

# Product texts that look like a total line rather than an item
SUM_LABEL_PATTERN = re.compile(
    r"\b(summe|zwischensumme|gesamt|gesamtbetrag|zu\s+zahlen|total|subtotal|betrag)\b",
    re.IGNORECASE,
)

SUSPECT_BONUS = 50


@dataclass(frozen=True)
class RemovalCandidate:
    """A position that may be dropped, with the features used to rank it."""
    index: int
    cents: int
    confidence: int
    stability: int
    suspect: bool

    @property
    def score(self) -> int:
        return (100 - self.confidence) + (SUSPECT_BONUS if self.suspect else 0)


@dataclass
class ReconcileResult:
    """Reconciled receipt plus the positions that were dropped."""
    receipt: RecognizedReceipt
    removed: List[RecognizedPosition] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed)


def is_suspect(text: Optional[str]) -> bool:
    """Whether a product text reads like a sum label."""
    return bool(SUM_LABEL_PATTERN.search(text or ""))


def max_removals(position_count: int) -> int:
    """
    Upper bound on positions dropped from a receipt.

    One for up to 3 positions, otherwise 30% (at least 2); never all of them.
    """
    if position_count <= 1:
        return 0
    soft_cap = 1 if position_count <= 3 else max(math.floor(position_count * 0.3), 2)
    return min(position_count - 1, soft_cap)


def _is_protected(candidate: RemovalCandidate, settings: ConsolidationSettings) -> bool:
    # confident and stable positions are never dropped
    confidence_guard = max(settings.confidence_threshold + 15, 85)
    stability_guard = max(settings.stability_threshold + 15, 75)
    return candidate.confidence >= confidence_guard and candidate.stability >= stability_guard


def removal_candidates(
    positions: Sequence[RecognizedPosition],
    surplus_cents: int,
    settings: ConsolidationSettings,
) -> List[RemovalCandidate]:
    """
    Weak positions that could cover part of the surplus, best first.

    A position qualifies when its price is positive and not larger than the
    surplus, and it has low confidence or few observations. Ranking: lower
    confidence, then sum-label texts, then larger prices.
    """
    pool = []
    for index, position in enumerate(positions):
        cents = to_cents(position.price)
        if cents <= 0 or cents > surplus_cents:
            continue
        if (
            position.confidence > settings.outlier_low_confidence
            and position.member_count > settings.outlier_min_samples
        ):
            continue
        candidate = RemovalCandidate(
            index=index,
            cents=cents,
            confidence=position.confidence,
            stability=position.stability,
            suspect=is_suspect(position.product),
        )
        if _is_protected(candidate, settings):
            continue
        pool.append(candidate)

    pool.sort(key=lambda c: (c.confidence, not c.suspect, -c.cents, c.index))
    return pool[:settings.outlier_max_candidates]


def _best_subset(
    candidates: List[RemovalCandidate], surplus_cents: int, limit: int
) -> List[RemovalCandidate]:
    """Smallest subset summing to the surplus; highest score among equals."""
    for size in range(1, limit + 1):
        best: Optional[tuple] = None
        for combo in itertools.combinations(candidates, size):
            if sum(c.cents for c in combo) != surplus_cents:
                continue
            score = sum(c.score for c in combo)
            if best is None or score > best[0]:
                best = (score, combo)
        if best is not None:
            return list(best[1])
    return []


def reconcile_to_total(
    receipt: RecognizedReceipt, settings: Optional[ConsolidationSettings] = None
) -> ReconcileResult:
    """
    Drop a minimal set of weak positions so the sum matches the total.

    Only a surplus is reconciled; a receipt that sums to less than its total
    is still missing positions. Nothing is removed unless the remaining
    positions add up to the total exactly.

    Args:
        receipt: Consolidated snapshot
        settings: Provides the candidate thresholds

    Returns:
        ReconcileResult; its receipt is the input itself when nothing changed
    """
    settings = settings or ConsolidationSettings()
    positions = receipt.positions
    if receipt.total is None or len(positions) <= 1:
        return ReconcileResult(receipt)

    surplus = to_cents(receipt.calculated_total) - to_cents(receipt.total.value)
    if surplus <= 0:
        return ReconcileResult(receipt)

    n = len(positions)
    limit = min(max_removals(n), max(2, math.floor(n * 0.25)))
    candidates = removal_candidates(positions, surplus, settings)
    chosen = _best_subset(candidates, surplus, limit)
    if not chosen:
        logger.debug(
            f"No removable positions cover surplus {format_amount(receipt.calculated_total - receipt.total.value)} "
            f"({len(candidates)} candidates)"
        )
        return ReconcileResult(receipt)

    dropped = {c.index for c in chosen}
    kept = [p for i, p in enumerate(positions) if i not in dropped]
    removed = [positions[i] for i in sorted(dropped)]
    logger.debug(
        f"Dropped {len(removed)} positions to match total {receipt.total.formatted_value}: "
        + ", ".join(f"'{p.product}' {p.formatted_price}" for p in removed)
    )
    return ReconcileResult(
        receipt=replace(receipt, positions=kept, confirmed=is_confirmed(kept, settings)),
        removed=removed,
    )
