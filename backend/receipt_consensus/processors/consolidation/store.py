"""
Consolidation Store: every live position group of one scanning session.

For each frame the store assigns observations to groups (or opens new
ones), refreshes the header fields, prunes noise and can resolve the
current receipt snapshot.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ...config import ConsolidationSettings
from ..core.position_group import PositionGroup
from ..core.similarity import prices_match, similarity
from ..core.structures import (
    Observation,
    Operation,
    RecognizedFrame,
    RecognizedPosition,
    RecognizedPurchaseDate,
    RecognizedReceipt,
    RecognizedStore,
    RecognizedTotal,
    RecognizedTotalLabel,
)
from ...utils.amounts import format_amount, sum_amounts
from ..text.normalizer import normalize_by_alternative_texts
from ..validation.receipt_validator import is_confirmed
from .position_graph import OrderResult, PositionGraph

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Groups touched by one frame."""
    added: List[PositionGroup] = field(default_factory=list)
    updated: List[PositionGroup] = field(default_factory=list)
    removed: List[PositionGroup] = field(default_factory=list)


class ConsolidationStore:
    """
    Owns the position groups and best-known header fields of one session.

    Groups are kept in creation order. Not thread-safe: frames must be
    applied one at a time.
    """

    def __init__(self, settings: Optional[ConsolidationSettings] = None):
        self.settings = settings or ConsolidationSettings()
        self._groups: List[PositionGroup] = []
        self._operations: Dict[PositionGroup, Operation] = {}
        self.store: Optional[RecognizedStore] = None
        self.total: Optional[RecognizedTotal] = None
        self.total_label: Optional[RecognizedTotalLabel] = None
        self.purchase_date: Optional[RecognizedPurchaseDate] = None
        self.timestamp: Optional[datetime] = None
        self._total_counts: Counter = Counter()
        self._totals: Dict[str, RecognizedTotal] = {}

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def groups(self) -> List[PositionGroup]:
        return list(self._groups)

    def update_settings(self, settings: ConsolidationSettings) -> None:
        """Swap tuning knobs; oversized groups shrink on their next append."""
        self.settings = settings
        for group in self._groups:
            group.settings = settings

    def reset(self) -> None:
        self._groups = []
        self._operations = {}
        self.store = None
        self.total = None
        self.total_label = None
        self.purchase_date = None
        self.timestamp = None
        self._total_counts = Counter()
        self._totals = {}

    def apply(self, frame: RecognizedFrame) -> ApplyResult:
        """
        Apply one frame: assign observations, refresh header fields, prune.

        Args:
            frame: Parsed frame

        Returns:
            ApplyResult with the groups added, updated and removed
        """
        self._operations = {}
        result = ApplyResult()

        for observation in frame.observations:
            group, operation = self.assign(observation)
            self._operations[group] = operation

        self._update_header(frame)
        if self.timestamp is None or frame.timestamp > self.timestamp:
            self.timestamp = frame.timestamp

        result.removed = self.prune(frame.timestamp)
        for group, operation in self._operations.items():
            if operation == Operation.ADDED:
                result.added.append(group)
            elif operation == Operation.UPDATED:
                result.updated.append(group)

        logger.debug(
            f"Applied frame {frame.timestamp.isoformat()}: "
            f"{len(result.added)} added, {len(result.updated)} updated, "
            f"{len(result.removed)} removed, {len(self._groups)} groups"
        )
        return result

    def assign(self, observation: Observation) -> Tuple[PositionGroup, Operation]:
        """
        Put an observation into the best matching group or a new one.

        Candidates are groups without a member from the same frame whose most
        similar member has the same price. The highest similarity wins, the
        older group on ties; it must reach similarity_threshold.
        """
        best_group: Optional[PositionGroup] = None
        best_score = -1

        for group in self._groups:
            if group.has_timestamp(observation.timestamp):
                continue
            member = group.most_similar_member(observation)
            if member is None or not prices_match(member.price.value, observation.price.value):
                continue
            score = similarity(observation.product_text, member.product_text)
            if score > best_score:
                best_group, best_score = group, score

        if best_group is not None and best_score >= self.settings.similarity_threshold:
            best_group.add_member(observation)
            logger.debug(
                f"Merged '{observation.product_text}' {observation.formatted_price} "
                f"(score {best_score}) into group of {len(best_group)}"
            )
            return best_group, Operation.UPDATED

        group = PositionGroup(self.settings)
        group.add_member(observation)
        self._groups.append(group)
        logger.debug(
            f"New group for '{observation.product_text}' {observation.formatted_price} "
            f"(best score {best_score})"
        )
        return group, Operation.ADDED

    def _update_header(self, frame: RecognizedFrame) -> None:
        if frame.store is not None:
            self.store = frame.store
        if frame.total is not None:
            self.total = frame.total
            key = frame.total.formatted_value
            self._total_counts[key] += 1
            self._totals[key] = frame.total
        if frame.total_label is not None:
            self.total_label = frame.total_label
        if frame.purchase_date is not None:
            self.purchase_date = frame.purchase_date

    def prune(self, now: Optional[datetime] = None) -> List[PositionGroup]:
        """
        Remove untrustworthy and stale groups.

        Groups with at least min_scans members are dropped when their best
        member's trustworthiness is below trustworthy_threshold. Smaller groups
        are dropped once their newest member is older than invalidate_interval
        relative to now. Removal happens after the whole pass.

        Args:
            now: Reference time for staleness (usually the frame timestamp)

        Returns:
            Removed groups
        """
        marked = []
        for group in self._groups:
            if len(group) >= self.settings.min_scans:
                if group.trustworthiness < self.settings.trustworthy_threshold:
                    marked.append(group)
            elif now is not None and now - group.timestamp > self.settings.invalidate_interval:
                marked.append(group)

        if marked:
            self._groups = [g for g in self._groups if g not in marked]
            for group in marked:
                self._operations.pop(group, None)
                logger.debug(f"Pruned {group!r}")
        return marked

    def resolve_order(self) -> OrderResult:
        """Order the live groups through the position graph."""
        return PositionGraph(self._groups, self.settings.link_threshold).resolve()

    def positions(self, normalize: bool = False) -> List[RecognizedPosition]:
        """
        Current positions in resolved order.

        Args:
            normalize: Report the canonical text among each group's
                alternatives instead of the most trustworthy reading
        """
        positions = []
        for group in self.resolve_order().order:
            product = normalize_by_alternative_texts(group.alternative_texts) if normalize else None
            operation = self._operations.get(group, Operation.NONE)
            positions.append(group.to_position(operation, product))
        return positions

    def select_total(self, positions: List[RecognizedPosition]) -> Optional[RecognizedTotal]:
        """
        Total reported with the snapshot.

        The latest total, unless an earlier total seen in at least
        total_confirmations frames equals the sum of the positions.
        """
        calculated = format_amount(sum_amounts(p.price for p in positions))
        if self.total is not None and self.total.formatted_value == calculated:
            return self.total
        if self._total_counts.get(calculated, 0) >= self.settings.total_confirmations:
            logger.debug(
                f"Using confirmed total {calculated} instead of latest "
                f"{self.total.formatted_value if self.total else None}"
            )
            return self._totals[calculated]
        return self.total

    def snapshot(self, normalize: bool = False) -> RecognizedReceipt:
        """Best-effort consolidated receipt."""
        positions = self.positions(normalize)
        return RecognizedReceipt(
            positions=positions,
            timestamp=self.timestamp,
            store=self.store,
            total=self.select_total(positions),
            total_label=self.total_label,
            purchase_date=self.purchase_date,
            confirmed=is_confirmed(positions, self.settings),
        )
