"""
Position Group: bounded evidence cache for one line item across frames.
"""
from collections import Counter
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from ...config import ConsolidationSettings
from .similarity import (
    price_confidence,
    prices_match,
    product_confidence,
    similarity,
    stability as stability_score,
)
from .structures import Confidence, Observation, Operation, RecognizedPosition


class PositionGroup:
    """
    Observations believed to be the same physical line item.

    Members are kept oldest first. When the group is full the oldest member
    is evicted before a new one is appended. Observations are immutable, so
    the group keeps the per-member confidence itself and recomputes it for
    every member on each change.
    """

    def __init__(self, settings: Optional[ConsolidationSettings] = None):
        self.settings = settings or ConsolidationSettings()
        self._members: List[Observation] = []
        self._confidences: Dict[Observation, int] = {}

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Observation]:
        return iter(list(self._members))

    def __repr__(self) -> str:
        best = self.most_trustworthy_member()
        label = f"{best.product_text!r} {best.formatted_price}" if best else "empty"
        return f"PositionGroup({label}, members={len(self._members)})"

    @property
    def members(self) -> List[Observation]:
        return list(self._members)

    def add_member(self, observation: Observation) -> Optional[Observation]:
        """
        Append an observation, evicting the oldest member when full.

        Args:
            observation: Observation assigned to this group

        Returns:
            The evicted member, or None
        """
        evicted = None
        while len(self._members) >= self.settings.max_group_size:
            evicted = self._members.pop(0)
            self._confidences.pop(evicted, None)

        self._members.append(observation)
        self.recalculate_confidences()
        return evicted

    def recalculate_confidences(self) -> None:
        """Recompute every member's confidence against the current members."""
        texts = [m.product_text for m in self._members]
        prices = [m.price.value for m in self._members]
        self._confidences = {
            member: Confidence.combine([
                product_confidence(member.product_text, texts, self.settings.low_noise_stddev),
                price_confidence(member.price.value, prices),
            ])
            for member in self._members
        }

    def member_confidence(self, member: Observation) -> int:
        return self._confidences.get(member, 0)

    @property
    def confidence(self) -> int:
        """Mean member confidence (0 for an empty group)."""
        if not self._members:
            return 0
        return round(sum(self.member_confidence(m) for m in self._members) / len(self._members))

    @property
    def alternative_texts(self) -> List[str]:
        return [m.product_text for m in self._members]

    @property
    def stability(self) -> int:
        return stability_score(self.alternative_texts, self.settings.stability_min_samples)

    def trustworthiness_of(self, member: Observation) -> int:
        """Share of members recognized with exactly this member's text and price."""
        if not self._members:
            return 0
        count = sum(1 for m in self._members if m.pair == member.pair)
        return int(count / len(self._members) * 100)

    def most_trustworthy_member(self) -> Optional[Observation]:
        """Member whose (text, price) pair occurs most often; ties go to the newest."""
        if not self._members:
            return None
        counts = Counter(m.pair for m in self._members)
        ranked = max(
            enumerate(self._members),
            key=lambda item: (counts[item[1].pair], item[1].timestamp, item[0]),
        )
        return ranked[1]

    @property
    def trustworthiness(self) -> int:
        best = self.most_trustworthy_member()
        return self.trustworthiness_of(best) if best is not None else 0

    def most_similar_member(self, candidate: Observation) -> Optional[Observation]:
        """
        Member whose product text is closest to the candidate's.

        Ties prefer a member with the candidate's price, then the newest.
        """
        if not self._members:
            return None
        ranked = max(
            enumerate(self._members),
            key=lambda item: (
                similarity(candidate.product_text, item[1].product_text),
                prices_match(candidate.price.value, item[1].price.value),
                item[1].timestamp,
                item[0],
            ),
        )
        return ranked[1]

    def has_timestamp(self, timestamp: datetime) -> bool:
        return any(m.timestamp == timestamp for m in self._members)

    @property
    def timestamp(self) -> Optional[datetime]:
        """Timestamp of the newest member."""
        return max((m.timestamp for m in self._members), default=None)

    @property
    def oldest_timestamp(self) -> Optional[datetime]:
        return min((m.timestamp for m in self._members), default=None)

    def to_position(
        self, operation: Operation = Operation.NONE, product: Optional[str] = None
    ) -> RecognizedPosition:
        """Report the group through its most trustworthy member."""
        best = self.most_trustworthy_member()
        if best is None:
            raise ValueError("Cannot build a position from an empty group")
        return RecognizedPosition(
            observation=best,
            product=product or best.product_text,
            price=best.price.value,
            confidence=self.confidence,
            stability=self.stability,
            trustworthiness=self.trustworthiness_of(best),
            member_count=len(self._members),
            operation=operation,
        )
