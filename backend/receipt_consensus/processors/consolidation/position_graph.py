"""
Position Graph: resolve one deterministic order for consolidated positions.

Each group is a node represented by its most trustworthy member. An edge
A -> B means A was seen strictly before B, the two texts are clearly
different and neither price is negative. A depth-first topological sort
produces the order; a cycle falls back to a plain sort instead of raising.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from ..core.position_group import PositionGroup
from ..core.similarity import text_ratio
from ..core.structures import Observation

logger = logging.getLogger(__name__)


@dataclass
class OrderResult:
    """Ordered groups, tagged with whether the graph had a cycle."""
    order: List[PositionGroup] = field(default_factory=list)
    cycle: bool = False


class PositionGraph:
    """
    Ordering graph over position groups.

    Node ids are the groups' indices in the sequence passed in, which the
    store keeps in creation order, so a lower id means an older group.
    """

    def __init__(self, groups: Sequence[PositionGroup], link_threshold: int = 90):
        self.link_threshold = link_threshold
        self._groups: Dict[int, PositionGroup] = {}
        self._nodes: Dict[int, Observation] = {}
        for node_id, group in enumerate(groups):
            best = group.most_trustworthy_member()
            if best is not None:
                self._groups[node_id] = group
                self._nodes[node_id] = best

        self._edges: Dict[int, Set[int]] = {node_id: set() for node_id in self._nodes}
        for a in self._nodes:
            for b in self._nodes:
                if a != b and self._should_link(self._nodes[a], self._nodes[b]):
                    self._edges[a].add(b)

    def _should_link(self, a: Observation, b: Observation) -> bool:
        if a.timestamp >= b.timestamp:
            return False
        if a.price.value < 0 or b.price.value < 0:
            return False
        return text_ratio(a.product_text, b.product_text) < self.link_threshold

    def link(self, source: int, target: int) -> None:
        """Add an explicit ordering constraint between two nodes."""
        if source not in self._nodes or target not in self._nodes:
            raise KeyError(f"Unknown node: {source} -> {target}")
        self._edges[source].add(target)

    def successors(self, node_id: int) -> List[int]:
        return sorted(self._edges.get(node_id, ()), key=self._natural_key)

    def _natural_key(self, node_id: int) -> Tuple:
        node = self._nodes[node_id]
        return (node.timestamp, node.position_index, node_id)

    def topological_sort(self) -> Tuple[List[int], bool]:
        """
        Depth-first topological sort.

        Seeds are visited in reverse natural order and finished nodes are
        prepended, so nodes without constraints keep their natural order.

        Returns:
            (node ids in order, False) or ([], True) when a cycle is found
        """
        visited: Set[int] = set()
        visiting: Set[int] = set()
        result: deque = deque()

        def visit(node_id: int) -> bool:
            if node_id in visited:
                return True
            if node_id in visiting:
                return False
            visiting.add(node_id)
            for successor in reversed(self.successors(node_id)):
                if not visit(successor):
                    return False
            visiting.discard(node_id)
            visited.add(node_id)
            result.appendleft(node_id)
            return True

        for seed in sorted(self._nodes, key=self._natural_key, reverse=True):
            if not visit(seed):
                return [], True
        return list(result), False

    def fallback_order(self) -> List[int]:
        """
        Sort nodes by timestamp, position index, trustworthiness (desc) and
        centrality (desc), then group age.
        """
        centrality = {
            a: sum(
                text_ratio(self._nodes[a].product_text, self._nodes[b].product_text)
                for b in self._nodes if b != a
            )
            for a in self._nodes
        }

        def key(node_id: int) -> Tuple:
            node = self._nodes[node_id]
            group = self._groups[node_id]
            return (
                node.timestamp,
                node.position_index,
                -group.trustworthiness_of(node),
                -centrality[node_id],
                node_id,
            )

        return sorted(self._nodes, key=key)

    def resolve(self) -> OrderResult:
        """Order all groups, falling back to a plain sort on a cycle."""
        order, cycle = self.topological_sort()
        if cycle:
            logger.debug(f"Cycle in position graph of {len(self._nodes)} nodes, using fallback sort")
            order = self.fallback_order()
        return OrderResult(order=[self._groups[node_id] for node_id in order], cycle=cycle)
