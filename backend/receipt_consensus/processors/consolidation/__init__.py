"""
Consolidation: per-session group store and ordering graph.
"""
from .position_graph import OrderResult, PositionGraph
from .store import ApplyResult, ConsolidationStore

__all__ = ["OrderResult", "PositionGraph", "ApplyResult", "ConsolidationStore"]
