"""
Processors Core: Shared data structures, scoring and the position group.

Used by the consolidation store, the validator and the scan session.
"""
from .structures import (
    Operation, Bounds, TextLine, RecognizedEntity,
    RecognizedProduct, RecognizedPrice, RecognizedTotal, RecognizedTotalLabel,
    RecognizedStore, RecognizedPurchaseDate, Confidence, Observation,
    RecognizedFrame, RecognizedPosition, RecognizedReceipt, parse_timestamp,
)
from .similarity import (
    similarity, text_ratio, prices_match,
    product_confidence, price_confidence, stability, trustworthiness,
)
from .position_group import PositionGroup

__all__ = [
    "Operation", "Bounds", "TextLine", "RecognizedEntity",
    "RecognizedProduct", "RecognizedPrice", "RecognizedTotal", "RecognizedTotalLabel",
    "RecognizedStore", "RecognizedPurchaseDate", "Confidence", "Observation",
    "RecognizedFrame", "RecognizedPosition", "RecognizedReceipt", "parse_timestamp",
    "similarity", "text_ratio", "prices_match",
    "product_confidence", "price_confidence", "stability", "trustworthiness",
    "PositionGroup",
]
