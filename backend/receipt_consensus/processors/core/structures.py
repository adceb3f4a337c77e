"""
Receipt Consolidation Data Structures.

This module defines the value types shared by the consolidation engine:
recognized entities with their source line, per-frame observations, and the
consolidated receipt handed back to callers.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ...utils.amounts import format_amount, sum_amounts, to_decimal
from ..text.normalizer import collapse_whitespace


class Operation(Enum):
    """What happened to a position in the frame that produced it."""
    NONE = "none"
    ADDED = "added"
    UPDATED = "updated"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a frame timestamp.

    Accepts datetime, ISO-8601 strings and epoch milliseconds. Naive values
    are taken as UTC so they compare with aware ones.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        try:
            ts = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box of a source line."""
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0
    angle: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Bounds":
        data = data or {}
        return cls(
            left=float(data.get("left", data.get("x", 0.0)) or 0.0),
            top=float(data.get("top", data.get("y", 0.0)) or 0.0),
            width=float(data.get("width", 0.0) or 0.0),
            height=float(data.get("height", 0.0) or 0.0),
            angle=data.get("angle"),
        )


@dataclass(frozen=True)
class TextLine:
    """Provenance of a recognized entity: the source OCR line."""
    text: str = ""
    bounds: Bounds = field(default_factory=Bounds)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TextLine":
        data = data or {}
        return cls(text=data.get("text", "") or "", bounds=Bounds.from_dict(data.get("bounds")))


@dataclass(frozen=True)
class RecognizedEntity:
    """Base for every recognized field: raw value plus its source line."""
    value: Any
    line: TextLine = field(default_factory=TextLine)

    @property
    def formatted_value(self) -> str:
        return "" if self.value is None else str(self.value)


@dataclass(frozen=True)
class RecognizedProduct(RecognizedEntity):
    value: str = ""

    @property
    def formatted_value(self) -> str:
        return collapse_whitespace(self.value)


@dataclass(frozen=True)
class RecognizedPrice(RecognizedEntity):
    value: Decimal = Decimal("0")

    @property
    def formatted_value(self) -> str:
        return format_amount(self.value)


@dataclass(frozen=True)
class RecognizedTotal(RecognizedEntity):
    value: Decimal = Decimal("0")

    @property
    def formatted_value(self) -> str:
        return format_amount(self.value)


@dataclass(frozen=True)
class RecognizedTotalLabel(RecognizedEntity):
    value: str = ""

    @property
    def formatted_value(self) -> str:
        return collapse_whitespace(self.value)


@dataclass(frozen=True)
class RecognizedStore(RecognizedEntity):
    value: str = ""

    @property
    def formatted_value(self) -> str:
        return collapse_whitespace(self.value).upper()


@dataclass(frozen=True)
class RecognizedPurchaseDate(RecognizedEntity):
    value: Optional[date] = None

    @property
    def formatted_value(self) -> str:
        return self.value.isoformat() if self.value is not None else ""


@dataclass(frozen=True)
class Confidence:
    """A 0..100 score with the weight it carries when combined with others."""
    value: int
    weight: float = 1.0

    @staticmethod
    def combine(confidences: List["Confidence"]) -> int:
        """Weighted mean of several confidences (0 when total weight is 0)."""
        total_weight = sum(c.weight for c in confidences)
        if total_weight <= 0:
            return 0
        return round(sum(c.value * c.weight for c in confidences) / total_weight)


@dataclass(frozen=True, eq=False)
class Observation:
    """
    One line item seen in one frame.

    Equality is identity: the same reading from two frames stays two
    distinct members of a group.
    """
    product: RecognizedProduct
    price: RecognizedPrice
    timestamp: datetime
    position_index: int = 0

    @property
    def product_text(self) -> str:
        return self.product.formatted_value

    @property
    def formatted_price(self) -> str:
        return self.price.formatted_value

    @property
    def pair(self) -> tuple:
        """(product text, formatted price) used for majority votes."""
        return (self.product_text, self.formatted_price)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], timestamp: datetime, position_index: int = 0
    ) -> Optional["Observation"]:
        """
        Create Observation from a parsed line item dictionary.

        Returns None when the price cannot be parsed; such items carry no
        usable evidence.
        """
        price = to_decimal(data.get("price"))
        if price is None:
            return None
        if data.get("position_index") is not None:
            position_index = data["position_index"]
        return cls(
            product=RecognizedProduct(
                value=data.get("product", "") or "",
                line=TextLine.from_dict(data.get("product_line")),
            ),
            price=RecognizedPrice(value=price, line=TextLine.from_dict(data.get("price_line"))),
            timestamp=timestamp,
            position_index=int(position_index),
        )


@dataclass
class RecognizedFrame:
    """Everything the parser extracted from one camera frame."""
    timestamp: datetime
    observations: List[Observation] = field(default_factory=list)
    store: Optional[RecognizedStore] = None
    total: Optional[RecognizedTotal] = None
    total_label: Optional[RecognizedTotalLabel] = None
    purchase_date: Optional[RecognizedPurchaseDate] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognizedFrame":
        """Create RecognizedFrame from a parser result dictionary."""
        timestamp = parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc)

        observations = []
        for index, item in enumerate(data.get("positions") or []):
            observation = Observation.from_dict(item, timestamp, index)
            if observation is not None:
                observations.append(observation)

        store = data.get("store")
        total = to_decimal(data.get("total"))
        total_label = data.get("total_label")
        purchase_date = _parse_date(data.get("purchase_date"))

        return cls(
            timestamp=timestamp,
            observations=observations,
            store=RecognizedStore(value=store) if store else None,
            total=RecognizedTotal(value=total) if total is not None else None,
            total_label=RecognizedTotalLabel(value=total_label) if total_label else None,
            purchase_date=(
                RecognizedPurchaseDate(value=purchase_date) if purchase_date is not None else None
            ),
        )


@dataclass
class RecognizedPosition:
    """One consolidated line item as reported to the caller."""
    observation: Observation
    product: str
    price: Decimal
    confidence: int
    stability: int
    trustworthiness: int
    member_count: int
    operation: Operation = Operation.NONE

    @property
    def timestamp(self) -> datetime:
        return self.observation.timestamp

    @property
    def formatted_price(self) -> str:
        return format_amount(self.price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "price": self.formatted_price,
            "confidence": self.confidence,
            "stability": self.stability,
            "trustworthiness": self.trustworthiness,
            "member_count": self.member_count,
            "operation": self.operation.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RecognizedReceipt:
    """Snapshot of the consolidated receipt."""
    positions: List[RecognizedPosition] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    store: Optional[RecognizedStore] = None
    total: Optional[RecognizedTotal] = None
    total_label: Optional[RecognizedTotalLabel] = None
    purchase_date: Optional[RecognizedPurchaseDate] = None
    confirmed: bool = False

    @property
    def calculated_total(self) -> Decimal:
        return sum_amounts(p.price for p in self.positions)

    @property
    def is_valid(self) -> bool:
        """Positions sum to a positive amount equal to the declared total."""
        if self.total is None:
            return False
        calculated = self.calculated_total
        return calculated > 0 and format_amount(calculated) == self.total.formatted_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "positions": [p.to_dict() for p in self.positions],
            "store": self.store.formatted_value if self.store else None,
            "total": self.total.formatted_value if self.total else None,
            "total_label": self.total_label.formatted_value if self.total_label else None,
            "purchase_date": self.purchase_date.formatted_value if self.purchase_date else None,
            "calculated_total": format_amount(self.calculated_total),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "is_valid": self.is_valid,
            "confirmed": self.confirmed,
        }
