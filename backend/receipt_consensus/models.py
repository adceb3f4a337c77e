"""
Pydantic models for API request/response schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .processors.core.structures import RecognizedFrame


class PositionRequest(BaseModel):
    """One line item as extracted from a frame."""
    product: str = ""
    price: Union[str, float]
    position_index: Optional[int] = None
    product_line: Optional[Dict[str, Any]] = None
    price_line: Optional[Dict[str, Any]] = None


class FrameRequest(BaseModel):
    """Request model for one parsed camera frame."""
    timestamp: Optional[datetime] = None
    received_at: Optional[datetime] = Field(
        default=None,
        description="Arrival time used for throttling and timeout; defaults to server time"
    )
    positions: List[PositionRequest] = Field(default_factory=list)
    store: Optional[str] = None
    total: Optional[Union[str, float]] = None
    total_label: Optional[str] = None
    purchase_date: Optional[str] = None

    def to_frame(self) -> RecognizedFrame:
        data = self.model_dump(exclude={"received_at"})
        data["positions"] = [p.model_dump(exclude_none=True) for p in self.positions]
        return RecognizedFrame.from_dict(data)

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2024-05-01T10:15:00.250Z",
                "positions": [
                    {"product": "ARLA MILCH 3,8%", "price": "1.99"},
                    {"product": "BIO BANANEN", "price": "2.49"}
                ],
                "store": "REWE",
                "total": "30.82",
                "total_label": "SUMME"
            }
        }


class SettingsRequest(BaseModel):
    """Partial settings update; omitted fields keep their current value."""
    similarity_threshold: Optional[int] = None
    trustworthy_threshold: Optional[int] = None
    max_group_size: Optional[int] = None
    min_scans: Optional[int] = None
    invalidate_interval_ms: Optional[int] = None
    confidence_threshold: Optional[int] = None
    stability_threshold: Optional[int] = None
    stability_min_samples: Optional[int] = None
    low_noise_stddev: Optional[float] = None
    link_threshold: Optional[int] = None
    nearly_complete_threshold: Optional[int] = None
    confirmation_quorum: Optional[float] = None
    total_confirmations: Optional[int] = None
    outlier_low_confidence: Optional[int] = None
    outlier_min_samples: Optional[int] = None
    outlier_max_candidates: Optional[int] = None
    scan_interval_ms: Optional[int] = None
    scan_timeout_ms: Optional[int] = None
    session_idle_timeout_ms: Optional[int] = None


class SessionCreateRequest(BaseModel):
    """Request model for creating a scan session."""
    settings: Optional[SettingsRequest] = None


class SessionResponse(BaseModel):
    """Response model for a scan session."""
    session_id: str
    settings: Dict[str, Any]


class ScanResultResponse(BaseModel):
    """Response model for a processed frame."""
    event: str
    receipt: Dict[str, Any]
    progress: Optional[Dict[str, Any]] = None


class ReceiptResponse(BaseModel):
    """Response model for an accepted receipt."""
    session_id: str
    receipt: Dict[str, Any]
