"""
Consolidation settings loaded from environment variables.

Every knob has a default and can be overridden per session by constructing a
new ConsolidationSettings (keyword arguments use the field names, environment
variables use the RECEIPT_* aliases).
"""
from datetime import timedelta
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Determine .env file path (backend/.env)
_env_path = Path(__file__).parent.parent / ".env"

# Values already present in the environment take precedence over the file
load_dotenv(dotenv_path=_env_path, override=False)


class ConsolidationSettings(BaseSettings):
    """Tuning knobs for multi-frame receipt consolidation."""

    # Grouping
    similarity_threshold: int = Field(
        default=75,
        alias="RECEIPT_SIMILARITY_THRESHOLD",
        description="Minimum fuzzy score (0-100) for an observation to join an existing group"
    )
    trustworthy_threshold: int = Field(
        default=40,
        alias="RECEIPT_TRUSTWORTHY_THRESHOLD",
        description="Groups whose best member scores below this trustworthiness are pruned"
    )
    max_group_size: int = Field(
        default=20,
        gt=0,
        alias="RECEIPT_MAX_GROUP_SIZE",
        description="Maximum observations retained per group (oldest evicted first)"
    )
    min_scans: int = Field(
        default=3,
        gt=0,
        alias="RECEIPT_MIN_SCANS",
        description="Member count a group needs before trust pruning applies to it"
    )
    invalidate_interval_ms: int = Field(
        default=2000,
        ge=0,
        alias="RECEIPT_INVALIDATE_INTERVAL_MS",
        description="Groups below min_scans whose newest member is older than this are dropped"
    )

    # Scoring
    confidence_threshold: int = Field(
        default=90,
        alias="RECEIPT_CONFIDENCE_THRESHOLD",
        description="Confidence (0-100) a position needs to count towards confirmation (minus 5)"
    )
    stability_threshold: int = Field(
        default=50,
        alias="RECEIPT_STABILITY_THRESHOLD",
        description="Stability (0-100) a position needs to count towards confirmation"
    )
    stability_min_samples: int = Field(
        default=3,
        gt=0,
        alias="RECEIPT_STABILITY_MIN_SAMPLES",
        description="Alternative texts required before stability reports a nonzero value"
    )
    low_noise_stddev: float = Field(
        default=10.0,
        alias="RECEIPT_LOW_NOISE_STDDEV",
        description="Similarity stddev below which product confidence is not penalized"
    )
    link_threshold: int = Field(
        default=90,
        alias="RECEIPT_LINK_THRESHOLD",
        description="Ordering graph only links items whose text ratio is below this score"
    )

    # Validation
    nearly_complete_threshold: int = Field(
        default=95,
        alias="RECEIPT_NEARLY_COMPLETE_THRESHOLD",
        description="Match percentage at/above which a receipt is nearly complete"
    )
    confirmation_quorum: float = Field(
        default=0.8,
        alias="RECEIPT_CONFIRMATION_QUORUM",
        description="Share of positions that must pass on receipts with more than 3 positions"
    )
    total_confirmations: int = Field(
        default=2,
        gt=0,
        alias="RECEIPT_TOTAL_CONFIRMATIONS",
        description="Frames that must report a total before it may replace the latest one"
    )

    # Reconciliation
    outlier_low_confidence: int = Field(
        default=35,
        alias="RECEIPT_OUTLIER_LOW_CONFIDENCE",
        description="Positions at/below this confidence may be dropped to match the total"
    )
    outlier_min_samples: int = Field(
        default=3,
        gt=0,
        alias="RECEIPT_OUTLIER_MIN_SAMPLES",
        description="Positions backed by at most this many observations may be dropped too"
    )
    outlier_max_candidates: int = Field(
        default=12,
        gt=0,
        alias="RECEIPT_OUTLIER_MAX_CANDIDATES",
        description="Removal candidates considered when matching the total"
    )

    # Session
    scan_interval_ms: int = Field(
        default=50,
        ge=0,
        alias="RECEIPT_SCAN_INTERVAL_MS",
        description="Minimum gap between processed frames; faster frames are skipped"
    )
    scan_timeout_ms: int = Field(
        default=20000,
        gt=0,
        alias="RECEIPT_SCAN_TIMEOUT_MS",
        description="Session resets when incomplete for this long"
    )
    session_idle_timeout_ms: int = Field(
        default=600000,
        gt=0,
        alias="RECEIPT_SESSION_IDLE_TIMEOUT_MS",
        description="Registered sessions untouched for this long are closed and removed"
    )

    @field_validator(
        "similarity_threshold",
        "trustworthy_threshold",
        "confidence_threshold",
        "stability_threshold",
        "link_threshold",
        "nearly_complete_threshold",
        "low_noise_stddev",
        "outlier_low_confidence",
    )
    @classmethod
    def check_percentage(cls, v: Any) -> Any:
        """Percent-style thresholds must lie within [0, 100]."""
        if v < 0 or v > 100:
            raise ValueError(f"threshold must be within [0, 100], got {v}")
        return v

    @field_validator("confirmation_quorum")
    @classmethod
    def check_quorum(cls, v: float) -> float:
        """Quorum is a share of positions in (0, 1]."""
        if v <= 0 or v > 1:
            raise ValueError(f"confirmation_quorum must be within (0, 1], got {v}")
        return v

    def with_updates(self, **updates: Any) -> "ConsolidationSettings":
        """
        Copy with some fields replaced, validated like a fresh instance.

        Values are passed under their aliases so they win over environment
        variables of the same name.
        """
        fields = type(self).model_fields
        values = {**self.model_dump(), **updates}
        return type(self)(**{fields[name].alias or name: value for name, value in values.items()})

    @property
    def invalidate_interval(self) -> timedelta:
        return timedelta(milliseconds=self.invalidate_interval_ms)

    @property
    def scan_interval(self) -> timedelta:
        return timedelta(milliseconds=self.scan_interval_ms)

    @property
    def scan_timeout(self) -> timedelta:
        return timedelta(milliseconds=self.scan_timeout_ms)

    @property
    def session_idle_timeout(self) -> timedelta:
        return timedelta(milliseconds=self.session_idle_timeout_ms)

    @property
    def confirmation_min_size(self) -> int:
        """Group size a position needs to count towards confirmation."""
        return max(4, min(8, self.max_group_size // 2))

    model_config = {
        "env_file": str(_env_path),
        "case_sensitive": False,
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }
