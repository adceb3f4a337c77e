"""
Scan Session: drive the consolidation store frame by frame.

A session throttles incoming frames, applies them to its own
ConsolidationStore, reconciles the snapshot with its total, validates it and
reports one of:
- COMPLETE: the receipt adds up to its total and is confirmed
- PROGRESS: still scanning; added/updated positions and match percentage
- TIMEOUT: incomplete for longer than scan_timeout, session was reset
- THROTTLED: frame arrived too soon after the previous one and was skipped
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ...config import ConsolidationSettings
from ...processors.consolidation.store import ConsolidationStore
from ...processors.core.structures import (
    Operation,
    RecognizedFrame,
    RecognizedPosition,
    RecognizedReceipt,
    parse_timestamp,
)
from ...processors.validation.receipt_validator import (
    ReceiptValidationResult,
    validate_receipt,
)
from ...processors.validation.reconciler import reconcile_to_total

logger = logging.getLogger(__name__)


class ScanEvent(Enum):
    THROTTLED = "throttled"
    PROGRESS = "progress"
    COMPLETE = "complete"
    TIMEOUT = "timeout"


@dataclass
class ScanProgress:
    """Intermediate state reported after every processed frame."""
    positions: List[RecognizedPosition] = field(default_factory=list)
    added_positions: List[RecognizedPosition] = field(default_factory=list)
    updated_positions: List[RecognizedPosition] = field(default_factory=list)
    validation: Optional[ReceiptValidationResult] = None
    estimated_percentage: int = 0
    merged_receipt: Optional[RecognizedReceipt] = None

    @classmethod
    def from_receipt(
        cls, receipt: RecognizedReceipt, validation: ReceiptValidationResult
    ) -> "ScanProgress":
        changed = [p for p in receipt.positions if p.operation != Operation.NONE]
        return cls(
            positions=changed,
            added_positions=[p for p in changed if p.operation == Operation.ADDED],
            updated_positions=[p for p in changed if p.operation == Operation.UPDATED],
            validation=validation,
            estimated_percentage=validation.match_percentage,
            merged_receipt=receipt,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added_positions": [p.to_dict() for p in self.added_positions],
            "updated_positions": [p.to_dict() for p in self.updated_positions],
            "validation": self.validation.to_dict() if self.validation else None,
            "estimated_percentage": self.estimated_percentage,
        }


@dataclass
class ScanResult:
    """Outcome of one call into the session."""
    event: ScanEvent
    receipt: RecognizedReceipt
    progress: Optional[ScanProgress] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.value,
            "receipt": self.receipt.to_dict(),
            "progress": self.progress.to_dict() if self.progress else None,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _arrival_time(now: Optional[datetime]) -> datetime:
    """Arrival time as an aware datetime; naive values are taken as UTC."""
    return parse_timestamp(now) or _utcnow()


class ScanSession:
    """
    One scanning attempt of one receipt.

    Frames are applied one at a time under a lock, so a session can be shared
    between request handlers. Callbacks run on the calling thread while the
    lock is held; they may call back into the session.
    """

    def __init__(
        self,
        settings: Optional[ConsolidationSettings] = None,
        on_scan_update: Optional[Callable[[ScanProgress], None]] = None,
        on_scan_complete: Optional[Callable[[RecognizedReceipt], None]] = None,
        on_scan_timeout: Optional[Callable[[RecognizedReceipt], None]] = None,
    ):
        self.settings = settings or ConsolidationSettings()
        self.store = ConsolidationStore(self.settings)
        self.on_scan_update = on_scan_update
        self.on_scan_complete = on_scan_complete
        self.on_scan_timeout = on_scan_timeout

        self._lock = threading.RLock()
        self._closed = False
        self._last_scan: Optional[datetime] = None
        self._first_incomplete: Optional[datetime] = None
        self._last_receipt = RecognizedReceipt()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_receipt(self) -> RecognizedReceipt:
        return self._last_receipt

    def process_frame(self, frame: RecognizedFrame, now: Optional[datetime] = None) -> ScanResult:
        """
        Apply one parsed frame.

        Args:
            frame: Parsed frame
            now: Arrival time used for throttling and timeout (defaults to
                the current UTC time; naive values are taken as UTC)

        Returns:
            ScanResult with the event and the receipt it refers to
        """
        now = _arrival_time(now)
        with self._lock:
            if self._closed:
                raise RuntimeError("Scan session is closed")

            if self._last_scan is not None and now - self._last_scan < self.settings.scan_interval:
                logger.debug(f"Throttled frame {frame.timestamp.isoformat()}")
                return ScanResult(ScanEvent.THROTTLED, self._last_receipt)
            self._last_scan = now

            if self.store.timestamp is not None and frame.timestamp < self.store.timestamp:
                logger.warning(
                    f"Out-of-order frame {frame.timestamp.isoformat()} "
                    f"(last {self.store.timestamp.isoformat()})"
                )

            self.store.apply(frame)
            receipt = self._reconciled(self.store.snapshot())
            validation = validate_receipt(receipt, self.settings)
            progress = ScanProgress.from_receipt(receipt, validation)

            if self.on_scan_update:
                self.on_scan_update(progress)

            if receipt.is_valid and receipt.confirmed:
                return self._complete(progress)

            self._last_receipt = receipt
            if self._first_incomplete is None:
                self._first_incomplete = now
            if now - self._first_incomplete >= self.settings.scan_timeout:
                return self._expire()

            return ScanResult(ScanEvent.PROGRESS, receipt, progress)

    def _reconciled(self, receipt: RecognizedReceipt) -> RecognizedReceipt:
        return reconcile_to_total(receipt, self.settings).receipt

    def _complete(self, progress: ScanProgress) -> ScanResult:
        final = self._reconciled(self.store.snapshot(normalize=True))
        logger.info(
            f"Receipt complete: {len(final.positions)} positions, "
            f"total {final.total.formatted_value if final.total else None}"
        )
        self._reinit()
        self._last_receipt = final
        if self.on_scan_complete:
            self.on_scan_complete(final)
        return ScanResult(ScanEvent.COMPLETE, final, progress)

    def _expire(self) -> ScanResult:
        receipt = self._last_receipt
        logger.warning(
            f"Scan timed out after {self.settings.scan_timeout_ms} ms "
            f"with {len(receipt.positions)} positions"
        )
        self._reinit()
        if self.on_scan_timeout:
            self.on_scan_timeout(receipt)
        return ScanResult(ScanEvent.TIMEOUT, receipt)

    def check_timeout(self, now: Optional[datetime] = None) -> Optional[ScanResult]:
        """
        Enforce the timeout without a new frame.

        Returns:
            TIMEOUT result if the session expired, None otherwise
        """
        now = _arrival_time(now)
        with self._lock:
            if self._closed or self._first_incomplete is None:
                return None
            if now - self._first_incomplete >= self.settings.scan_timeout:
                return self._expire()
            return None

    def snapshot(self) -> RecognizedReceipt:
        with self._lock:
            return self._reconciled(self.store.snapshot())

    def accept(self) -> RecognizedReceipt:
        """Accept the current consolidated receipt as is and start over."""
        with self._lock:
            receipt = self._reconciled(self.store.snapshot(normalize=True))
            logger.info(f"Receipt accepted manually with {len(receipt.positions)} positions")
            self._reinit()
            return receipt

    def reset(self) -> None:
        with self._lock:
            logger.info("Scan session reset")
            self._reinit()

    def update_settings(self, settings: ConsolidationSettings) -> None:
        """Swap tuning knobs; groups and timestamps are kept."""
        with self._lock:
            self.settings = settings
            self.store.update_settings(settings)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._reinit()
            self._closed = True
            logger.info("Scan session closed")

    def _reinit(self) -> None:
        self.store.reset()
        self._last_scan = None
        self._first_incomplete = None
        self._last_receipt = RecognizedReceipt()
