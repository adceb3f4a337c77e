"""
Frame Channel: feed a scan session from a background thread.

The producer submits raw frame payloads. An optional parser runs on a thread
pool so heavy extraction does not block the producer, but a single consumer
thread hands the parsed frames to the session strictly in submission order.
"""
import logging
import queue
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Deque, Optional

from ...processors.core.structures import RecognizedFrame
from .session import ScanResult, ScanSession

logger = logging.getLogger(__name__)

_STOP = object()


class FrameChannel:
    """
    Bounded single-producer/single-consumer channel in front of a session.

    While idle the consumer lets the session enforce its timeout. Errors in
    the parser, the session or the result callback are logged and the
    consumer keeps running.
    """

    def __init__(
        self,
        session: ScanSession,
        parser: Optional[Callable[[Any], RecognizedFrame]] = None,
        capacity: int = 8,
        parser_workers: int = 2,
        idle_interval: float = 0.1,
        on_result: Optional[Callable[[ScanResult], None]] = None,
        keep_results: int = 32,
    ):
        """
        Args:
            session: Session receiving the frames
            parser: Turns a raw payload into a RecognizedFrame; payloads are
                expected to be frames already when omitted
            capacity: Maximum frames waiting for the consumer
            parser_workers: Threads available to the parser
            idle_interval: Seconds between timeout checks while idle
            on_result: Called with every ScanResult on the consumer thread
            keep_results: How many recent results `results` retains
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.session = session
        self.parser = parser
        self.idle_interval = idle_interval
        self.on_result = on_result
        self.results: Deque[ScanResult] = deque(maxlen=keep_results)

        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._executor = (
            ThreadPoolExecutor(max_workers=parser_workers, thread_name_prefix="frame-parser")
            if parser else None
        )
        self._closed = False
        self._worker = threading.Thread(target=self._run, name="frame-channel", daemon=True)
        self._worker.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(
        self,
        payload: Any,
        now: Optional[datetime] = None,
        block: bool = True,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue a frame payload.

        Args:
            payload: Raw payload for the parser, or a RecognizedFrame
            now: Arrival time forwarded to the session
            block: Wait for room when the channel is full
            timeout: Maximum seconds to wait when blocking

        Returns:
            True if queued, False if the channel stayed full

        Raises:
            RuntimeError: If the channel is closed
        """
        if self._closed:
            raise RuntimeError("Frame channel is closed")
        if not block and self._queue.full():
            logger.warning("Frame channel full, dropping frame")
            return False

        if self._executor is not None:
            item: Future = self._executor.submit(self.parser, payload)
        else:
            item = Future()
            item.set_result(payload)

        try:
            self._queue.put((item, now), block=block, timeout=timeout)
        except queue.Full:
            item.cancel()
            logger.warning("Frame channel full, dropping frame")
            return False
        return True

    def join(self) -> None:
        """Block until every queued frame has been delivered."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            try:
                entry = self._queue.get(timeout=self.idle_interval)
            except queue.Empty:
                try:
                    result = self.session.check_timeout()
                except Exception as e:
                    logger.error(f"Idle timeout check failed: {e}", exc_info=True)
                    continue
                if result is not None:
                    self._record(result)
                continue

            try:
                if entry is _STOP:
                    return
                self._deliver(*entry)
            finally:
                self._queue.task_done()

    def _deliver(self, item: Future, now: Optional[datetime]) -> None:
        try:
            frame = item.result()
        except Exception as e:
            logger.error(f"Frame parser failed, dropping frame: {e}")
            return
        if frame is None:
            return

        try:
            result = self.session.process_frame(frame, now)
        except Exception as e:
            logger.error(f"Failed to process frame: {e}", exc_info=True)
            return
        self._record(result)

    def _record(self, result: ScanResult) -> None:
        self.results.append(result)
        if not self.on_result:
            return
        try:
            self.on_result(result)
        except Exception as e:
            logger.error(f"Result callback failed: {e}", exc_info=True)

    def close(self) -> None:
        """Deliver what is queued, stop the consumer and close the session."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._worker.join()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.session.close()

    def __enter__(self) -> "FrameChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
