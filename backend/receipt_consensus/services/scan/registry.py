"""
Session Registry: several concurrent scan sessions, keyed by id.
"""
import logging
import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Tuple

from ...config import ConsolidationSettings
from .session import ScanSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Thread-safe map of session id to ScanSession.

    Every lookup marks the session as used; sweep_idle() closes sessions
    that nobody touched for their session_idle_timeout.
    """

    def __init__(self):
        self._sessions: Dict[str, ScanSession] = {}
        self._last_used: Dict[str, datetime] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def create(
        self,
        settings: Optional[ConsolidationSettings] = None,
        now: Optional[datetime] = None,
        **callbacks,
    ) -> Tuple[str, ScanSession]:
        """
        Create and register a new session.

        Args:
            settings: Tuning for the session (defaults from the environment)
            now: Creation time, counts as first use (defaults to UTC now)
            **callbacks: on_scan_update / on_scan_complete / on_scan_timeout

        Returns:
            (session_id, session)
        """
        session_id = uuid.uuid4().hex
        session = ScanSession(settings=settings, **callbacks)
        with self._lock:
            self._sessions[session_id] = session
            self._last_used[session_id] = now or datetime.now(timezone.utc)
        logger.info(f"Created scan session {session_id}")
        return session_id, session

    def get(self, session_id: str, now: Optional[datetime] = None) -> ScanSession:
        """Raises KeyError for unknown ids."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_used[session_id] = now or datetime.now(timezone.utc)
        if session is None:
            raise KeyError(session_id)
        return session

    def remove(self, session_id: str) -> bool:
        """Close and unregister a session. Returns False if it was unknown."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._last_used.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Removed scan session {session_id}")
        return True

    def sweep_idle(self, now: Optional[datetime] = None) -> List[str]:
        """
        Close and unregister sessions idle for longer than their timeout.

        Returns:
            Ids of the removed sessions
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if now - self._last_used[session_id] > session.settings.session_idle_timeout
            ]
            sessions = [self._sessions.pop(session_id) for session_id in expired]
            for session_id in expired:
                self._last_used.pop(session_id, None)
        for session_id, session in zip(expired, sessions):
            session.close()
            logger.warning(f"Closed idle scan session {session_id}")
        return expired

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._last_used.clear()
        for session in sessions:
            session.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} scan sessions")
