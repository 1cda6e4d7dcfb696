"""In-process store of live wizard sessions."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from app.config import settings
from app.utils.exceptions import NotFoundError
from app.wizard.state import WizardSession

logger = logging.getLogger(__name__)


class WizardSessionStore:
    """
    Volatile map of session id to session. Lost on restart.

    Sessions idle for longer than `ttl` are evicted on the next create or
    get, so abandoned and finished runs do not pile up.
    """

    def __init__(self, ttl: Optional[timedelta] = None) -> None:
        self._sessions: Dict[str, WizardSession] = {}
        self._lock = threading.Lock()
        self.ttl = ttl or timedelta(minutes=settings.wizard_session_ttl_minutes)

    def create(
        self,
        user_id: str,
        *,
        limit_reached: bool = False,
        initial_ingredients: Optional[List[str]] = None,
    ) -> WizardSession:
        session = WizardSession.start(
            user_id, limit_reached=limit_reached, initial_ingredients=initial_ingredients
        )
        with self._lock:
            self._evict_expired(session.created_at)
            self._sessions[session.id] = session
        logger.info("Wizard session %s started (limit_reached=%s)", session.id, limit_reached)
        return session

    def get(self, session_id: str, user_id: str) -> WizardSession:
        """Look up a session owned by user_id; other users' sessions are reported as missing."""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._evict_expired(now)
            session = self._sessions.get(session_id)
            if session is not None and session.user_id == user_id:
                session.last_active_at = now
        if session is None or session.user_id != user_id:
            raise NotFoundError(f"Wizard session {session_id} not found")
        return session

    def delete(self, session_id: str, user_id: str) -> None:
        self.get(session_id, user_id)
        with self._lock:
            self._sessions.pop(session_id, None)

    def discard(self, session_id: str) -> None:
        """Drop a finished session; unknown ids are ignored."""
        with self._lock:
            self._sessions.pop(session_id, None)

    def _evict_expired(self, now: datetime) -> None:
        # caller holds the lock
        expired = [sid for sid, s in self._sessions.items() if now - s.last_active_at > self.ttl]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Evicted %d idle wizard sessions", len(expired))

    def __len__(self) -> int:
        return len(self._sessions)


session_store = WizardSessionStore()
