"""
Conversation session tracking.

The session id names the backend's accumulated conversation context. It is
separate from the bearer credential, rides on every request as X-Session-Id,
and is rotated (never just erased) when the user clears their history.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from clau_insights.errors import ClauError, SessionError
from clau_insights.models.session import SessionState
from clau_insights.store import PersistentStore
from clau_insights.transport.http import HttpClient

logger = logging.getLogger(__name__)

SESSION_KEY = "session"
SESSION_STATUS_PATH = "/auth/session-status"
SESSION_PATH = "/insights/session"


class SessionManager:
    def __init__(self, http: HttpClient, store: PersistentStore, user_id: Optional[str] = None):
        self._http = http
        self._store = store
        self._user_id = user_id
        self._state = SessionState(user_id=user_id)
        self._listeners: list[Callable[[Optional[str], str], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def current(self) -> Optional[str]:
        return self._state.session_id

    def add_rotation_listener(self, listener: Callable[[Optional[str], str], None]) -> Callable[[], None]:
        """Register ``listener(old_id, new_id)`` for rotations. Returns a cleanup function."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def adopt(self, session_id: str) -> None:
        """Use ``session_id`` for all following requests. Idempotent, last write wins."""
        if session_id == self._state.session_id:
            return
        self._state = SessionState(session_id=session_id, user_id=self._user_id)
        self._http.set_session_id(session_id)
        self._store.set(SESSION_KEY, self._state.model_dump(mode="json", by_alias=True))
        logger.info(f"Adopted session {session_id}")

    def adopt_if_unset(self, session_id: str) -> None:
        """Hook for server-assigned ids; never overrides a session we already hold."""
        if self._state.session_id is None:
            self.adopt(session_id)

    def _discard(self) -> None:
        self._state = SessionState(user_id=self._user_id)
        self._http.set_session_id(None)
        self._store.remove(SESSION_KEY)

    def _load(self) -> Optional[SessionState]:
        raw = self._store.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return SessionState.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable persisted session: {e}")
            self._store.remove(SESSION_KEY)
            return None

    async def restore(self) -> Optional[str]:
        """Reload the persisted session, trust it, then check it with the backend.

        A session the backend no longer knows is dropped silently. If the check
        itself fails the restored id is kept.
        """
        saved = self._load()
        if saved is None or not saved.session_id:
            return None
        if self._user_id and saved.user_id and saved.user_id != self._user_id:
            logger.warning("Persisted session belongs to another user; discarding")
            self._discard()
            return None

        self._state = SessionState(session_id=saved.session_id, user_id=self._user_id, created_at=saved.created_at)
        self._http.set_session_id(saved.session_id)
        logger.info(f"Restored session {saved.session_id}")

        try:
            result = await self._http.get(SESSION_STATUS_PATH)
        except ClauError as e:
            logger.warning(f"Could not verify restored session: {e}")
            return self.current()
        if not (isinstance(result, dict) and result.get("hasSession")):
            logger.info(f"Backend has no session {saved.session_id}; continuing without one")
            self._discard()
        return self.current()

    async def _rotate(self, old_id: Optional[str]) -> str:
        result = await self._http.delete(SESSION_PATH, {"sessionId": old_id})
        new_id = result.get("sessionId") if isinstance(result, dict) else None
        if not new_id:
            raise SessionError("Session clear returned no new session id", code="no_session_id")
        return new_id

    async def clear(self) -> bool:
        """Drop the backend conversation context and adopt the new session id it returns.

        Returns False (and keeps the current id) if the backend call fails.
        """
        old_id = self.current()
        try:
            new_id = await self._rotate(old_id)
        except ClauError as e:
            logger.warning(f"Failed to clear session {old_id}: {e}")
            return False
        self.adopt(new_id)
        logger.info(f"Rotated session {old_id} -> {new_id}")
        for listener in list(self._listeners):
            listener(old_id, new_id)
        return True
