"""Ordered, copy-on-write collection of session summaries plus the active id."""

import logging
from typing import Any, Iterable, Optional, Tuple

from newsdesk_chat.chat_models import SessionSummary
from newsdesk_chat.session_store import CurrentSessionStore, MemoryCurrentSessionStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Session summaries ordered by recency, ids unique, at most one active.

    Every mutation swaps in a new tuple, so a reader holding ``sessions``
    never sees a half-applied change. The active id is written through to the
    ``CurrentSessionStore``.
    """

    def __init__(self, store: Optional[CurrentSessionStore] = None):
        self.store = store or MemoryCurrentSessionStore()
        self._sessions: Tuple[SessionSummary, ...] = ()
        self._active_id: Optional[str] = None

    @property
    def sessions(self) -> Tuple[SessionSummary, ...]:
        return self._sessions

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def get(self, session_id: str) -> Optional[SessionSummary]:
        return next((s for s in self._sessions if s.id == session_id), None)

    def replace_all(self, sessions: Iterable[SessionSummary]) -> None:
        """Replace the whole list, dropping later duplicates of an id."""
        seen = set()
        unique = []
        for session in sessions:
            if session.id in seen:
                continue
            seen.add(session.id)
            unique.append(session)
        self._sessions = tuple(unique)
        logger.debug(f"[REGISTRY] Loaded {len(unique)} sessions")

    def prepend(self, session: SessionSummary) -> None:
        """Insert a session at the front (most recent)."""
        rest = tuple(s for s in self._sessions if s.id != session.id)
        self._sessions = (session,) + rest
        logger.info(f"[REGISTRY] Added session {session.id}")

    def update(self, session_id: str, **changes: Any) -> Optional[SessionSummary]:
        """Apply field changes to one session. Returns the new summary, or None if unknown."""
        updated = None
        result = []
        for session in self._sessions:
            if session.id == session_id:
                updated = session.model_copy(update=changes)
                result.append(updated)
            else:
                result.append(session)
        if updated is not None:
            self._sessions = tuple(result)
        return updated

    def remove(self, session_id: str) -> Optional[SessionSummary]:
        """Drop a session. Removing the active one clears the active id."""
        removed = self.get(session_id)
        self._sessions = tuple(s for s in self._sessions if s.id != session_id)
        if session_id == self._active_id:
            self.set_active(None)
        if removed:
            logger.info(f"[REGISTRY] Removed session {session_id}")
        return removed

    def set_active(self, session_id: Optional[str]) -> None:
        self._active_id = session_id
        if session_id:
            self.store.save(session_id)
        else:
            self.store.clear()

    def restore_active_id(self) -> Optional[str]:
        """Persisted id of the last active session, if any."""
        return self.store.load()
