"""Client-local persistence of the current session id.

CurrentSessionStore — abstract load/save/clear contract
MemoryCurrentSessionStore — process-local value (tests, embedded views)
FileCurrentSessionStore — JSON file that survives restarts
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CURRENT_SESSION_KEY = "currentSessionId"


class CurrentSessionStore(ABC):
    """Holds the id of the last active session. Implementations never raise."""

    @abstractmethod
    def load(self) -> Optional[str]:
        """Return the persisted session id, or None."""
        raise NotImplementedError("Subclasses must implement load")

    @abstractmethod
    def save(self, session_id: str) -> None:
        """Persist the given session id."""
        raise NotImplementedError("Subclasses must implement save")

    @abstractmethod
    def clear(self) -> None:
        """Forget the persisted session id."""
        raise NotImplementedError("Subclasses must implement clear")


class MemoryCurrentSessionStore(CurrentSessionStore):
    """Session id kept in memory only."""

    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id

    def load(self) -> Optional[str]:
        return self._session_id

    def save(self, session_id: str) -> None:
        self._session_id = session_id

    def clear(self) -> None:
        self._session_id = None


class FileCurrentSessionStore(CurrentSessionStore):
    """Session id stored in a small JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[STORE] Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            logger.warning(f"[STORE] Could not write {self.path}: {e}")

    def load(self) -> Optional[str]:
        value = self._read().get(CURRENT_SESSION_KEY)
        return str(value) if value else None

    def save(self, session_id: str) -> None:
        data = self._read()
        data[CURRENT_SESSION_KEY] = session_id
        self._write(data)
        logger.debug(f"[STORE] Saved current session {session_id}")

    def clear(self) -> None:
        data = self._read()
        if data.pop(CURRENT_SESSION_KEY, None) is not None:
            self._write(data)
            logger.debug("[STORE] Cleared current session")
