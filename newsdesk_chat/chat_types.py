from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ChatClientError(Exception):
    """Base class for all newsdesk-chat errors."""


class TransportError(ChatClientError):
    """Raised when the push channel is unusable or a request is rejected."""
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class SessionError(ChatClientError):
    """Raised when a session operation fails after reaching the backend."""
    def __init__(self, message: str, operation: str):
        self.operation = operation
        super().__init__(message)


class RenameOutcome(str, Enum):
    """How a rename over the push channel was resolved."""
    ACKNOWLEDGED = "acknowledged"
    SESSION_ECHOED = "session_echoed"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RenameResolution:
    """Result of a rename call. ``title`` is the title to apply locally."""
    outcome: RenameOutcome
    title: Optional[str] = None
    error: Any = None

    @property
    def succeeded(self) -> bool:
        return self.outcome != RenameOutcome.ERRORED
