"""Pydantic config model for the newsdesk chat client.

ChatClientConfig — backend location, socket options, timing windows and the
user-facing error strings. ``from_env()`` builds one from ``NEWSDESK_*``
environment variables; entry points load ``.env`` before calling it.
"""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class ChatErrorMessages(BaseModel):
    """User-facing strings written to the coordinator's error slot."""
    apology: str = "Sorry, I encountered an error. Please try again."
    send_failed: str = "Failed to send message. Please try again."
    create_failed: str = "Failed to create new session"
    rename_failed: str = "Failed to update session title"
    delete_failed: str = "Failed to delete session"
    history_failed: str = "Failed to load session messages"


class ChatClientConfig(BaseModel):
    """Client configuration shared by both transports and the coordinator."""
    base_url: str = "http://localhost:3000"
    socket_path: str = "socket.io"
    socket_transports: List[str] = Field(default_factory=lambda: ["websocket", "polling"])
    connect_timeout: float = 20.0
    reconnection_attempts: int = 5
    reconnection_delay: float = 1.0
    request_timeout: float = 60.0
    rename_ack_timeout: float = Field(default=3.0, description="Seconds to wait for a rename acknowledgment")
    title_refresh_delay: float = Field(default=1.0, description="Delay before re-listing sessions after a reply")
    default_session_title: str = "New Chat"
    state_file: Optional[Path] = None
    messages: ChatErrorMessages = Field(default_factory=ChatErrorMessages)

    @classmethod
    def from_env(cls) -> "ChatClientConfig":
        """Build a config from ``NEWSDESK_*`` environment variables, falling back to defaults."""
        values = {}
        env_map = {
            "NEWSDESK_API_BASE_URL": "base_url",
            "NEWSDESK_SOCKET_PATH": "socket_path",
            "NEWSDESK_CONNECT_TIMEOUT": "connect_timeout",
            "NEWSDESK_RECONNECTION_ATTEMPTS": "reconnection_attempts",
            "NEWSDESK_REQUEST_TIMEOUT": "request_timeout",
            "NEWSDESK_RENAME_ACK_TIMEOUT": "rename_ack_timeout",
            "NEWSDESK_TITLE_REFRESH_DELAY": "title_refresh_delay",
            "NEWSDESK_STATE_FILE": "state_file",
        }
        for env_name, field_name in env_map.items():
            value = os.environ.get(env_name)
            if value:
                values[field_name] = value
        transports = os.environ.get("NEWSDESK_SOCKET_TRANSPORTS")
        if transports:
            values["socket_transports"] = [t.strip() for t in transports.split(",") if t.strip()]
        return cls(**values)

    def resolved_state_file(self) -> Path:
        """Location of the persisted current-session file."""
        return self.state_file or Path.home() / ".newsdesk-chat" / "state.json"
