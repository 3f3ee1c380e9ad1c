"""newsdesk-chat — multi-session streaming chat client package."""

from newsdesk_chat.chat_models import (
    ChatMessage, ChatViewState, MessageSource, ReplyPayload, Role, SessionSummary,
)
from newsdesk_chat.chat_types import (
    ChatClientError, RenameOutcome, RenameResolution, SessionError, TransportError,
)
from newsdesk_chat.chat_config import ChatClientConfig, ChatErrorMessages
from newsdesk_chat.session_store import (
    CurrentSessionStore, FileCurrentSessionStore, MemoryCurrentSessionStore,
)
from newsdesk_chat.session_registry import SessionRegistry
from newsdesk_chat.conversation_state import ConversationState
from newsdesk_chat.chat_coordinator import ChatCoordinator

__all__ = [
    "ChatCoordinator",
    "ChatClientConfig",
    "ChatErrorMessages",
    "ChatMessage",
    "ChatViewState",
    "MessageSource",
    "ReplyPayload",
    "Role",
    "SessionSummary",
    "ChatClientError",
    "TransportError",
    "SessionError",
    "RenameOutcome",
    "RenameResolution",
    "CurrentSessionStore",
    "MemoryCurrentSessionStore",
    "FileCurrentSessionStore",
    "SessionRegistry",
    "ConversationState",
    "TerminalChatCoordinator",
]


def __getattr__(name: str):
    if name == "TerminalChatCoordinator":
        from newsdesk_chat.terminal_chat import TerminalChatCoordinator
        return TerminalChatCoordinator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
