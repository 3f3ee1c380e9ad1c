"""Conversation snapshot for the active session and the per-send reply buffer."""

import logging
from typing import Any, Iterable, Optional, Tuple

from newsdesk_chat.chat_models import ChatMessage, Role

logger = logging.getLogger(__name__)


class ConversationState:
    """Messages and transient flags of exactly one session.

    The coordinator replaces the whole object when the active session changes.
    Messages are append-only; only a streaming placeholder is edited in place,
    and every edit swaps in a new tuple.
    """

    def __init__(self, session_id: Optional[str] = None, messages: Iterable[ChatMessage] = ()):
        self.session_id = session_id
        self._messages: Tuple[ChatMessage, ...] = tuple(messages)
        self.is_loading = False
        self.is_streaming = False

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self._messages

    @property
    def is_busy(self) -> bool:
        """True while a reply is in flight; views disable sending then."""
        return self.is_loading or self.is_streaming

    def append(self, message: ChatMessage) -> ChatMessage:
        self._messages = self._messages + (message,)
        return message

    def replace_messages(self, messages: Iterable[ChatMessage]) -> None:
        self._messages = tuple(messages)

    def get_message(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self._messages if m.id == message_id), None)

    def update_message(self, message_id: str, **changes: Any) -> Optional[ChatMessage]:
        """Replace one message with an updated copy. Returns None if it no longer exists."""
        updated = None
        result = []
        for message in self._messages:
            if message.id == message_id:
                updated = message.model_copy(update=changes)
                result.append(updated)
            else:
                result.append(message)
        if updated is not None:
            self._messages = tuple(result)
        return updated

    def set_flags(self, *, loading: bool, streaming: bool) -> None:
        self.is_loading = loading
        self.is_streaming = streaming


class StreamingReply:
    """Accumulation buffer for one assistant reply, owned by the send that created it."""

    def __init__(self, session_id: str, placeholder: ChatMessage):
        self.session_id = session_id
        self.message_id = placeholder.id
        self.buffer = ""

    def add_chunk(self, chunk: str) -> str:
        """Append a fragment and return the full text so far."""
        self.buffer += chunk
        return self.buffer


def new_placeholder() -> ChatMessage:
    """Empty assistant message that receives streamed text."""
    return ChatMessage(role=Role.ASSISTANT, content="", is_streaming=True)
