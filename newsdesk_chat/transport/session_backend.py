"""Session operations behind one interface, implemented once per transport.

SessionBackend — create / rename / delete / send contract
PushSessionBackend — Socket.IO event protocol, per-call listeners
RequestSessionBackend — plain HTTP calls, no streaming
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_models import ReplyPayload, SessionSummary
from newsdesk_chat.chat_types import RenameOutcome, RenameResolution, SessionError, TransportError
from newsdesk_chat.transport.http_client import HttpChatClient
from newsdesk_chat.transport.socket_channel import SocketChannel

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]
# returns a result to resolve the call, None to keep waiting, or raises to fail it
EventMatcher = Callable[[Any], Any]


def error_detail(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data) if data else "unknown error"


def summary_from_created(data: Any, default_title: str) -> SessionSummary:
    """Build a registry entry from a create-session answer."""
    if not isinstance(data, dict):
        raise SessionError(f"Unexpected create-session answer: {data!r}", "create")
    nested = data.get("session") if isinstance(data.get("session"), dict) else {}
    session_id = data.get("sessionId") or data.get("id") or nested.get("id")
    if not session_id:
        raise SessionError("Create-session answer carries no session id", "create")
    stamp = data.get("timestamp") or nested.get("createdAt") or datetime.now()
    return SessionSummary(
        id=session_id,
        title=data.get("title") or nested.get("title") or default_title,
        created_at=stamp,
        last_activity=stamp,
        message_count=0,
    )


class SessionBackend(ABC):
    """Transport-specific implementation of the mutating session operations."""

    name: str = "base"

    @abstractmethod
    async def create_session(self, title: Optional[str]) -> SessionSummary:
        """Create a session and return its summary."""
        raise NotImplementedError("Subclasses must implement create_session")

    @abstractmethod
    async def rename_session(self, session_id: str, title: str) -> RenameResolution:
        """Rename a session; the resolution says which title to apply."""
        raise NotImplementedError("Subclasses must implement rename_session")

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a session. Returns once the backend confirmed."""
        raise NotImplementedError("Subclasses must implement delete_session")

    @abstractmethod
    async def send_message(self, session_id: str, message: str, on_chunk: ChunkCallback) -> ReplyPayload:
        """Send a user message. ``on_chunk`` gets reply fragments if the transport streams."""
        raise NotImplementedError("Subclasses must implement send_message")


class PushSessionBackend(SessionBackend):
    """Session operations as request-event / answer-event exchanges.

    Every call installs its own listeners and removes them on every exit path,
    so a slow answer can never resolve a later call.
    """

    name = "push"

    def __init__(self, channel: SocketChannel, config: ChatClientConfig):
        self.channel = channel
        self.config = config

    async def _exchange(self, event: str, payload: Any, matchers: Dict[str, EventMatcher], *,
                        timeout: Optional[float] = None, fail_on_disconnect: bool = True) -> Any:
        """Emit ``event`` and resolve with the first matcher that returns a result."""
        future = asyncio.get_running_loop().create_future()
        installed = []

        def make_listener(matcher: EventMatcher):
            def listener(data):
                if future.done():
                    return
                try:
                    result = matcher(data)
                except Exception as e:
                    future.set_exception(e)
                    return
                if result is not None:
                    future.set_result(result)
            return listener

        def on_status(connected: bool) -> None:
            if not connected and not future.done():
                future.set_exception(TransportError(f"Push channel disconnected during '{event}'"))

        for answer_event, matcher in matchers.items():
            listener = make_listener(matcher)
            self.channel.on(answer_event, listener)
            installed.append((answer_event, listener))
        if fail_on_disconnect:
            self.channel.add_status_listener(on_status)
        try:
            await self.channel.emit(event, payload)
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        finally:
            for answer_event, listener in installed:
                self.channel.off(answer_event, listener)
            if fail_on_disconnect:
                self.channel.remove_status_listener(on_status)

    async def create_session(self, title: Optional[str]) -> SessionSummary:
        def created(data):
            return summary_from_created(data, self.config.default_session_title)

        def failed(data):
            raise SessionError(error_detail(data), "create")

        return await self._exchange("create-session", {"title": title}, {
            "session-created": created,
            "session-error": failed,
        })

    async def rename_session(self, session_id: str, title: str) -> RenameResolution:
        def title_updated(data):
            if isinstance(data, dict) and data.get("sessionId") == session_id:
                return RenameResolution(RenameOutcome.ACKNOWLEDGED, title)
            return None

        def session_updated(data):
            session = data.get("session") if isinstance(data, dict) else None
            if isinstance(session, dict) and session.get("id") == session_id:
                return RenameResolution(RenameOutcome.SESSION_ECHOED, session.get("title") or title)
            return None

        def failed(data):
            return RenameResolution(RenameOutcome.ERRORED, error=error_detail(data))

        try:
            return await self._exchange(
                "update-session-title",
                {"sessionId": session_id, "title": title},
                {
                    "session-title-updated": title_updated,
                    "session-updated": session_updated,
                    "session-error": failed,
                },
                timeout=self.config.rename_ack_timeout,
                fail_on_disconnect=False,
            )
        except asyncio.TimeoutError:
            logger.info(f"[RENAME] No acknowledgment for {session_id} within "
                        f"{self.config.rename_ack_timeout}s, applying title locally")
            return RenameResolution(RenameOutcome.TIMED_OUT, title)

    async def delete_session(self, session_id: str) -> None:
        def deleted(data):
            if isinstance(data, dict) and data.get("sessionId") == session_id:
                return True
            return None

        def failed(data):
            raise SessionError(error_detail(data), "delete")

        await self._exchange("delete-session", {"sessionId": session_id}, {
            "session-deleted": deleted,
            "session-error": failed,
        })

    async def send_message(self, session_id: str, message: str, on_chunk: ChunkCallback) -> ReplyPayload:
        def for_this_session(data) -> bool:
            other = data.get("sessionId") if isinstance(data, dict) else None
            return not other or other == session_id

        def chunk(data):
            if for_this_session(data) and isinstance(data, dict) and data.get("chunk"):
                on_chunk(data["chunk"])
            return None

        def complete(data):
            if not for_this_session(data):
                return None
            return ReplyPayload.model_validate(data if isinstance(data, dict) else {})

        def failed(data):
            if not for_this_session(data):
                return None
            raise SessionError(error_detail(data), "send")

        logger.debug(f"[STREAM] Sending message to {session_id} over push channel")
        return await self._exchange("send-message", {"sessionId": session_id, "message": message}, {
            "stream-chunk": chunk,
            "stream-complete": complete,
            "stream-error": failed,
        })


class RequestSessionBackend(SessionBackend):
    """Session operations as single HTTP calls."""

    name = "request"

    def __init__(self, client: HttpChatClient, config: ChatClientConfig):
        self.client = client
        self.config = config

    async def create_session(self, title: Optional[str]) -> SessionSummary:
        data = await self.client.create_session(title)
        return summary_from_created(data, self.config.default_session_title)

    async def rename_session(self, session_id: str, title: str) -> RenameResolution:
        data = await self.client.rename_session(session_id, title)
        session = data.get("session") if isinstance(data, dict) else None
        confirmed = session.get("title") if isinstance(session, dict) else None
        return RenameResolution(RenameOutcome.ACKNOWLEDGED, confirmed or title)

    async def delete_session(self, session_id: str) -> None:
        await self.client.delete_session(session_id)

    async def send_message(self, session_id: str, message: str, on_chunk: ChunkCallback) -> ReplyPayload:
        data = await self.client.send_message(message, session_id)
        return ReplyPayload.model_validate(data if isinstance(data, dict) else {})
