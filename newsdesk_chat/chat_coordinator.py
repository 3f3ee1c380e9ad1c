"""ChatCoordinator with all business logic for multi-session streaming chat.

Views (terminal, web bridges) subclass this and override the ``_on_*`` hooks
for view-specific rendering. The coordinator owns the session registry and
the conversation of the active session, picks the push channel when it is
connected and plain HTTP otherwise, and funnels every failure into one
``error`` slot.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Set, TypeVar

from pydantic import ValidationError

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_models import ChatMessage, ChatViewState, ReplyPayload, Role, SessionSummary
from newsdesk_chat.chat_types import SessionError, TransportError
from newsdesk_chat.conversation_state import ConversationState, StreamingReply, new_placeholder
from newsdesk_chat.history import (
    extract_history_messages, extract_legacy_messages, normalize_history, reported_message_count,
)
from newsdesk_chat.session_registry import SessionRegistry
from newsdesk_chat.session_store import CurrentSessionStore
from newsdesk_chat.transport.http_client import HttpChatClient
from newsdesk_chat.transport.session_backend import (
    PushSessionBackend, RequestSessionBackend, SessionBackend,
)
from newsdesk_chat.transport.socket_channel import ChannelUnavailableError, SocketChannel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatCoordinator:
    """Session lifecycle, transport selection and streamed reply assembly.

    All methods run on one asyncio loop. Channel events arrive as plain
    callbacks, so state is only ever mutated between two ``await`` points.
    """

    def __init__(
        self,
        *,
        config: Optional[ChatClientConfig] = None,
        channel: Optional[SocketChannel] = None,
        http_client: Optional[HttpChatClient] = None,
        store: Optional[CurrentSessionStore] = None,
    ):
        """Initialize the coordinator.

        Args:
            config: Client configuration (defaults to ``ChatClientConfig()``)
            channel: Push channel; a Socket.IO channel is created if omitted
            http_client: Request client; an aiohttp client is created if omitted
            store: Persistence for the current session id (in-memory if omitted)
        """
        self.config = config or ChatClientConfig()
        self.channel = channel or SocketChannel(self.config)
        self.http = http_client or HttpChatClient(self.config)
        self.registry = SessionRegistry(store)
        self.conversation = ConversationState()
        self.error: Optional[str] = None

        self._push_backend = PushSessionBackend(self.channel, self.config)
        self._request_backend = RequestSessionBackend(self.http, self.config)
        self._background_tasks: Set[asyncio.Task] = set()
        self._joined_session_id: Optional[str] = None
        # one reply exchange at a time across sessions; push events carry no reliable session tag
        self._reply_lock = asyncio.Lock()

        self.channel.add_status_listener(self._handle_channel_status)

    # ========== READ-ONLY STATE ==========

    @property
    def sessions(self) -> List[SessionSummary]:
        return list(self.registry.sessions)

    @property
    def current_session_id(self) -> Optional[str]:
        return self.registry.active_id

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self.conversation.messages)

    @property
    def is_loading(self) -> bool:
        return self.conversation.is_loading

    @property
    def is_streaming(self) -> bool:
        return self.conversation.is_streaming

    @property
    def is_connected(self) -> bool:
        return self.channel.connected

    def view_state(self) -> ChatViewState:
        """Snapshot of everything a view renders."""
        return ChatViewState(
            sessions=self.sessions,
            current_session_id=self.current_session_id,
            messages=self.messages,
            is_loading=self.is_loading,
            is_streaming=self.is_streaming,
            is_connected=self.is_connected,
            error=self.error,
        )

    # ========== LIFECYCLE ==========

    async def start(self, *, connect: bool = True) -> None:
        """Connect the push channel, load sessions and restore the last active session.

        A failed connection is not fatal; every operation then uses HTTP.
        """
        if connect:
            try:
                await self.channel.connect()
            except TransportError as e:
                logger.warning(f"[SOCKET] Push channel unavailable, using HTTP: {e}")

        await self.load_sessions()

        saved_session_id = self.registry.restore_active_id()
        if saved_session_id:
            logger.info(f"[REGISTRY] Restoring session {saved_session_id}")
            await self._activate(saved_session_id)
            self.conversation = ConversationState(saved_session_id)
            self._on_conversation_changed()
            await self._load_history(saved_session_id)

    async def close(self) -> None:
        """Cancel background work and release both transports."""
        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self.channel.remove_status_listener(self._handle_channel_status)
        await self.channel.disconnect()
        await self.http.close()

    # ========== SESSIONS ==========

    async def load_sessions(self) -> List[SessionSummary]:
        """Reload the session list. Never raises; an unreachable backend yields []."""
        try:
            data = await self.http.list_sessions()
        except TransportError as e:
            logger.warning(f"[REGISTRY] Failed to load sessions: {e}")
            data = None

        raw_sessions = data.get("sessions") if isinstance(data, dict) else data
        sessions = []
        for raw in raw_sessions if isinstance(raw_sessions, list) else []:
            try:
                sessions.append(SessionSummary.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"[REGISTRY] Skipping malformed session entry: {e}")

        self.registry.replace_all(sessions)
        self._on_sessions_changed()
        return self.sessions

    async def create_session(self, title: Optional[str] = None) -> SessionSummary:
        """Create a session, put it first in the list and make it active.

        Raises:
            SessionError: If the backend refused or could not be reached;
                the registry is left unchanged.
        """
        try:
            summary = await self._dispatch("create", lambda backend: backend.create_session(title))
        except Exception as e:
            self._set_error(self.config.messages.create_failed, e)
            raise SessionError(str(e), "create") from e

        self.registry.prepend(summary)
        await self._activate(summary.id)
        self.conversation = ConversationState(summary.id)
        self.error = None
        self._on_sessions_changed()
        self._on_conversation_changed()
        return summary

    async def select_session(self, session_id: str) -> None:
        """Make ``session_id`` active and load its history. No-op if already active."""
        if session_id == self.registry.active_id:
            return

        logger.info(f"[REGISTRY] Selecting session {session_id}")
        await self._activate(session_id)
        self.conversation = ConversationState(session_id)
        self.error = None
        self._on_sessions_changed()
        self._on_conversation_changed()
        await self._load_history(session_id)

    async def rename_session(self, session_id: str, title: str) -> Optional[str]:
        """Rename a session and return the applied title.

        An empty title leaves everything as it was and returns the current title.

        Raises:
            SessionError: If the backend reported an error.
        """
        new_title = (title or "").strip()
        current = self.registry.get(session_id)
        if not new_title:
            return current.title if current else None

        try:
            resolution = await self._dispatch(
                "rename", lambda backend: backend.rename_session(session_id, new_title))
        except Exception as e:
            self._set_error(self.config.messages.rename_failed, e)
            raise SessionError(str(e), "rename") from e

        if not resolution.succeeded:
            self._set_error(self.config.messages.rename_failed, resolution.error)
            raise SessionError(str(resolution.error), "rename")

        applied = resolution.title or new_title
        self.registry.update(session_id, title=applied)
        logger.info(f"[RENAME] {session_id} -> {applied!r} ({resolution.outcome.value})")
        self._on_sessions_changed()
        return applied

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session once the backend confirmed.

        Deleting the active session clears the active id and the conversation;
        no replacement session is created.

        Returns:
            True if the session was deleted, False if the backend failed
        """
        try:
            await self._dispatch("delete", lambda backend: backend.delete_session(session_id))
        except Exception as e:
            self._set_error(self.config.messages.delete_failed, e)
            return False

        was_active = session_id == self.registry.active_id
        if was_active:
            await self._leave_room()
        self.registry.remove(session_id)
        if was_active:
            self.conversation = ConversationState()
            self._on_conversation_changed()
        self._on_sessions_changed()
        return True

    async def reset_session(self) -> Optional[SessionSummary]:
        """Start over in a fresh session."""
        try:
            return await self.create_session()
        except SessionError:
            return None

    def clear_error(self) -> None:
        self.error = None
        self._on_error_cleared()

    # ========== MESSAGES ==========

    async def send_message(self, text: str) -> Optional[ChatMessage]:
        """Send a user message and assemble the assistant reply.

        Without an active session a new one is created and nothing is sent;
        the caller sends again once the session exists.

        Args:
            text: User message to send

        Returns:
            The finalized (or errored) assistant message, or None when nothing was sent
        """
        if not text or not text.strip():
            return None
        if self.conversation.is_busy:
            logger.warning("[SEND] A reply is still in flight, ignoring send")
            return None

        session_id = self.registry.active_id
        if not session_id:
            await self.reset_session()
            return None

        conversation = self.conversation
        conversation.append(ChatMessage(role=Role.USER, content=text))
        placeholder = conversation.append(new_placeholder())
        reply = StreamingReply(session_id, placeholder)
        conversation.set_flags(loading=True, streaming=True)
        self.error = None
        self._on_response_started()
        self._on_conversation_changed()

        def on_chunk(fragment: str) -> None:
            content = reply.add_chunk(fragment)
            if not self._owns(conversation, reply):
                return
            conversation.update_message(reply.message_id, content=content)
            self._on_text_chunk(fragment)

        if self._reply_lock.locked():
            logger.info(f"[SEND] Waiting for the previous reply before sending to {session_id}")
        try:
            async with self._reply_lock:
                payload = await self._dispatch(
                    "send", lambda backend: backend.send_message(session_id, text, on_chunk))
        except Exception as e:
            logger.error(f"[SEND] Error: {type(e).__name__}: {e}")
            return self._fail_reply(conversation, reply, e)

        return self._finalize_reply(conversation, reply, payload)

    def _owns(self, conversation: ConversationState, reply: StreamingReply) -> bool:
        """True while the reply's session is still shown and its placeholder exists."""
        return (
            conversation is self.conversation
            and self.registry.active_id == reply.session_id
            and conversation.get_message(reply.message_id) is not None
        )

    def _finalize_reply(self, conversation: ConversationState, reply: StreamingReply,
                        payload: ReplyPayload) -> Optional[ChatMessage]:
        final = None
        if self._owns(conversation, reply):
            # server text is authoritative, not the accumulated buffer
            final = conversation.update_message(
                reply.message_id,
                content=payload.response,
                sources=payload.sources,
                is_streaming=False,
            )
        else:
            logger.info(f"[STREAM] Reply for {reply.session_id} finished after switching away")
        conversation.set_flags(loading=False, streaming=False)
        self._record_activity(reply.session_id, payload.auto_title)
        if final is not None:
            self._on_response_completed(final)
            self._on_conversation_changed()
        return final

    def _fail_reply(self, conversation: ConversationState, reply: StreamingReply,
                    error: Exception) -> Optional[ChatMessage]:
        failed = None
        if self._owns(conversation, reply):
            failed = conversation.update_message(
                reply.message_id,
                content=self.config.messages.apology,
                is_error=True,
                is_streaming=False,
            )
        conversation.set_flags(loading=False, streaming=False)
        self._set_error(self.config.messages.send_failed, error)
        if failed is not None:
            self._on_conversation_changed()
        return failed

    def _record_activity(self, session_id: str, auto_title: Optional[str]) -> None:
        """Bump activity and counts of the session that owns a finished reply."""
        summary = self.registry.get(session_id)
        if summary is None:
            return
        changes = {
            "last_activity": datetime.now(),
            "message_count": summary.message_count + 2,
        }
        has_default_title = summary.title == self.config.default_session_title
        if has_default_title and auto_title:
            changes["title"] = auto_title
        self.registry.update(session_id, **changes)
        self._on_sessions_changed()
        if has_default_title:
            self._schedule(self._refresh_sessions_later())

    async def _refresh_sessions_later(self) -> None:
        await asyncio.sleep(self.config.title_refresh_delay)
        await self.load_sessions()

    # ========== HISTORY ==========

    async def _load_history(self, session_id: str) -> None:
        """Fetch and normalize the history of ``session_id`` into the conversation.

        Falls back to the legacy endpoint when the primary one returns nothing
        although the session reports earlier messages.
        """
        conversation = self.conversation
        try:
            payload = await self.http.get_session_history(session_id)
        except TransportError as e:
            logger.warning(f"[HISTORY] Failed to load session {session_id}: {e}")
            if conversation is self.conversation:
                self._set_error(self.config.messages.history_failed, e)
            return

        raw_messages = extract_history_messages(payload)
        summary = self.registry.get(session_id)
        known_count = max(reported_message_count(payload), summary.message_count if summary else 0)
        if not raw_messages and known_count > 0:
            logger.info(f"[HISTORY] Session {session_id} reports {known_count} messages, trying legacy endpoint")
            try:
                raw_messages = extract_legacy_messages(await self.http.get_legacy_history(session_id))
            except TransportError as e:
                logger.info(f"[HISTORY] Legacy endpoint failed: {e}")

        messages = normalize_history(raw_messages)
        if conversation is not self.conversation or self.registry.active_id != session_id:
            logger.debug(f"[HISTORY] Discarding history of {session_id}, session switched")
            return
        # messages sent while the fetch was running stay after the history
        conversation.replace_messages(messages + list(conversation.messages))
        logger.info(f"[HISTORY] Loaded {len(messages)} messages for {session_id}")
        self._on_conversation_changed()

    # ========== TRANSPORT ==========

    def _backend(self) -> SessionBackend:
        """Push channel when connected right now, HTTP otherwise."""
        return self._push_backend if self.channel.connected else self._request_backend

    async def _dispatch(self, operation: str, call: Callable[[SessionBackend], Awaitable[T]]) -> T:
        backend = self._backend()
        logger.debug(f"[TRANSPORT] {operation} via {backend.name}")
        try:
            return await call(backend)
        except ChannelUnavailableError as e:
            # nothing was emitted, so retrying over HTTP cannot duplicate the call
            logger.warning(f"[TRANSPORT] {operation}: {e}; retrying over HTTP")
            return await call(self._request_backend)

    async def _activate(self, session_id: str) -> None:
        if self._joined_session_id and self._joined_session_id != session_id:
            await self._leave_room()
        self.registry.set_active(session_id)
        await self._join_room(session_id)

    async def _join_room(self, session_id: str) -> None:
        if not self.channel.connected or self._joined_session_id == session_id:
            return
        try:
            await self.channel.join_session(session_id)
            self._joined_session_id = session_id
        except TransportError as e:
            logger.debug(f"[SOCKET] Could not join {session_id}: {e}")

    async def _leave_room(self) -> None:
        session_id, self._joined_session_id = self._joined_session_id, None
        if not session_id or not self.channel.connected:
            return
        try:
            await self.channel.leave_session(session_id)
        except TransportError as e:
            logger.debug(f"[SOCKET] Could not leave {session_id}: {e}")

    def _handle_channel_status(self, connected: bool) -> None:
        if connected:
            if self.registry.active_id:
                self._schedule(self._join_room(self.registry.active_id))
        else:
            # rooms do not survive a dropped connection
            self._joined_session_id = None
        self._on_connection_changed(connected)

    def _schedule(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _set_error(self, message: str, error: object = None) -> None:
        logger.error(f"[ERROR] {message}: {error}")
        self.error = message
        self._on_error(message)

    # ========== VIEW HOOKS (override in views) ==========

    def _on_sessions_changed(self) -> None:
        """Called after the session list or the active session changed."""
        pass

    def _on_conversation_changed(self) -> None:
        """Called after messages or loading/streaming flags changed."""
        pass

    def _on_response_started(self) -> None:
        """Called when the user message and the empty placeholder were added."""
        pass

    def _on_text_chunk(self, content: str) -> None:
        """Called for each streamed fragment applied to the visible placeholder.

        Args:
            content: The new fragment (not the accumulated text)
        """
        pass

    def _on_response_completed(self, message: ChatMessage) -> None:
        """Called with the finalized assistant message."""
        pass

    def _on_error(self, message: str) -> None:
        """Called when the error slot was set.

        Args:
            message: User-facing error text
        """
        pass

    def _on_error_cleared(self) -> None:
        pass

    def _on_connection_changed(self, connected: bool) -> None:
        pass
