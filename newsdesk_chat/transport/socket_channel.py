"""Push channel over Socket.IO.

Wraps ``socketio.AsyncClient`` so several one-shot operations can listen to
the same event name at once, and tracks the connection status from the
connect / disconnect / connect_error lifecycle events.
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional

import socketio
from socketio.exceptions import BadNamespaceError, ConnectionError as SocketConnectionError

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_types import TransportError

logger = logging.getLogger(__name__)

EventListener = Callable[[Any], None]
StatusListener = Callable[[bool], None]


class ChannelUnavailableError(TransportError):
    """The channel was not connected when an event had to be emitted."""


class SocketChannel:
    """Bidirectional event channel with multi-listener dispatch."""

    def __init__(self, config: ChatClientConfig, client: Optional[socketio.AsyncClient] = None):
        self.config = config
        self._sio = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=config.reconnection_attempts,
            reconnection_delay=config.reconnection_delay,
        )
        self._connected = False
        self._listeners: Dict[str, List[EventListener]] = {}
        self._status_listeners: List[StatusListener] = []

        self._sio.on("connect", self._handle_connect)
        self._sio.on("disconnect", self._handle_disconnect)
        self._sio.on("connect_error", self._handle_connect_error)

    @property
    def connected(self) -> bool:
        """Most recently observed connection status."""
        return self._connected

    async def connect(self) -> None:
        try:
            await self._sio.connect(
                self.config.base_url,
                transports=self.config.socket_transports,
                socketio_path=self.config.socket_path,
                wait_timeout=self.config.connect_timeout,
            )
        except SocketConnectionError as e:
            self._set_connected(False)
            raise TransportError(f"Socket.IO connection failed: {e}") from e

    async def disconnect(self) -> None:
        await self._sio.disconnect()
        self._set_connected(False)

    # ── Lifecycle ─────────────────────────────────────────────

    def _handle_connect(self) -> None:
        logger.info(f"[SOCKET] Connected to {self.config.base_url}")
        self._set_connected(True)

    def _handle_disconnect(self, *args) -> None:
        reason = args[0] if args else None
        logger.info(f"[SOCKET] Disconnected ({reason})")
        self._set_connected(False)

    def _handle_connect_error(self, *args) -> None:
        logger.error(f"[SOCKET] Connection error: {args[0] if args else 'unknown'}")
        self._set_connected(False)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        for listener in list(self._status_listeners):
            listener(connected)

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    # ── Events ────────────────────────────────────────────────

    def on(self, event: str, listener: EventListener) -> None:
        """Add a listener for ``event``. Each listener receives the event payload."""
        if event not in self._listeners:
            self._listeners[event] = []
            self._sio.on(event, functools.partial(self._dispatch, event))
        self._listeners[event].append(listener)

    def off(self, event: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def _dispatch(self, event: str, *args) -> None:
        data = args[0] if args else None
        # copy: listeners remove themselves while resolving
        for listener in list(self._listeners.get(event, [])):
            listener(data)

    async def emit(self, event: str, data: Any = None) -> None:
        if not self._connected:
            raise ChannelUnavailableError(f"Cannot emit '{event}': channel not connected")
        try:
            await self._sio.emit(event, data)
        except BadNamespaceError as e:
            raise ChannelUnavailableError(f"Cannot emit '{event}': {e}") from e

    # ── Session rooms ─────────────────────────────────────────

    async def join_session(self, session_id: str) -> None:
        if session_id:
            await self.emit("join-session", session_id)

    async def leave_session(self, session_id: str) -> None:
        if session_id:
            await self.emit("leave-session", session_id)
