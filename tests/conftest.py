"""Test configuration, in-process transport fakes and fixtures."""
import asyncio
from typing import Any, Callable, Dict, List

import pytest

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_coordinator import ChatCoordinator
from newsdesk_chat.chat_types import TransportError
from newsdesk_chat.session_store import MemoryCurrentSessionStore
from newsdesk_chat.transport.socket_channel import ChannelUnavailableError


class FakeChannel:
    """Stand-in for SocketChannel. Tests fire server events by hand or via responders."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.emitted: List[tuple] = []
        self.responders: Dict[str, Callable[[Any], None]] = {}
        self._listeners: Dict[str, List[Callable]] = {}
        self._status_listeners: List[Callable[[bool], None]] = []

    async def connect(self) -> None:
        self.set_connected(True)

    async def disconnect(self) -> None:
        self.set_connected(False)

    def set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        for listener in list(self._status_listeners):
            listener(connected)

    def add_status_listener(self, listener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    def on(self, event: str, listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def total_listeners(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    def fire(self, event: str, data: Any = None) -> None:
        for listener in list(self._listeners.get(event, [])):
            listener(data)

    def fire_later(self, delay: float, event: str, data: Any = None) -> None:
        asyncio.get_running_loop().call_later(delay, self.fire, event, data)

    async def emit(self, event: str, data: Any = None) -> None:
        if not self.connected:
            raise ChannelUnavailableError(f"Cannot emit '{event}': channel not connected")
        self.emitted.append((event, data))
        responder = self.responders.get(event)
        if responder:
            responder(data)

    def emitted_events(self) -> List[str]:
        return [event for event, _ in self.emitted]

    async def join_session(self, session_id: str) -> None:
        await self.emit("join-session", session_id)

    async def leave_session(self, session_id: str) -> None:
        await self.emit("leave-session", session_id)


class FakeHttpClient:
    """Stand-in for HttpChatClient with canned answers and call recording."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures = set()
        self.sessions_payload: Any = {"sessions": []}
        self.history: Dict[str, Any] = {}
        self.legacy_history: Dict[str, Any] = {}
        self.reply: Any = {"response": "pong", "sources": []}
        self.rename_answer: Any = {"success": True}
        self.closed = False
        self._created = 0

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.failures:
            raise TransportError(f"{name} failed", status=500)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def list_sessions(self):
        self._record("list_sessions")
        return self.sessions_payload

    async def create_session(self, title=None):
        self._record("create_session", title)
        self._created += 1
        return {"sessionId": f"http-{self._created}", "title": title, "timestamp": "2026-01-05T10:00:00"}

    async def rename_session(self, session_id, title):
        self._record("rename_session", session_id, title)
        return self.rename_answer

    async def delete_session(self, session_id):
        self._record("delete_session", session_id)
        return {"success": True}

    async def send_message(self, message, session_id=None):
        self._record("send_message", message, session_id)
        return self.reply

    async def get_session_history(self, session_id):
        self._record("get_session_history", session_id)
        return self.history.get(session_id, {"history": []})

    async def get_legacy_history(self, session_id):
        self._record("get_legacy_history", session_id)
        return self.legacy_history.get(session_id, [])

    async def close(self):
        self.closed = True


def session_payload(session_id: str, title: str = "New Chat", message_count: int = 0) -> dict:
    return {
        "id": session_id,
        "title": title,
        "createdAt": "2026-01-05T09:00:00",
        "lastActivity": "2026-01-05T09:30:00",
        "messageCount": message_count,
    }


@pytest.fixture
def config():
    return ChatClientConfig(title_refresh_delay=0.01)


@pytest.fixture
def channel():
    return FakeChannel(connected=True)


@pytest.fixture
def http():
    return FakeHttpClient()


@pytest.fixture
def store():
    return MemoryCurrentSessionStore()


@pytest.fixture
def coordinator(config, channel, http, store):
    return ChatCoordinator(config=config, channel=channel, http_client=http, store=store)
