"""Tests for the Socket.IO channel wrapper, using a stub AsyncClient."""
import pytest
from socketio.exceptions import ConnectionError as SocketConnectionError

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_types import TransportError
from newsdesk_chat.transport.socket_channel import ChannelUnavailableError, SocketChannel


class StubSocketIOClient:
    """Records registrations and emits; lets tests trigger server events."""

    def __init__(self, fail_connect=False):
        self.handlers = {}
        self.emitted = []
        self.fail_connect = fail_connect
        self.connect_kwargs = None

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.connect_kwargs = dict(kwargs, url=url)
        if self.fail_connect:
            raise SocketConnectionError("refused")
        self.handlers["connect"]()

    async def disconnect(self):
        self.handlers["disconnect"]("client disconnect")

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    def trigger(self, event, *args):
        self.handlers[event](*args)


@pytest.fixture
def sio():
    return StubSocketIOClient()


@pytest.fixture
def channel(sio):
    return SocketChannel(ChatClientConfig(base_url="http://news.local"), client=sio)


@pytest.mark.asyncio
async def test_connect_passes_socket_options(channel, sio):
    await channel.connect()
    assert channel.connected
    assert sio.connect_kwargs["url"] == "http://news.local"
    assert sio.connect_kwargs["transports"] == ["websocket", "polling"]
    assert sio.connect_kwargs["wait_timeout"] == 20.0


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error():
    channel = SocketChannel(ChatClientConfig(), client=StubSocketIOClient(fail_connect=True))
    with pytest.raises(TransportError):
        await channel.connect()
    assert not channel.connected


def test_lifecycle_events_drive_status(channel, sio):
    seen = []
    channel.add_status_listener(seen.append)
    sio.trigger("connect")
    sio.trigger("disconnect", "transport close")
    sio.trigger("connect")
    sio.trigger("connect_error", "boom")
    assert seen == [True, False, True, False]
    assert not channel.connected


def test_status_listener_only_fires_on_change(channel, sio):
    seen = []
    channel.add_status_listener(seen.append)
    sio.trigger("connect")
    sio.trigger("connect")
    assert seen == [True]
    channel.remove_status_listener(seen.append)
    sio.trigger("disconnect")
    assert seen == [True]


def test_events_fan_out_to_every_listener(channel, sio):
    first, second = [], []
    channel.on("stream-chunk", first.append)
    channel.on("stream-chunk", second.append)
    sio.trigger("stream-chunk", {"chunk": "a"})
    channel.off("stream-chunk", first.append)
    sio.trigger("stream-chunk", {"chunk": "b"})
    assert first == [{"chunk": "a"}]
    assert second == [{"chunk": "a"}, {"chunk": "b"}]
    assert channel.listener_count("stream-chunk") == 1


def test_listener_may_remove_itself_while_dispatching(channel, sio):
    calls = []

    def once(data):
        calls.append(data)
        channel.off("session-created", once)

    channel.on("session-created", once)
    channel.on("session-created", calls.append)
    sio.trigger("session-created", 1)
    sio.trigger("session-created", 2)
    assert calls == [1, 1, 2]


@pytest.mark.asyncio
async def test_emit_requires_connection(channel, sio):
    with pytest.raises(ChannelUnavailableError):
        await channel.emit("send-message", {"message": "hi"})
    sio.trigger("connect")
    await channel.join_session("s1")
    await channel.leave_session("s1")
    assert sio.emitted == [("join-session", "s1"), ("leave-session", "s1")]
