"""Tests for the push and request implementations of the session operations."""
import asyncio

import pytest

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_types import RenameOutcome, SessionError, TransportError
from newsdesk_chat.transport.session_backend import (
    PushSessionBackend, RequestSessionBackend, summary_from_created,
)
from newsdesk_chat.transport.socket_channel import ChannelUnavailableError
from .conftest import FakeChannel, FakeHttpClient


@pytest.fixture
def push(channel):
    return PushSessionBackend(channel, ChatClientConfig(rename_ack_timeout=0.05))


def test_summary_from_created_defaults():
    summary = summary_from_created({"sessionId": "s9", "timestamp": "2026-01-05T10:00:00"}, "New Chat")
    assert summary.id == "s9"
    assert summary.title == "New Chat"
    assert summary.message_count == 0
    assert summary.created_at == summary.last_activity


def test_summary_from_created_requires_id():
    with pytest.raises(SessionError):
        summary_from_created({"title": "x"}, "New Chat")


@pytest.mark.asyncio
async def test_push_create(push, channel):
    channel.responders["create-session"] = lambda data: channel.fire(
        "session-created", {"sessionId": "s1", "title": data["title"]})
    summary = await push.create_session("Morning news")
    assert summary.id == "s1"
    assert summary.title == "Morning news"
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_create_error(push, channel):
    channel.responders["create-session"] = lambda data: channel.fire("session-error", {"error": "db down"})
    with pytest.raises(SessionError, match="db down"):
        await push.create_session(None)
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_delete_ignores_other_sessions(push, channel):
    task = asyncio.create_task(push.delete_session("s1"))
    await asyncio.sleep(0)
    channel.fire("session-deleted", {"sessionId": "s2"})
    await asyncio.sleep(0)
    assert not task.done()
    channel.fire("session-deleted", {"sessionId": "s1"})
    await task
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_rename_acknowledged(push, channel):
    channel.responders["update-session-title"] = lambda data: channel.fire(
        "session-title-updated", {"sessionId": data["sessionId"]})
    resolution = await push.rename_session("s1", "Weather")
    assert resolution.outcome == RenameOutcome.ACKNOWLEDGED
    assert resolution.title == "Weather"


@pytest.mark.asyncio
async def test_push_rename_echoed_session_wins_title(push, channel):
    channel.responders["update-session-title"] = lambda data: channel.fire(
        "session-updated", {"session": {"id": "s1", "title": "Weather (edited)"}})
    resolution = await push.rename_session("s1", "Weather")
    assert resolution.outcome == RenameOutcome.SESSION_ECHOED
    assert resolution.title == "Weather (edited)"


@pytest.mark.asyncio
async def test_push_rename_error_is_an_outcome(push, channel):
    channel.responders["update-session-title"] = lambda data: channel.fire("session-error", "denied")
    resolution = await push.rename_session("s1", "Weather")
    assert resolution.outcome == RenameOutcome.ERRORED
    assert not resolution.succeeded
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_rename_times_out(push, channel):
    channel.responders["update-session-title"] = lambda data: channel.fire(
        "session-title-updated", {"sessionId": "other"})
    resolution = await push.rename_session("s1", "Weather")
    assert resolution.outcome == RenameOutcome.TIMED_OUT
    assert resolution.title == "Weather"
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_each_rename_installs_its_own_listeners(push, channel):
    first = await push.rename_session("s1", "One")
    assert first.outcome == RenameOutcome.TIMED_OUT
    assert channel.total_listeners() == 0

    task = asyncio.create_task(push.rename_session("s1", "Two"))
    await asyncio.sleep(0)
    assert channel.total_listeners() == 3
    channel.fire("session-updated", {"session": {"id": "s1", "title": "Two"}})
    second = await task
    assert second.outcome == RenameOutcome.SESSION_ECHOED
    assert second.title == "Two"
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_stream_delivers_chunks_then_final(push, channel):
    chunks = []

    def respond(data):
        channel.fire("stream-chunk", {"chunk": "Hel"})
        channel.fire("stream-chunk", {"chunk": "lo", "sessionId": "other"})
        channel.fire("stream-chunk", {"chunk": "lo"})
        channel.fire("stream-complete", {"response": "Hello!", "sources": [{"title": "Wire"}]})

    channel.responders["send-message"] = respond
    payload = await push.send_message("s1", "hi", chunks.append)
    assert chunks == ["Hel", "lo"]
    assert payload.response == "Hello!"
    assert payload.sources[0].title == "Wire"
    assert ("send-message", {"sessionId": "s1", "message": "hi"}) in channel.emitted
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_stream_error(push, channel):
    channel.responders["send-message"] = lambda data: channel.fire("stream-error", {"message": "llm down"})
    with pytest.raises(SessionError, match="llm down"):
        await push.send_message("s1", "hi", lambda chunk: None)


@pytest.mark.asyncio
async def test_push_stream_fails_when_channel_drops(push, channel):
    task = asyncio.create_task(push.send_message("s1", "hi", lambda chunk: None))
    await asyncio.sleep(0)
    channel.set_connected(False)
    with pytest.raises(TransportError):
        await task
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_push_emit_without_connection():
    channel = FakeChannel(connected=False)
    backend = PushSessionBackend(channel, ChatClientConfig())
    with pytest.raises(ChannelUnavailableError):
        await backend.create_session(None)
    assert channel.total_listeners() == 0


@pytest.mark.asyncio
async def test_request_backend():
    http = FakeHttpClient()
    backend = RequestSessionBackend(http, ChatClientConfig())

    created = await backend.create_session(None)
    assert created.id == "http-1"
    assert created.title == "New Chat"

    http.rename_answer = {"session": {"id": "http-1", "title": "Server title"}}
    resolution = await backend.rename_session("http-1", "Mine")
    assert resolution.outcome == RenameOutcome.ACKNOWLEDGED
    assert resolution.title == "Server title"

    chunks = []
    payload = await backend.send_message("http-1", "ping", chunks.append)
    assert payload.response == "pong"
    assert chunks == []

    await backend.delete_session("http-1")
    assert http.count("delete_session") == 1
