"""Tests for the async chat client and its typing indicator."""
import asyncio
import json

import httpx
import pytest

from chatroom import config as config_module
from chatroom.client.session import ChatClient, websocket_url
from chatroom.client.typing_indicator import TypingIndicator


class FakeSocket:
    """Records frames the client sends."""

    def __init__(self):
        self.sent = []

    async def send(self, raw):
        self.sent.append(json.loads(raw))

    async def close(self):
        pass


def make_page_handler(messages):
    """MockTransport handler serving GET /api/messages like the server does."""
    def handler(request: httpx.Request) -> httpx.Response:
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        total = len(messages)
        end = max(total - offset, 0)
        start = max(end - limit, 0)
        return httpx.Response(
            200,
            json={"messages": messages[start:end], "total": total, "offset": offset, "limit": limit},
        )
    return handler


def make_client(messages, page_size=2):
    http = httpx.AsyncClient(
        base_url="http://chat.test", transport=httpx.MockTransport(make_page_handler(messages))
    )
    chat = ChatClient("http://chat.test", "alice", http=http, page_size=page_size)
    chat._ws = FakeSocket()
    chat.state.connection_id = "c1"
    return chat


def test_websocket_url():
    assert websocket_url("http://localhost:5000") == "ws://localhost:5000/ws"
    assert websocket_url("https://chat.example.com/") == "wss://chat.example.com/ws"


@pytest.mark.asyncio
async def test_defaults_come_from_client_settings(tmp_path, monkeypatch):
    settings_file = tmp_path / "chatroom.settings.yaml"
    settings_file.write_text(
        "client:\n"
        "  page_size: 5\n"
        "  typing_quiet_period_ms: 300\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(settings_file))
    config_module.reset_config()
    try:
        chat = ChatClient("http://chat.test", "alice", http=httpx.AsyncClient())
        assert chat.page_size == 5
        assert chat.typing.quiet_period == 0.3

        explicit = ChatClient("http://chat.test", "alice", http=httpx.AsyncClient(), page_size=7)
        assert explicit.page_size == 7
    finally:
        config_module.reset_config()
    await chat._http.aclose()
    await explicit._http.aclose()


class TestHistoryLoading:
    @pytest.mark.asyncio
    async def test_load_history_then_older_pages(self):
        messages = [{"id": i, "sender": "bob", "senderId": "c2", "message": f"m{i}"} for i in range(1, 6)]
        chat = make_client(messages)

        await chat.load_history()
        assert [m["id"] for m in chat.state.messages] == [4, 5]

        assert await chat.load_more() is True
        assert [m["id"] for m in chat.state.messages] == [2, 3, 4, 5]

        assert await chat.load_more() is True
        assert [m["id"] for m in chat.state.messages] == [1, 2, 3, 4, 5]
        assert chat.state.has_more is False

        assert await chat.load_more() is False
        await chat._http.aclose()

    @pytest.mark.asyncio
    async def test_loaded_messages_are_marked_read(self):
        chat = make_client([{"id": 1, "sender": "bob", "senderId": "c2", "message": "hi"}])

        await chat.load_history()
        assert chat._ws.sent == [{"type": "read", "messageId": 1, "username": "alice"}]
        await chat._http.aclose()


class TestOutbound:
    @pytest.mark.asyncio
    async def test_send_text_public_and_private(self):
        chat = make_client([])
        await chat.send_text("hello")
        await chat.send_text("   ")

        await chat.select_private({"connectionId": "c2", "identity": "bob"})
        await chat.send_text("psst")

        assert chat._ws.sent == [
            {"type": "send_message", "message": "hello"},
            {"type": "private_message", "to": "c2", "message": "psst"},
        ]
        await chat._http.aclose()

    @pytest.mark.asyncio
    async def test_send_file_to_private_peer(self):
        chat = make_client([])
        await chat.select_private({"connectionId": "c2", "identity": "bob"})
        await chat.send_file("data:...", "image/png", "a.png")

        assert chat._ws.sent == [{
            "type": "send_file",
            "file": "data:...",
            "fileType": "image/png",
            "fileName": "a.png",
            "isPrivate": True,
            "to": "c2",
        }]
        await chat._http.aclose()

    @pytest.mark.asyncio
    async def test_incoming_event_triggers_read(self):
        chat = make_client([])
        await chat.handle_event({"type": "receive_message", "id": 7, "sender": "bob", "senderId": "c2", "message": "yo"})
        await chat.react(7, "🎉")

        assert chat._ws.sent == [
            {"type": "read", "messageId": 7, "username": "alice"},
            {"type": "reaction", "messageId": 7, "emoji": "🎉", "user": "alice"},
        ]
        await chat._http.aclose()

    @pytest.mark.asyncio
    async def test_send_without_connection_raises(self):
        chat = ChatClient("http://chat.test", "alice", http=httpx.AsyncClient())
        with pytest.raises(RuntimeError):
            await chat.send_text("hello")
        await chat._http.aclose()


class TestTypingIndicator:
    @pytest.mark.asyncio
    async def test_starts_once_and_stops_after_quiet_period(self):
        sent = []

        async def send(is_typing):
            sent.append(is_typing)

        indicator = TypingIndicator(send, quiet_period=0.05)
        await indicator.on_input()
        await indicator.on_input()
        assert sent == [True]

        await asyncio.sleep(0.15)
        assert sent == [True, False]
        assert indicator.active is False

    @pytest.mark.asyncio
    async def test_input_restarts_timer(self):
        sent = []

        async def send(is_typing):
            sent.append(is_typing)

        indicator = TypingIndicator(send, quiet_period=0.1)
        await indicator.on_input()
        await asyncio.sleep(0.06)
        await indicator.on_input()
        await asyncio.sleep(0.06)
        assert sent == [True]

        await asyncio.sleep(0.1)
        assert sent == [True, False]

    @pytest.mark.asyncio
    async def test_stop_sends_false_immediately(self):
        sent = []

        async def send(is_typing):
            sent.append(is_typing)

        indicator = TypingIndicator(send, quiet_period=10)
        await indicator.stop()
        assert sent == []

        await indicator.on_input()
        await indicator.stop()
        assert sent == [True, False]
