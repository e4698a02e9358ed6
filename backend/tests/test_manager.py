"""Tests for connection bookkeeping and delivery fan-out."""
import pytest

from chatroom.chat.events import Delivery, TypingUsers
from chatroom.chat.manager import ConnectionManager


class FakeWebSocket:
    """Stands in for a FastAPI WebSocket; records frames sent to it."""

    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


async def connect_all(manager, count):
    sockets = [FakeWebSocket() for _ in range(count)]
    ids = [await manager.connect(ws) for ws in sockets]
    for ws in sockets:
        ws.sent.clear()
    return sockets, ids


@pytest.mark.asyncio
async def test_connect_assigns_id_and_announces_it():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    connection_id = await manager.connect(ws)

    assert ws.accepted is True
    assert ws.sent == [{"type": "connected", "connectionId": connection_id}]
    assert manager.get_connection_count() == 1

    assert manager.disconnect(connection_id) is ws
    assert manager.disconnect(connection_id) is None


@pytest.mark.asyncio
async def test_broadcast_reaches_every_connection():
    manager = ConnectionManager()
    sockets, _ = await connect_all(manager, 3)

    await manager.deliver(Delivery(TypingUsers(users=["alice"])))

    for ws in sockets:
        assert ws.sent == [{"type": "typing_users", "users": ["alice"]}]


@pytest.mark.asyncio
async def test_targeted_delivery_skips_missing_connections():
    manager = ConnectionManager()
    sockets, ids = await connect_all(manager, 3)

    await manager.deliver(Delivery(TypingUsers(users=[]), targets=(ids[0], "gone")))

    assert sockets[0].sent == [{"type": "typing_users", "users": []}]
    assert sockets[1].sent == []
    assert sockets[2].sent == []


@pytest.mark.asyncio
async def test_failed_send_drops_connection():
    manager = ConnectionManager()
    sockets, ids = await connect_all(manager, 2)
    sockets[1].fail = True

    await manager.deliver(Delivery(TypingUsers(users=[])))

    assert list(manager.active_connections) == [ids[0]]
    assert sockets[0].sent == [{"type": "typing_users", "users": []}]
