"""Shared test fixtures and configuration for backend tests."""
import socket
import threading
import time

import pytest
import uvicorn
from fastapi.testclient import TestClient

from chatroom.chat.manager import manager
from chatroom.chat.router import reset_broadcast_router
from chatroom.main import app

# Seconds to wait for the live server to start accepting connections
SERVER_START_TIMEOUT = 10


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app."""
    return TestClient(app)


@pytest.fixture(scope="session")
def live_server():
    """Run the app under uvicorn on a free local port.

    Several WebSocket clients talking to each other need one real server
    event loop; yields the HTTP base URL.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    server = uvicorn.Server(
        uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning", log_config=None)
    )
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + SERVER_START_TIMEOUT
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            raise RuntimeError(f"uvicorn did not start on port {port}")
        time.sleep(0.05)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    thread.join(timeout=SERVER_START_TIMEOUT)


@pytest.fixture
def chat_server(live_server):
    """Live server base URL; waits for every connection to be torn down after the test.

    Disconnect cleanup runs on the server loop after the client has closed,
    so the next test must not start while it is still broadcasting.
    """
    yield live_server

    deadline = time.monotonic() + SERVER_START_TIMEOUT
    while manager.get_connection_count() and time.monotonic() < deadline:
        time.sleep(0.02)
    time.sleep(0.1)


@pytest.fixture(autouse=True)
def reset_chat_state():
    """Start every test with empty presence, history and connections."""
    reset_broadcast_router()
    manager.active_connections.clear()
    yield
    reset_broadcast_router()
    manager.active_connections.clear()
