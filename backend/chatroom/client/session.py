"""Async chat client.

Connects to the chat WebSocket with ``websockets``, fetches history pages
with ``httpx``, and keeps a ``ClientState`` up to date. After every state
change the client sends any read receipts the active view still owes.

Example:
    async with ChatClient("http://localhost:5000", "alice") as chat:
        await chat.send_text("hello")
        await chat.listen()
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx
import websockets

from chatroom.config import get_config

from .state import ClientState
from .typing_indicator import TypingIndicator

logger = logging.getLogger(__name__)


def websocket_url(base_url: str) -> str:
    """Map an http(s) base URL to the chat WebSocket URL."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        return "wss://" + base[len("https://"):] + "/ws"
    if base.startswith("http://"):
        return "ws://" + base[len("http://"):] + "/ws"
    return base + "/ws"


class ChatClient:
    """One chat participant.

    Args:
        base_url: HTTP base URL of the chat server.
        username: Display name to join with.
        http: Optional pre-built ``httpx.AsyncClient`` (used in tests).
        page_size: Messages per history page. Defaults to the ``client``
            section of the settings file, as does ``quiet_period``.
        quiet_period: Seconds of idle input before typing stops.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        http: Optional[httpx.AsyncClient] = None,
        page_size: Optional[int] = None,
        quiet_period: Optional[float] = None,
    ) -> None:
        client_config = get_config().client
        if page_size is None:
            page_size = client_config.page_size
        if quiet_period is None:
            quiet_period = client_config.typing_quiet_period_ms / 1000

        self.base_url = base_url.rstrip("/")
        self.state = ClientState(username)
        self.page_size = page_size
        self.typing = TypingIndicator(self._send_typing, quiet_period)
        self._http = http or httpx.AsyncClient(base_url=self.base_url)
        self._ws = None

    async def __aenter__(self) -> "ChatClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Open the channel, learn our connection ID, join and load history."""
        self._ws = await websockets.connect(websocket_url(self.base_url))
        connected = json.loads(await self._ws.recv())
        self.state.apply(connected)
        logger.info("Connected as %s (%s)", self.state.identity, self.state.connection_id)

        await self._send({"type": "user_join", "username": self.state.identity})
        await self.load_history()

    async def close(self) -> None:
        if self._ws is not None:
            await self.typing.stop()
            await self._ws.close()
            self._ws = None
        await self._http.aclose()

    async def listen(self) -> None:
        """Apply server events until the connection closes."""
        async for raw in self._ws:
            await self.handle_event(json.loads(raw))

    async def handle_event(self, event: Dict[str, Any]) -> None:
        self.state.apply(event)
        await self.flush_reads()

    async def flush_reads(self) -> None:
        for read in self.state.pending_reads():
            await self._send(read)

    # =========================================================================
    # History
    # =========================================================================

    async def _fetch_page(self, offset: int) -> Dict[str, Any]:
        response = await self._http.get(
            "/api/messages", params={"offset": offset, "limit": self.page_size}
        )
        response.raise_for_status()
        return response.json()

    async def load_history(self) -> None:
        """Fetch the newest page, replacing local messages."""
        self.state.apply_page(await self._fetch_page(0), initial=True)
        await self.flush_reads()

    async def load_more(self) -> bool:
        """Fetch the next older page. Returns False when nothing is left."""
        if not self.state.has_more:
            return False
        self.state.apply_page(await self._fetch_page(self.state.offset))
        await self.flush_reads()
        return True

    # =========================================================================
    # Outbound events
    # =========================================================================

    async def _send(self, payload: Dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("Not connected")
        await self._ws.send(json.dumps(payload))

    async def _send_typing(self, is_typing: bool) -> None:
        await self._send({"type": "typing", "isTyping": is_typing})

    async def send_text(self, text: str) -> None:
        """Send to the selected private peer, or publicly if none is selected."""
        if not text.strip():
            return
        peer = self.state.private_peer
        if peer is not None:
            await self._send({"type": "private_message", "to": peer["connectionId"], "message": text})
        else:
            await self._send({"type": "send_message", "message": text})
        await self.typing.stop()

    async def send_file(self, file: Any, file_type: str, file_name: str) -> None:
        peer = self.state.private_peer
        payload = {
            "type": "send_file",
            "file": file,
            "fileType": file_type,
            "fileName": file_name,
            "isPrivate": peer is not None,
        }
        if peer is not None:
            payload["to"] = peer["connectionId"]
        await self._send(payload)
        await self.typing.stop()

    async def react(self, message_id: int, emoji: str) -> None:
        await self._send(
            {"type": "reaction", "messageId": message_id, "emoji": emoji, "user": self.state.identity}
        )

    async def select_private(self, peer: Optional[Dict[str, Any]]) -> None:
        if self.state.select_private(peer):
            await self.flush_reads()
