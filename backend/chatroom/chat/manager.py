"""WebSocket connection manager for the chat channel.

This module tracks the live WebSocket for every connection ID and performs
the fan-out of deliveries produced by the broadcast router.

Key features:
    - Backend-assigned connection IDs (UUID4), never client-provided
    - Concurrent delivery with asyncio.gather()
    - Automatic dead connection cleanup
    - Targeted delivery that silently skips connections that are gone

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    It is NOT thread-safe for concurrent access from multiple threads.

Delivery is fire-and-forget: no acknowledgement, no backpressure, no retry.
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from fastapi import WebSocket

from .events import Connected, Delivery

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages live WebSocket connections keyed by connection ID."""

    def __init__(self) -> None:
        """Initialize empty connection manager."""
        # connection_id -> WebSocket, in connect order
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket connection and assign it a connection ID.

        The ID is sent to the client in a ``connected`` frame so it can
        recognise its own messages.

        Args:
            websocket: The WebSocket connection to accept.

        Returns:
            The backend-generated connection ID.
        """
        await websocket.accept()

        # Generate connection ID on backend (never trust client-provided IDs)
        connection_id = str(uuid.uuid4())
        self.active_connections[connection_id] = websocket
        logger.info(f"[Manager] Connection {connection_id} accepted")

        await websocket.send_json(Connected(connectionId=connection_id).to_wire())
        return connection_id

    def disconnect(self, connection_id: str) -> Optional[WebSocket]:
        """Forget a connection. Returns its WebSocket if it was registered."""
        return self.active_connections.pop(connection_id, None)

    def get_connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self.active_connections)

    async def deliver(self, delivery: Delivery) -> None:
        """Send one delivery to its audience.

        Broadcast deliveries go to every live connection. Targeted ones go to
        the listed connection IDs that are still live; the rest are skipped.
        """
        if delivery.is_broadcast:
            connection_ids = list(self.active_connections)
        else:
            connection_ids = [cid for cid in delivery.targets if cid in self.active_connections]
            skipped = len(delivery.targets) - len(connection_ids)
            if skipped:
                logger.debug(f"Skipped {skipped} unreachable target(s) for {delivery.event.type}")

        await self._send_many(connection_ids, delivery.event.to_wire())

    async def deliver_all(self, deliveries: Iterable[Delivery]) -> None:
        """Send deliveries in order, preserving per-connection event order."""
        for delivery in deliveries:
            await self.deliver(delivery)

    async def _send_many(self, connection_ids: List[str], message: Dict[str, Any]) -> None:
        if not connection_ids:
            return

        # Send to all connections concurrently
        results = await asyncio.gather(
            *[self._safe_send(self.active_connections[cid], message) for cid in connection_ids],
            return_exceptions=True
        )

        # Remove failed connections
        failed_connections = [
            cid for cid, success in zip(connection_ids, results)
            if success is not True
        ]
        self._cleanup_connections(failed_connections)

    async def _safe_send(self, connection: WebSocket, message: Dict[str, Any]) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Args:
            connection: The WebSocket to send to.
            message: JSON-serializable message to send.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, failed_connections: List[str]) -> None:
        """Remove failed connections.

        Presence for these connections is cleared when their receive loop
        sees the disconnect.
        """
        for cid in failed_connections:
            if self.active_connections.pop(cid, None) is not None:
                logger.debug(f"Removed dead connection {cid}")


# Global singleton instance used by all WebSocket handlers
manager = ConnectionManager()
