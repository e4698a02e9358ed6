"""Chat router providing WebSocket and HTTP endpoints.

This module provides:
    - GET /api/messages: Paginated public message history
    - GET /api/users: Current presence list
    - WebSocket /ws: Real-time chat event channel

The WebSocket protocol supports:
    - Connection ID delivery on connect
    - User join/leave notifications and presence list updates
    - Public, private and file messages
    - Typing indicators
    - Reactions
    - Read receipts

Protocol Message Types (inbound):
    - user_join, send_message, reaction, read, typing,
      private_message, send_file
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from chatroom.config import get_config

from .broadcast import BroadcastRouter
from .events import Disconnect, parse_inbound
from .history import coerce_page_params
from .manager import manager
from .schemas import MessagePage, Session

logger = logging.getLogger(__name__)

router = APIRouter()

_broadcast_router: Optional[BroadcastRouter] = None


def get_broadcast_router() -> BroadcastRouter:
    """Return the process-wide broadcast router, creating it from config on first use."""
    global _broadcast_router
    if _broadcast_router is None:
        chat_config = get_config().chat
        _broadcast_router = BroadcastRouter(
            history_limit=chat_config.history_limit,
            anonymous_name=chat_config.anonymous_name,
        )
    return _broadcast_router


def reset_broadcast_router() -> None:
    """Drop all chat state (for testing)."""
    global _broadcast_router
    _broadcast_router = None


@router.get("/api/messages", response_model=MessagePage)
async def get_messages(
    offset: Optional[str] = Query(None, description="Messages to skip, counted from the newest"),
    limit: Optional[str] = Query(None, description="Maximum number of messages to return"),
) -> MessagePage:
    """Get a page of public message history.

    Pagination counts backward from the newest message so clients can "load
    older messages" by increasing ``offset``. Non-numeric parameters fall
    back to the defaults instead of being rejected.

    Example:
        GET /api/messages?offset=0&limit=20
        GET /api/messages?offset=20&limit=20
    """
    page_offset, page_limit = coerce_page_params(
        offset, limit, default_limit=get_config().chat.default_page_size
    )
    return get_broadcast_router().history.paginate(page_offset, page_limit)


@router.get("/api/users", response_model=List[Session])
async def get_users() -> List[Session]:
    """Get the sessions currently present, in join order."""
    return get_broadcast_router().presence.list()


@router.websocket("/ws")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chat event channel.

    Protocol Flow:
        1. Client connects -> Server sends: {type: "connected", connectionId}
        2. Client sends: {type: "user_join", username}
           -> Server broadcasts: user_list, user_joined
        3. Client sends chat events; the server applies each one and
           broadcasts or targets the results
        4. On disconnect -> Server broadcasts: user_left, user_list, typing_users

    Malformed frames are logged and ignored; the connection stays open.
    """
    chat = get_broadcast_router()
    connection_id = await manager.connect(websocket)
    logger.info(
        f"[WS] Connection {connection_id} open. "
        f"{manager.get_connection_count()} connections"
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"[WS] Ignoring non-JSON frame from {connection_id}")
                continue

            event = parse_inbound(data)
            if event is None:
                logger.warning(
                    f"[WS] Ignoring malformed frame from {connection_id}: type={data.get('type', '?') if isinstance(data, dict) else '?'}"
                )
                continue

            logger.debug("[WS] %s received: type=%s", connection_id, event.type)
            await manager.deliver_all(chat.handle(connection_id, event))

    except WebSocketDisconnect:
        logger.debug(f"[WS] Client {connection_id} disconnected")
    finally:
        manager.disconnect(connection_id)
        await manager.deliver_all(chat.handle(connection_id, Disconnect()))
        logger.info(
            f"[WS] Connection {connection_id} closed. "
            f"{manager.get_connection_count()} connections"
        )
