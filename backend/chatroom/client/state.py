"""Client-side state reconciliation.

``ClientState`` merges live server events and pages fetched from
``GET /api/messages`` into one message sequence, and derives the public feed
and private thread views from it on demand.

Private threads are matched on identity *and* the transient connection ID a
message was sent from. After a reconnect the peer has a new connection ID,
so older private messages no longer match the thread. This is a known
limitation of the wire format, kept for compatibility with other clients.
"""
import logging
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

# Live event types that carry a new message
MESSAGE_EVENTS = ("receive_message", "private_message", "file_message")


class ClientState:
    """View model for one chat client.

    Messages are kept as the plain dicts received from the server.

    Args:
        identity: Local display name.
        connection_id: Local connection ID, known after ``connected``.
    """

    def __init__(self, identity: str, connection_id: Optional[str] = None) -> None:
        self.identity = identity
        self.connection_id = connection_id

        self.messages: List[Dict[str, Any]] = []
        self.users: List[Dict[str, Any]] = []
        self.typing_users: List[str] = []
        self.read_receipts: Dict[int, List[str]] = {}
        self.private_peer: Optional[Dict[str, Any]] = None
        self.search = ""

        # Pagination state, fed by page fetches only
        self.offset = 0
        self.total = 0
        self.has_more = True

        # Message IDs we already asked the server to mark read
        self._reads_sent: Set[int] = set()

    # =========================================================================
    # Inbound events
    # =========================================================================

    def apply(self, event: Dict[str, Any]) -> None:
        """Merge one outbound server event into local state."""
        event_type = event.get("type")

        if event_type in MESSAGE_EVENTS:
            message = {k: v for k, v in event.items() if k != "type"}
            if message.get("id") in self._known_ids():
                logger.debug("Skipping duplicate message %s", message.get("id"))
                return
            if event_type == "private_message":
                message["isPrivate"] = True
            message.setdefault("reactions", {})
            self.messages.append(message)
        elif event_type == "connected":
            self.connection_id = event.get("connectionId")
        elif event_type == "user_list":
            self.users = list(event.get("users", []))
        elif event_type == "typing_users":
            self.typing_users = [u for u in event.get("users", []) if u != self.identity]
        elif event_type == "reaction":
            self._apply_reaction(event["messageId"], event["emoji"], event["user"])
        elif event_type == "read_receipt":
            self.read_receipts[event["messageId"]] = list(event.get("readers", []))
        elif event_type in ("user_joined", "user_left"):
            logger.debug("%s: %s", event_type, event.get("username"))
        else:
            logger.debug("Ignoring unknown event type %r", event_type)

    def _apply_reaction(self, message_id: int, emoji: str, user: str) -> None:
        for message in self.messages:
            if message.get("id") == message_id:
                reactors = message.setdefault("reactions", {}).setdefault(emoji, [])
                if user not in reactors:
                    reactors.append(user)

    def _known_ids(self) -> Set[int]:
        return {m["id"] for m in self.messages if m.get("id") is not None}

    def apply_page(self, page: Dict[str, Any], initial: bool = False) -> None:
        """Merge a page from ``GET /api/messages``.

        The initial page replaces the local sequence; later pages hold older
        messages and are prepended. Live messages do not move the offset, so
        an older page can overlap messages already held; those are skipped.
        """
        fetched = list(page.get("messages", []))
        total = page.get("total", 0)
        if initial:
            self.messages = fetched
            self.offset = len(fetched)
        else:
            known = self._known_ids()
            older = [m for m in fetched if m.get("id") not in known]
            self.messages = older + self.messages
            self.offset += len(fetched)
        self.total = total
        self.has_more = total > self.offset

    # =========================================================================
    # Views
    # =========================================================================

    def select_private(self, peer: Optional[Dict[str, Any]]) -> bool:
        """Switch to a private thread with ``peer``, or back to public with None.

        Selecting yourself is refused. Returns whether the view changed.
        """
        if peer is not None and peer.get("identity") == self.identity:
            return False
        self.private_peer = peer
        if peer is not None:
            self.typing_users = []
        return True

    def _in_thread(self, message: Dict[str, Any], peer: Dict[str, Any]) -> bool:
        if not message.get("isPrivate"):
            return False
        sent_by_me = (
            message.get("sender") == self.identity
            and message.get("senderId") == self.connection_id
            and message.get("receiver") == peer.get("identity")
        )
        sent_by_peer = (
            message.get("sender") == peer.get("identity")
            and message.get("senderId") == peer.get("connectionId")
            and message.get("receiver") == self.identity
        )
        return sent_by_me or sent_by_peer

    def public_view(self) -> List[Dict[str, Any]]:
        return [m for m in self.messages if not m.get("isPrivate")]

    def thread_view(self, peer: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [m for m in self.messages if self._in_thread(m, peer)]

    def active_view(self) -> List[Dict[str, Any]]:
        if self.private_peer is not None:
            return self.thread_view(self.private_peer)
        return self.public_view()

    def visible_messages(self) -> List[Dict[str, Any]]:
        """Active view narrowed by the search term (text and file name)."""
        term = self.search.strip().lower()
        view = self.active_view()
        if not term:
            return view
        return [
            m for m in view
            if term in f"{m.get('message') or ''} {m.get('fileName') or ''}".lower()
        ]

    # =========================================================================
    # Read receipts
    # =========================================================================

    def pending_reads(self) -> List[Dict[str, Any]]:
        """Read events for messages in the active view not yet read by us.

        Call this whenever messages, the selected thread or the identity
        change. Each message is requested at most once.
        """
        events = []
        for message in self.active_view():
            message_id = message.get("id")
            if message_id is None or message_id in self._reads_sent:
                continue
            if self.identity in self.read_receipts.get(message_id, []):
                continue
            self._reads_sent.add(message_id)
            events.append({"type": "read", "messageId": message_id, "username": self.identity})
        return events
