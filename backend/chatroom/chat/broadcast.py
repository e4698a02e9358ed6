"""Broadcast router: the orchestrator behind the chat channel.

The router owns the five shared stores (presence, message log, typing,
reactions, read receipts). For each inbound event it mutates the stores and
returns the deliveries to send; it never touches sockets itself.

Concurrency:
    ``handle`` is synchronous and runs on the event loop, so each event's
    mutations complete before any other connection's event is looked at.
    Callers in other threads must serialize calls to ``handle``.

Audience rules:
    - Broadcast deliveries go to every live connection, originator included,
      so clients render from server echoes rather than local guesses.
    - Private messages and private files go to the target and the sender
      only and are never logged.
"""
import itertools
import logging
from typing import Callable, Iterator, List, Optional, Tuple

from .events import (
    Delivery,
    Disconnect,
    InboundEvent,
    MarkRead,
    MessageEvent,
    PrivateMessage,
    React,
    ReactionAdded,
    ReadReceipt,
    SendFile,
    SendMessage,
    Typing,
    TypingUsers,
    UserJoin,
    UserJoined,
    UserLeft,
    UserList,
)
from .history import DEFAULT_HISTORY_LIMIT, MessageLog
from .presence import ANONYMOUS, PresenceRegistry
from .reactions import ReactionAggregator
from .receipts import ReadReceiptTracker
from .schemas import ChatMessage, MessageKind, utc_timestamp
from .typing_tracker import TypingTracker

logger = logging.getLogger(__name__)


class BroadcastRouter:
    """Routes inbound chat events to the stores and decides who hears what.

    Args:
        history_limit: Capacity of the public message log.
        anonymous_name: Sender name used before a connection joins.
        clock: Returns the wall-clock timestamp string for new messages.
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        anonymous_name: str = ANONYMOUS,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.presence = PresenceRegistry(anonymous_name)
        self.receipts = ReadReceiptTracker()
        self.history = MessageLog(
            history_limit, on_evict=lambda message: self.receipts.forget(message.id)
        )
        self.typing = TypingTracker()
        self.reactions = ReactionAggregator(self.history)
        self._clock = clock
        self._ids: Iterator[int] = itertools.count(1)

    def handle(self, connection_id: str, event: InboundEvent) -> List[Delivery]:
        """Apply one inbound event and return the deliveries it produces."""
        if isinstance(event, UserJoin):
            return self._on_join(connection_id, event)
        if isinstance(event, SendMessage):
            return self._on_send(connection_id, event)
        if isinstance(event, React):
            return self._on_reaction(connection_id, event)
        if isinstance(event, MarkRead):
            return self._on_read(connection_id, event)
        if isinstance(event, Typing):
            return self._on_typing(connection_id, event)
        if isinstance(event, PrivateMessage):
            return self._on_private_message(connection_id, event)
        if isinstance(event, SendFile):
            return self._on_send_file(connection_id, event)
        if isinstance(event, Disconnect):
            return self._on_disconnect(connection_id)
        raise TypeError(f"Unhandled event type: {type(event).__name__}")

    # =========================================================================
    # Presence
    # =========================================================================

    def _presence_update(self) -> Delivery:
        return Delivery(UserList(users=self.presence.list()))

    def _typing_update(self) -> Delivery:
        return Delivery(TypingUsers(users=self.typing.currently_typing()))

    def _on_join(self, connection_id: str, event: UserJoin) -> List[Delivery]:
        identity = event.username.strip()
        if not identity:
            logger.warning("Ignoring join with empty username from %s", connection_id)
            return []

        self.presence.join(connection_id, identity)
        logger.info("%s joined the chat (%s)", identity, connection_id)
        return [
            self._presence_update(),
            Delivery(UserJoined(username=identity, id=connection_id)),
        ]

    def _on_disconnect(self, connection_id: str) -> List[Delivery]:
        deliveries: List[Delivery] = []
        session = self.presence.leave(connection_id)
        self.typing.clear(connection_id)

        if session is not None:
            logger.info("%s left the chat (%s)", session.identity, connection_id)
            deliveries.append(Delivery(UserLeft(username=session.identity, id=connection_id)))

        deliveries.append(self._presence_update())
        deliveries.append(self._typing_update())
        return deliveries

    def _on_typing(self, connection_id: str, event: Typing) -> List[Delivery]:
        session = self.presence.get(connection_id)
        if session is None:
            return []
        self.typing.set_typing(connection_id, session.identity, event.isTyping)
        return [self._typing_update()]

    # =========================================================================
    # Messages
    # =========================================================================

    def _new_message(self, connection_id: str, kind: MessageKind, **fields) -> ChatMessage:
        return ChatMessage(
            id=next(self._ids),
            kind=kind,
            sender=self.presence.resolve(connection_id),
            senderId=connection_id,
            isPrivate=kind.is_private,
            timestamp=self._clock(),
            **fields,
        )

    def _private_targets(self, connection_id: str, to: str) -> Tuple[str, ...]:
        if to == connection_id:
            return (connection_id,)
        return (to, connection_id)

    def _receiver_identity(self, to: str) -> Optional[str]:
        session = self.presence.get(to)
        return session.identity if session else None

    def _on_send(self, connection_id: str, event: SendMessage) -> List[Delivery]:
        if not event.message.strip():
            logger.debug("Ignoring empty message from %s", connection_id)
            return []

        message = self.history.append(
            self._new_message(connection_id, MessageKind.TEXT, message=event.message)
        )
        logger.debug("Message %s from %s", message.id, message.sender)
        return [Delivery(MessageEvent(type="receive_message", message=message))]

    def _on_private_message(self, connection_id: str, event: PrivateMessage) -> List[Delivery]:
        message = self._new_message(
            connection_id,
            MessageKind.PRIVATE_TEXT,
            message=event.message,
            recipientId=event.to,
            receiver=self._receiver_identity(event.to),
        )
        if message.receiver is None:
            logger.debug("Private message %s target %s is not present", message.id, event.to)
        return [
            Delivery(
                MessageEvent(type="private_message", message=message),
                targets=self._private_targets(connection_id, event.to),
            )
        ]

    def _on_send_file(self, connection_id: str, event: SendFile) -> List[Delivery]:
        body = dict(file=event.file, fileType=event.fileType, fileName=event.fileName)

        if event.isPrivate and event.to:
            message = self._new_message(
                connection_id,
                MessageKind.PRIVATE_FILE,
                recipientId=event.to,
                receiver=self._receiver_identity(event.to),
                **body,
            )
            return [
                Delivery(
                    MessageEvent(type="file_message", message=message),
                    targets=self._private_targets(connection_id, event.to),
                )
            ]

        message = self.history.append(self._new_message(connection_id, MessageKind.FILE, **body))
        logger.debug("File message %s (%s) from %s", message.id, message.fileName, message.sender)
        return [Delivery(MessageEvent(type="file_message", message=message))]

    # =========================================================================
    # Reactions and read receipts
    # =========================================================================

    def _on_reaction(self, connection_id: str, event: React) -> List[Delivery]:
        identity = event.user or self.presence.resolve(connection_id)
        if not self.reactions.react(event.messageId, event.emoji, identity):
            return []
        return [Delivery(ReactionAdded(messageId=event.messageId, emoji=event.emoji, user=identity))]

    def _on_read(self, connection_id: str, event: MarkRead) -> List[Delivery]:
        identity = event.username or self.presence.resolve(connection_id)
        readers = self.receipts.mark_read(event.messageId, identity)
        if readers is None:
            return []
        return [Delivery(ReadReceipt(messageId=event.messageId, readers=readers))]
