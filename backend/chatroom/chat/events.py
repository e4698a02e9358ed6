"""Event contract for the chat WebSocket channel.

Every frame is a JSON object carrying a ``type`` discriminator. Inbound
frames are parsed into one model per event kind; the broadcast router
dispatches on the model class, never on the raw string.

Inbound (client -> server):
    - user_join: {username}
    - send_message: {message}
    - reaction: {messageId, emoji, user}
    - read: {messageId, username}
    - typing: {isTyping}
    - private_message: {to, message}
    - send_file: {file, fileType, fileName, isPrivate, to}

Outbound (server -> client):
    - connected, user_list, user_joined, user_left, receive_message,
      private_message, file_message, reaction, read_receipt, typing_users
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .schemas import ChatMessage, Session


# =============================================================================
# Inbound events
# =============================================================================


class UserJoin(BaseModel):
    type: Literal["user_join"] = "user_join"
    username: str = ""


class SendMessage(BaseModel):
    type: Literal["send_message"] = "send_message"
    message: str = ""


class React(BaseModel):
    type: Literal["reaction"] = "reaction"
    messageId: int
    emoji: str
    user: Optional[str] = None


class MarkRead(BaseModel):
    type: Literal["read"] = "read"
    messageId: int
    username: Optional[str] = None


class Typing(BaseModel):
    type: Literal["typing"] = "typing"
    isTyping: bool = True


class PrivateMessage(BaseModel):
    type: Literal["private_message"] = "private_message"
    to: str
    message: str = ""


class SendFile(BaseModel):
    type: Literal["send_file"] = "send_file"
    file: Any = None
    fileType: Optional[str] = None
    fileName: Optional[str] = None
    isPrivate: bool = False
    to: Optional[str] = None


class Disconnect(BaseModel):
    """Raised by the transport when a connection closes; never read off the wire."""
    type: Literal["disconnect"] = "disconnect"


WireEvent = Annotated[
    Union[UserJoin, SendMessage, React, MarkRead, Typing, PrivateMessage, SendFile],
    Field(discriminator="type"),
]

InboundEvent = Union[
    UserJoin, SendMessage, React, MarkRead, Typing, PrivateMessage, SendFile, Disconnect
]

_wire_adapter: TypeAdapter = TypeAdapter(WireEvent)


def parse_inbound(data: Any) -> Optional[InboundEvent]:
    """Parse a decoded JSON frame into an inbound event.

    Returns None for anything that is not a well-formed client event.
    """
    if not isinstance(data, dict):
        return None
    try:
        return _wire_adapter.validate_python(data)
    except ValidationError:
        return None


# =============================================================================
# Outbound events
# =============================================================================


class OutboundEvent(BaseModel):
    """Base for server -> client events."""

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Connected(OutboundEvent):
    type: Literal["connected"] = "connected"
    connectionId: str


class UserList(OutboundEvent):
    type: Literal["user_list"] = "user_list"
    users: List[Session] = Field(default_factory=list)


class UserJoined(OutboundEvent):
    type: Literal["user_joined"] = "user_joined"
    username: str
    id: str


class UserLeft(OutboundEvent):
    type: Literal["user_left"] = "user_left"
    username: str
    id: str


class MessageEvent(OutboundEvent):
    """A new message; sent flattened as ``{type, **message}``."""
    type: Literal["receive_message", "private_message", "file_message"]
    message: ChatMessage

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, **self.message.model_dump(mode="json")}


class ReactionAdded(OutboundEvent):
    type: Literal["reaction"] = "reaction"
    messageId: int
    emoji: str
    user: str


class ReadReceipt(OutboundEvent):
    type: Literal["read_receipt"] = "read_receipt"
    messageId: int
    readers: List[str] = Field(default_factory=list)


class TypingUsers(OutboundEvent):
    type: Literal["typing_users"] = "typing_users"
    users: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Delivery:
    """An outbound event and its audience.

    ``targets`` of None means every live connection; otherwise only the
    listed connection IDs (missing ones are skipped by the transport).
    """
    event: OutboundEvent
    targets: Optional[Tuple[str, ...]] = None

    @property
    def is_broadcast(self) -> bool:
        return self.targets is None
