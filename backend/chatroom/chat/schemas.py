"""Pydantic schemas for chat records.

These are the records held by the server-side stores and sent inside
outbound events:
    - Session: one live connection paired with a display identity
    - ChatMessage: a public or private text/file message
    - MessagePage: one page of the public message log
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    """Current wall-clock time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


class MessageKind(str, Enum):
    """Kind of chat message.

    Attributes:
        TEXT: Public text message, kept in the message log.
        FILE: Public file message, kept in the message log.
        PRIVATE_TEXT: Text delivered to one recipient and the sender only.
        PRIVATE_FILE: File delivered to one recipient and the sender only.
    """
    TEXT = "text"
    FILE = "file"
    PRIVATE_TEXT = "private_text"
    PRIVATE_FILE = "private_file"

    @property
    def is_private(self) -> bool:
        return self in (MessageKind.PRIVATE_TEXT, MessageKind.PRIVATE_FILE)


class Session(BaseModel):
    """A live connection and the identity it joined with.

    Attributes:
        connectionId: Server-assigned identifier of the connection.
        identity: Display name chosen on join.
    """
    connectionId: str = Field(..., description="Transient connection ID")
    identity: str = Field(..., description="Display name shown in UI")


class ChatMessage(BaseModel):
    """Complete chat message with all metadata.

    ``id`` comes from a monotonic counter and ``timestamp`` is wall-clock
    time; they are independent. ``reactions`` is the only field mutated
    after creation. Read receipts are tracked separately, keyed by ``id``.
    """
    id: int = Field(..., description="Monotonic message ID")
    kind: MessageKind = Field(default=MessageKind.TEXT, description="Message kind")
    sender: str = Field(..., description="Display name of the sender")
    senderId: str = Field(..., description="Connection ID of the sender")
    recipientId: Optional[str] = Field(
        default=None, description="Connection ID of the recipient (private only)"
    )
    receiver: Optional[str] = Field(
        default=None, description="Display name of the recipient at send time (private only)"
    )
    isPrivate: bool = Field(default=False, description="Visible to sender and recipient only")
    message: Optional[str] = Field(default=None, description="Text body")
    file: Optional[Any] = Field(default=None, description="Opaque file payload")
    fileType: Optional[str] = Field(default=None, description="Declared media type")
    fileName: Optional[str] = Field(default=None, description="Original file name")
    timestamp: str = Field(default_factory=utc_timestamp, description="ISO-8601 UTC")
    reactions: Dict[str, List[str]] = Field(
        default_factory=dict, description="Reaction symbol -> reacting identities"
    )


class MessagePage(BaseModel):
    """One page of the public message log, oldest first."""
    messages: List[ChatMessage] = Field(default_factory=list)
    total: int = Field(..., description="Messages currently in the log")
    offset: int = Field(..., description="Messages skipped from the newest end")
    limit: int = Field(..., description="Maximum page size requested")
