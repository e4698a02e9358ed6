"""Bounded public message log with backward-counting pagination.

Only public messages (text and file) are appended here. Private messages are
delivered point-to-point and never replayed.
"""
import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Tuple

from .schemas import ChatMessage, MessagePage

logger = logging.getLogger(__name__)

# Default log capacity; oldest messages are evicted first
DEFAULT_HISTORY_LIMIT = 100

# Defaults used when pagination parameters are absent or not numeric
DEFAULT_PAGE_OFFSET = 0
DEFAULT_PAGE_SIZE = 20


def _to_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def coerce_page_params(
    offset: Any = None, limit: Any = None, default_limit: int = DEFAULT_PAGE_SIZE
) -> Tuple[int, int]:
    """Coerce raw pagination parameters to non-negative integers.

    Absent or non-numeric values fall back to the defaults; negative values
    clamp to zero.

    Example:
        >>> coerce_page_params("5", "abc")
        (5, 20)
    """
    return (
        max(_to_int(offset, DEFAULT_PAGE_OFFSET), 0),
        max(_to_int(limit, default_limit), 0),
    )


class MessageLog:
    """Append-only FIFO store of public messages, capped at ``capacity``.

    ``on_evict`` is called with each message dropped from the head, so side
    tables keyed by message ID can let go of it too.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_LIMIT,
        on_evict: Optional[Callable[[ChatMessage], None]] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._on_evict = on_evict
        self._messages: Deque[ChatMessage] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: ChatMessage) -> ChatMessage:
        """Add a message to the tail, evicting the oldest past capacity.

        Arrival order is authoritative for position and eviction.
        """
        self._messages.append(message)
        while len(self._messages) > self.capacity:
            evicted = self._messages.popleft()
            logger.debug("Evicted message %s from history", evicted.id)
            if self._on_evict is not None:
                self._on_evict(evicted)
        return message

    def find(self, message_id: int) -> Optional[ChatMessage]:
        """Look up a retained message by ID."""
        for message in reversed(self._messages):
            if message.id == message_id:
                return message
        return None

    def page(self, offset: int = DEFAULT_PAGE_OFFSET, limit: int = DEFAULT_PAGE_SIZE) -> List[ChatMessage]:
        """Return a window of messages counting backward from the newest.

        The window is ``[total - offset - limit, total - offset)`` clamped to
        ``[0, total]`` and returned oldest first, so ``offset=0`` yields the
        newest ``limit`` messages and larger offsets load older ones.

        Args:
            offset: Number of newest messages to skip.
            limit: Maximum number of messages to return.

        Returns:
            List of messages, oldest first. Empty when offset >= total.
        """
        offset = max(offset, 0)
        limit = max(limit, 0)
        total = len(self._messages)
        end = max(total - offset, 0)
        start = max(end - limit, 0)
        return list(self._messages)[start:end]

    def paginate(self, offset: int = DEFAULT_PAGE_OFFSET, limit: int = DEFAULT_PAGE_SIZE) -> MessagePage:
        """Return a page together with the pagination envelope."""
        return MessagePage(
            messages=self.page(offset, limit),
            total=len(self._messages),
            offset=offset,
            limit=limit,
        )

    def all(self) -> List[ChatMessage]:
        return list(self._messages)
