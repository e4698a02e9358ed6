"""Read-receipt tracker.

Kept as a side table keyed by message ID rather than on the message, since
private messages are not in the log but share the same ID space. Entries for
public messages are forgotten when the log evicts them; entries for private
messages have no server-side parent and are kept for the process lifetime.
"""
from typing import Dict, List, Optional


class ReadReceiptTracker:
    def __init__(self) -> None:
        # message_id -> identities in the order they read it
        self._readers: Dict[int, List[str]] = {}

    def mark_read(self, message_id: int, identity: str) -> Optional[List[str]]:
        """Mark a message as read by an identity.

        Returns:
            The full reader list if the identity was newly added, None if it
            had already read the message.
        """
        readers = self._readers.setdefault(message_id, [])
        if identity in readers:
            return None
        readers.append(identity)
        return list(readers)

    def readers(self, message_id: int) -> List[str]:
        return list(self._readers.get(message_id, []))

    def forget(self, message_id: int) -> None:
        self._readers.pop(message_id, None)
