"""Presence registry: live connections and the identities they joined with."""
import logging
from typing import Dict, List, Optional

from .schemas import Session

logger = logging.getLogger(__name__)

# Identity reported for connections that have not joined
ANONYMOUS = "Anonymous"


class PresenceRegistry:
    """Maps connection IDs to Sessions in join order.

    Rejoining on the same connection overwrites the identity and keeps the
    original position in the list.
    """

    def __init__(self, anonymous_name: str = ANONYMOUS) -> None:
        self.anonymous_name = anonymous_name
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def join(self, connection_id: str, identity: str) -> Session:
        session = Session(connectionId=connection_id, identity=identity)
        previous = self._sessions.get(connection_id)
        self._sessions[connection_id] = session
        if previous is not None and previous.identity != identity:
            logger.info(
                "Connection %s renamed %s -> %s", connection_id, previous.identity, identity
            )
        return session

    def leave(self, connection_id: str) -> Optional[Session]:
        """Remove a connection's session. Returns it, or None if absent."""
        return self._sessions.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def list(self) -> List[Session]:
        return list(self._sessions.values())

    def resolve(self, connection_id: str) -> str:
        """Identity bound to a connection, or the anonymous sentinel."""
        session = self._sessions.get(connection_id)
        return session.identity if session else self.anonymous_name
