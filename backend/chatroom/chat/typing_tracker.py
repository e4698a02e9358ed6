"""Typing tracker: who is composing a message right now.

Advisory UI state only. Clients decide when typing starts and stops; the
server just records the flag and clears it on disconnect.
"""
from typing import Dict, List


class TypingTracker:
    def __init__(self) -> None:
        # connection_id -> identity, present only while typing
        self._typing: Dict[str, str] = {}

    def set_typing(self, connection_id: str, identity: str, is_typing: bool) -> None:
        if is_typing:
            self._typing[connection_id] = identity
        else:
            self._typing.pop(connection_id, None)

    def clear(self, connection_id: str) -> None:
        self._typing.pop(connection_id, None)

    def currently_typing(self) -> List[str]:
        return list(self._typing.values())
