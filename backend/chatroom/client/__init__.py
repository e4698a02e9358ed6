"""Python chat client and client-side state reconciliation."""
from .session import ChatClient
from .state import ClientState
from .typing_indicator import TypingIndicator

__all__ = ["ChatClient", "ClientState", "TypingIndicator"]
