"""Reaction aggregator for messages held in the public log."""
import logging

from .history import MessageLog

logger = logging.getLogger(__name__)


class ReactionAggregator:
    """Adds reactions to the reaction map of logged messages.

    Reactions live on the message itself, so they disappear together with
    it when the log evicts it.
    """

    def __init__(self, log: MessageLog) -> None:
        self._log = log

    def react(self, message_id: int, symbol: str, identity: str) -> bool:
        """Record that ``identity`` reacted to a message with ``symbol``.

        Repeating the same reaction is a no-op.

        Returns:
            True if the message exists, False if it is unknown or evicted.
        """
        message = self._log.find(message_id)
        if message is None:
            logger.debug("Reaction on unknown message %s dropped", message_id)
            return False

        reactors = message.reactions.setdefault(symbol, [])
        if identity not in reactors:
            reactors.append(identity)
        return True
