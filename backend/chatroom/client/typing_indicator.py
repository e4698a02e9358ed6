"""Client-local typing indicator with an idle timer.

The server does not expire typing state. The client sends ``typing(true)``
on the first keystroke and ``typing(false)`` once input has been quiet for
``quiet_period`` seconds, or immediately when a message is sent.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

# Seconds of no input before typing is reported as stopped
DEFAULT_QUIET_PERIOD = 1.2

SendTyping = Callable[[bool], Awaitable[None]]


class TypingIndicator:
    def __init__(self, send: SendTyping, quiet_period: float = DEFAULT_QUIET_PERIOD) -> None:
        self._send = send
        self.quiet_period = quiet_period
        self.active = False
        self._timer: Optional[asyncio.Task] = None

    async def on_input(self) -> None:
        """Record a keystroke: start typing if idle and restart the quiet timer."""
        if not self.active:
            self.active = True
            await self._send(True)
        self._cancel_timer()
        self._timer = asyncio.create_task(self._expire())

    async def stop(self) -> None:
        """Report typing stopped now (e.g. after sending a message)."""
        self._cancel_timer()
        if self.active:
            self.active = False
            await self._send(False)

    async def _expire(self) -> None:
        await asyncio.sleep(self.quiet_period)
        self._timer = None
        if self.active:
            self.active = False
            await self._send(False)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
