"""Message transport interface shared by the iMessage and console transports."""

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from resy_bot.schemas.message_schema import InboundMessage

logger = logging.getLogger(__name__)

MessageHandler = Callable[[InboundMessage], Awaitable[None]]


class Transport(Protocol):
    """Push-based message source with a send primitive."""

    # True when messages we send come back as inbound events.
    echoes_sent: bool

    async def start(self, handler: MessageHandler) -> None:
        """Deliver inbound events to ``handler`` until ``stop`` is called."""
        ...

    async def send(self, chat_id: str, text: str) -> None:
        ...

    def stop(self) -> None:
        ...

    async def close(self) -> None:
        """Release resources after ``start`` has returned."""
        ...


class HandlerDispatcher:
    """
    Runs each inbound event as its own task.

    Events are not awaited one after another, so an event arriving during a
    long turn reaches the gateway immediately (and is dropped there).
    """

    def __init__(self, handler: MessageHandler) -> None:
        self.handler = handler
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, msg: InboundMessage) -> asyncio.Task:
        task = asyncio.create_task(self.handler(msg))
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Message handler failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for in-flight handlers to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
