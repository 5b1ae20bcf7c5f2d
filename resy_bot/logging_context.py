"""Turn id logging context.

A turn is one inbound message the gateway accepted, from extraction through
the upstream calls to the reply it sent. The gateway sets the message guid
as the turn id once the message has passed its filters; every record logged
while that turn runs carries it as ``%(turn_id)s``. Records logged outside a
turn (startup, filtered or dropped messages) show ``-``.

Transports dispatch each message as its own asyncio task, and tasks run in a
copy of the context, so a turn id set in one message's task never leaks
into another's.

Usage:
    from resy_bot.logging_context import get_turn_logger, set_turn_id

    set_turn_id("p:0/6C1E0C7B-2A41-4F4D-9D57-3B7F5C1E2A90")
    logger = get_turn_logger(__name__)
    logger.info("Searching")  # record.turn_id == "p:0/6C1E0C7B-..."
"""

import logging
from contextvars import ContextVar

_turn_id: ContextVar[str] = ContextVar("turn_id", default="-")


def set_turn_id(turn_id: str) -> None:
    """Set the turn ID for the current async context."""
    _turn_id.set(turn_id)


def get_turn_id() -> str:
    """Retrieve the current turn ID."""
    return _turn_id.get()


class TurnIdFilter(logging.Filter):
    """Injects turn_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.turn_id = _turn_id.get()  # type: ignore[attr-defined]
        return True


def get_turn_logger(name: str) -> logging.Logger:
    """Return a logger with the TurnIdFilter attached.

    The filter adds ``turn_id`` to each record so formatters can
    include ``%(turn_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, TurnIdFilter) for f in logger.filters):
        logger.addFilter(TurnIdFilter())
    return logger
