"""
Interactive terminal transport for local development.

Every line typed is delivered as a self-authored message in chat
``console``; replies are printed. Type ``quit`` to stop.
"""

import asyncio
import sys
import uuid
from typing import Optional, TextIO

from resy_bot.schemas.message_schema import InboundMessage
from resy_bot.transports.base import HandlerDispatcher, MessageHandler

CONSOLE_CHAT_ID = "console"
QUIT_COMMANDS = ("quit", "exit", "q")

GREEN = "\033[92m"
BLUE = "\033[94m"
DIM = "\033[2m"
RESET = "\033[0m"


class ConsoleTransport:
    """Reads stdin, writes replies to stdout."""

    echoes_sent = False

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._stopped = asyncio.Event()
        self._dispatcher: Optional[HandlerDispatcher] = None

    async def start(self, handler: MessageHandler) -> None:
        self._dispatcher = HandlerDispatcher(handler)
        self._write(f"{DIM}Type a request, or 'quit' to exit.{RESET}\n")
        while not self._stopped.is_set():
            line = await asyncio.to_thread(self.stdin.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            if text.lower() in QUIT_COMMANDS:
                break
            self._dispatcher.dispatch(InboundMessage(
                guid=uuid.uuid4().hex,
                sender=CONSOLE_CHAT_ID,
                chat_id=CONSOLE_CHAT_ID,
                text=text,
                is_from_me=True,
            ))
        await self._dispatcher.drain()

    async def send(self, chat_id: str, text: str) -> None:
        self._write(f"\n{GREEN}{text}{RESET}\n\n{BLUE}> {RESET}")

    def stop(self) -> None:
        self._stopped.set()

    async def close(self) -> None:
        if self._dispatcher is not None:
            await self._dispatcher.drain()

    def _write(self, text: str) -> None:
        self.stdout.write(text)
        self.stdout.flush()
