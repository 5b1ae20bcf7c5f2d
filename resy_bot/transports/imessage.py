"""
macOS Messages transport.

Inbound: polls the local Messages database (``chat.db``, read-only) for rows
newer than the last seen ``ROWID``. Outbound: sends through the Messages app
with ``osascript``; the text and chat id are passed as script arguments so
they are never interpolated into AppleScript source.

Requires Full Disk Access for the process reading ``chat.db``.
"""

import asyncio
import logging
import sqlite3
from contextlib import closing
from typing import Optional

from resy_bot.schemas.message_schema import InboundMessage
from resy_bot.transports.base import HandlerDispatcher, MessageHandler

logger = logging.getLogger(__name__)

NEW_MESSAGES_QUERY = """
SELECT
    message.ROWID,
    message.guid,
    message.text,
    message.attributedBody,
    message.is_from_me,
    message.associated_message_type,
    handle.id,
    chat.guid
FROM message
LEFT JOIN handle ON message.handle_id = handle.ROWID
LEFT JOIN chat_message_join ON chat_message_join.message_id = message.ROWID
LEFT JOIN chat ON chat.ROWID = chat_message_join.chat_id
WHERE message.ROWID > ?
ORDER BY message.ROWID
"""

MAX_ROWID_QUERY = "SELECT COALESCE(MAX(ROWID), 0) FROM message"

SEND_SCRIPT = """
on run argv
    set messageText to item 1 of argv
    set chatId to item 2 of argv
    tell application "Messages"
        send messageText to chat id chatId
    end tell
end run
"""


class SendError(Exception):
    """osascript exited with a non-zero status."""


def decode_attributed_body(blob: Optional[bytes]) -> str:
    """
    Extract the plain text from an ``attributedBody`` typedstream archive.

    Newer macOS versions often leave ``message.text`` NULL and keep the body
    only here. The string follows the ``NSString`` class marker, a fixed
    five-byte header and a length prefix: one byte below 0x80, otherwise
    0x81 or 0x82 followed by a little-endian 16- or 32-bit length.
    """
    if not blob:
        return ""
    _, marker, rest = blob.partition(b"NSString")
    if not marker or len(rest) < 6:
        return ""
    payload = rest[5:]
    if payload[0] == 0x81:
        length, start = int.from_bytes(payload[1:3], "little"), 3
    elif payload[0] == 0x82:
        length, start = int.from_bytes(payload[1:5], "little"), 5
    else:
        length, start = payload[0], 1
    return payload[start:start + length].decode("utf-8", errors="replace")


def row_to_message(row: tuple) -> InboundMessage:
    """Map one ``NEW_MESSAGES_QUERY`` row; tapbacks have a non-zero associated type."""
    _, guid, text, attributed_body, is_from_me, associated_type, sender, chat_guid = row
    if not text:
        text = decode_attributed_body(attributed_body)
    return InboundMessage(
        guid=guid,
        sender=sender or "",
        chat_id=chat_guid or "",
        text=text,
        is_from_me=bool(is_from_me),
        is_reaction=bool(associated_type),
    )


class IMessageTransport:
    """Watches ``chat.db`` and sends replies through Messages.app."""

    echoes_sent = True

    def __init__(self, db_path: str, poll_interval: float = 2.0) -> None:
        self.db_path = db_path
        self.poll_interval = poll_interval
        self._last_rowid: Optional[int] = None
        self._stopped = asyncio.Event()
        self._dispatcher: Optional[HandlerDispatcher] = None

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)

    def _max_rowid(self) -> int:
        with closing(self._connect()) as conn:
            return conn.execute(MAX_ROWID_QUERY).fetchone()[0]

    def _fetch_since(self, rowid: int) -> list[tuple]:
        with closing(self._connect()) as conn:
            return conn.execute(NEW_MESSAGES_QUERY, (rowid,)).fetchall()

    async def poll_once(self) -> list[InboundMessage]:
        """Read rows newer than the last poll and advance the cursor."""
        if self._last_rowid is None:
            self._last_rowid = await asyncio.to_thread(self._max_rowid)
            return []
        rows = await asyncio.to_thread(self._fetch_since, self._last_rowid)
        if rows:
            self._last_rowid = rows[-1][0]
        return [row_to_message(row) for row in rows]

    async def start(self, handler: MessageHandler) -> None:
        self._dispatcher = HandlerDispatcher(handler)
        await self.poll_once()
        logger.info("Watching %s every %.1fs", self.db_path, self.poll_interval)
        while not self._stopped.is_set():
            try:
                messages = await self.poll_once()
            except sqlite3.Error as exc:
                logger.error("Polling %s failed: %s", self.db_path, exc)
                messages = []
            for msg in messages:
                self._dispatcher.dispatch(msg)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Stopped watching")

    async def send(self, chat_id: str, text: str) -> None:
        proc = await asyncio.create_subprocess_exec(
            "osascript", "-e", SEND_SCRIPT, text, chat_id,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise SendError(
                f"osascript exited {proc.returncode}: {stderr.decode(errors='replace').strip()}"
            )
        logger.debug("Sent %d chars to %s", len(text), chat_id)

    def stop(self) -> None:
        self._stopped.set()

    async def close(self) -> None:
        if self._dispatcher is not None:
            await self._dispatcher.drain()
