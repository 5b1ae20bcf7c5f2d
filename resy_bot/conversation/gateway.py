"""
Message gateway between a push-based transport and the booking conversation.

Inbound events pass four gates before a turn runs:

1. Scope: self-authored, non-reaction, non-empty text in the configured chat.
2. Identity: each guid is handled at most once, even if redelivered.
3. Echo: replies we sent come back through the same channel and are
   discarded. Matched by exact text, then by a bounded prefix because long
   texts can arrive truncated. A matched entry is forgotten so the user can
   later type the same text themselves.
4. Single-flight: while a turn is in progress, new events are dropped.

Replies are only remembered for echo matching when the transport delivers
its own sends back as inbound events. A reply that fails to send is
forgotten again.

Turn failures become one error reply; the session is left as it was.
"""

from typing import Optional

from resy_bot.conversation.booking_flow import BookingConversation
from resy_bot.logging_context import get_turn_logger, set_turn_id
from resy_bot.prompts.reply_templates import build_error_reply
from resy_bot.schemas.message_schema import InboundMessage
from resy_bot.transports.base import Transport

logger = get_turn_logger(__name__)

ECHO_PREFIX_LENGTH = 200


class MessageGateway:
    """Filters transport events and runs at most one conversation turn at a time."""

    def __init__(
        self,
        conversation: BookingConversation,
        transport: Transport,
        recipient_id: str = "",
        echo_prefix_length: int = ECHO_PREFIX_LENGTH,
    ) -> None:
        self.conversation = conversation
        self.transport = transport
        self.recipient_id = recipient_id
        self.echo_prefix_length = echo_prefix_length
        self._seen_guids: set[str] = set()
        self._sent_texts: set[str] = set()
        self._processing = False

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def pending_echoes(self) -> frozenset[str]:
        return frozenset(self._sent_texts)

    async def start(self) -> None:
        """Begin receiving events from the transport."""
        await self.transport.start(self.on_message)

    async def on_message(self, msg: InboundMessage) -> None:
        text = self._in_scope_text(msg)
        if text is None:
            return

        if msg.guid in self._seen_guids:
            logger.debug("Duplicate delivery of %s ignored", msg.guid)
            return
        self._seen_guids.add(msg.guid)

        if self._consume_echo(text):
            logger.debug("Own reply echoed back, ignored")
            return

        if self._processing:
            logger.info("Turn in progress, dropping %s", msg.guid)
            return

        self._processing = True
        set_turn_id(msg.guid)
        try:
            await self._run_turn(msg, text)
        finally:
            self._processing = False

    async def _run_turn(self, msg: InboundMessage, text: str) -> None:
        session = self.conversation.session
        logger.info("[%s] %r", session.step.value, text)
        try:
            reply = await self.conversation.handle(text)
        except Exception as exc:
            logger.exception("Turn failed in step %s", session.step.value)
            reply = build_error_reply(str(exc))
        else:
            logger.info("Turn done, now in %s", session.step.value)

        echo = reply.strip()
        if self.transport.echoes_sent:
            self._sent_texts.add(echo)
        try:
            await self.transport.send(msg.chat_id or msg.sender, reply)
        except Exception:
            self._sent_texts.discard(echo)
            logger.exception("Sending reply failed")

    def _in_scope_text(self, msg: InboundMessage) -> Optional[str]:
        """Return the stripped text when the event is one we should consider."""
        if not msg.is_from_me or msg.is_reaction or not msg.text:
            return None
        if self.recipient_id and msg.chat_id and self.recipient_id not in msg.chat_id:
            return None
        text = msg.text.strip()
        return text or None

    def _consume_echo(self, text: str) -> bool:
        if text in self._sent_texts:
            self._sent_texts.discard(text)
            return True
        prefix = text[: self.echo_prefix_length]
        for sent in self._sent_texts:
            if sent[: self.echo_prefix_length] == prefix:
                self._sent_texts.discard(sent)
                return True
        return False
