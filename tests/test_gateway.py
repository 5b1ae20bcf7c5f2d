"""Tests for the message gateway: scope filter, dedup, echo suppression, single-flight."""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from resy_bot.conversation.gateway import MessageGateway
from resy_bot.errors import BookingError, IntentExtractionError
from resy_bot.schemas.message_schema import InboundMessage
from resy_bot.schemas.session_schema import BookingStep, Session

CHAT = "iMessage;-;+15551234567"


def make_message(
    text: str = "Italian in NYC",
    guid: str = "g-1",
    chat_id: str = CHAT,
    is_from_me: bool = True,
    is_reaction: bool = False,
) -> InboundMessage:
    return InboundMessage(
        guid=guid,
        sender="+15551234567",
        chat_id=chat_id,
        text=text,
        is_from_me=is_from_me,
        is_reaction=is_reaction,
    )


class FakeTransport:
    def __init__(self, echoes_sent: bool = True) -> None:
        self.echoes_sent = echoes_sent
        self.sent: list[tuple[str, str]] = []

    async def start(self, handler) -> None:
        return None

    async def send(self, chat_id: str, text: str) -> None:
        self.sent.append((chat_id, text))

    def stop(self) -> None:
        return None

    async def close(self) -> None:
        return None


def make_gateway(
    reply: str = "reply text",
    recipient_id: str = "",
    echo_prefix_length: int = 200,
    transport: Optional[FakeTransport] = None,
):
    conversation = MagicMock()
    conversation.session = Session()
    conversation.handle = AsyncMock(return_value=reply)
    transport = transport or FakeTransport()
    gateway = MessageGateway(
        conversation, transport, recipient_id=recipient_id,
        echo_prefix_length=echo_prefix_length,
    )
    return gateway, conversation, transport


class TestScopeFilter:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("msg", [
        make_message(is_from_me=False),
        make_message(is_reaction=True),
        make_message(text=""),
        make_message(text="   "),
    ])
    async def test_ignored_events(self, msg):
        gateway, conversation, transport = make_gateway()
        await gateway.on_message(msg)
        conversation.handle.assert_not_awaited()
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_other_chat_ignored_when_recipient_configured(self):
        gateway, conversation, _ = make_gateway(recipient_id="+15551234567")
        await gateway.on_message(make_message(chat_id="iMessage;-;+19998887777"))
        conversation.handle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_matching_chat_accepted(self):
        gateway, conversation, transport = make_gateway(recipient_id="+15551234567")
        await gateway.on_message(make_message(text="  Italian in NYC  "))
        conversation.handle.assert_awaited_once_with("Italian in NYC")
        assert transport.sent == [(CHAT, "reply text")]

    @pytest.mark.asyncio
    async def test_reply_goes_to_sender_without_chat_id(self):
        gateway, _, transport = make_gateway()
        await gateway.on_message(make_message(chat_id=""))
        assert transport.sent == [("+15551234567", "reply text")]


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_same_guid_processed_once(self):
        gateway, conversation, transport = make_gateway()
        await gateway.on_message(make_message(guid="abc"))
        await gateway.on_message(make_message(guid="abc"))
        assert conversation.handle.await_count == 1
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_same_text_new_guid_processed(self):
        gateway, conversation, _ = make_gateway()
        await gateway.on_message(make_message(text="1", guid="a"))
        await gateway.on_message(make_message(text="1", guid="b"))
        assert conversation.handle.await_count == 2


class TestEchoSuppression:
    @pytest.mark.asyncio
    async def test_own_reply_not_reprocessed(self):
        gateway, conversation, _ = make_gateway(reply="Pick a number")
        await gateway.on_message(make_message(text="hi", guid="1"))
        await gateway.on_message(make_message(text="Pick a number", guid="2"))
        assert conversation.handle.await_count == 1
        assert gateway.pending_echoes == frozenset()

    @pytest.mark.asyncio
    async def test_truncated_echo_matched_by_prefix(self):
        long_reply = "x" * 50 + "tail that gets cut off"
        gateway, conversation, _ = make_gateway(reply=long_reply, echo_prefix_length=50)
        await gateway.on_message(make_message(text="hi", guid="1"))
        await gateway.on_message(make_message(text="x" * 50 + "tail", guid="2"))
        assert conversation.handle.await_count == 1
        assert gateway.pending_echoes == frozenset()

    @pytest.mark.asyncio
    async def test_echo_forgotten_after_match(self):
        gateway, conversation, _ = make_gateway(reply="yes")
        await gateway.on_message(make_message(text="hi", guid="1"))
        await gateway.on_message(make_message(text="yes", guid="2"))
        await gateway.on_message(make_message(text="yes", guid="3"))
        assert conversation.handle.await_count == 2
        assert conversation.handle.await_args.args == ("yes",)

    @pytest.mark.asyncio
    async def test_error_reply_is_suppressed_too(self):
        gateway, conversation, transport = make_gateway()
        conversation.handle.side_effect = IntentExtractionError("Couldn't understand that.")
        await gateway.on_message(make_message(text="??", guid="1"))
        _, error_reply = transport.sent[0]
        conversation.handle.side_effect = None
        await gateway.on_message(make_message(text=error_reply, guid="2"))
        assert conversation.handle.await_count == 1


class TestErrorReplies:
    @pytest.mark.asyncio
    async def test_hard_failure_becomes_single_reply(self):
        gateway, conversation, transport = make_gateway()
        conversation.handle.side_effect = BookingError(500, "boom")
        await gateway.on_message(make_message(text="yes"))
        assert len(transport.sent) == 1
        text = transport.sent[0][1]
        assert "Something went wrong: Booking failed (500): boom" in text
        assert '"reset"' in text
        assert not gateway.processing

    @pytest.mark.asyncio
    async def test_session_not_reset_on_error(self):
        gateway, conversation, _ = make_gateway()
        conversation.session.step = BookingStep.CONFIRM
        conversation.session.book_token = "tok"
        conversation.handle.side_effect = BookingError(500, "boom")
        await gateway.on_message(make_message(text="yes"))
        assert conversation.session.step == BookingStep.CONFIRM
        assert conversation.session.book_token == "tok"


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_message_during_turn_is_dropped(self):
        gateway, conversation, transport = make_gateway()
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_handle(text: str) -> str:
            started.set()
            await release.wait()
            return f"done {text}"

        conversation.handle = AsyncMock(side_effect=slow_handle)

        first = asyncio.create_task(gateway.on_message(make_message(text="first", guid="1")))
        await started.wait()
        assert gateway.processing

        await gateway.on_message(make_message(text="second", guid="2"))
        release.set()
        await first

        assert conversation.handle.await_count == 1
        assert transport.sent == [(CHAT, "done first")]
        assert not gateway.processing

    @pytest.mark.asyncio
    async def test_dropped_message_is_not_replayed(self):
        gateway, conversation, _ = make_gateway()
        release = asyncio.Event()
        started = asyncio.Event()
        texts: list[Optional[str]] = []

        async def slow_handle(text: str) -> str:
            texts.append(text)
            started.set()
            await release.wait()
            return "ok"

        conversation.handle = AsyncMock(side_effect=slow_handle)
        first = asyncio.create_task(gateway.on_message(make_message(text="first", guid="1")))
        await started.wait()
        await gateway.on_message(make_message(text="second", guid="2"))
        release.set()
        await first

        await gateway.on_message(make_message(text="second", guid="2"))
        assert texts == ["first"]


class FailingTransport(FakeTransport):
    async def send(self, chat_id: str, text: str) -> None:
        raise RuntimeError("osascript exited 1")


class TestSendFailures:
    @pytest.mark.asyncio
    async def test_unsent_reply_is_not_kept_as_echo(self):
        gateway, _, _ = make_gateway(reply="reply", transport=FailingTransport())
        await gateway.on_message(make_message(text="hi", guid="1"))
        assert gateway.pending_echoes == frozenset()
        assert not gateway.processing

    @pytest.mark.asyncio
    async def test_user_can_type_the_unsent_reply(self):
        gateway, conversation, _ = make_gateway(reply="yes", transport=FailingTransport())
        await gateway.on_message(make_message(text="hi", guid="1"))
        await gateway.on_message(make_message(text="yes", guid="2"))
        assert conversation.handle.await_count == 2

    @pytest.mark.asyncio
    async def test_send_failure_is_logged(self, caplog):
        gateway, _, _ = make_gateway(transport=FailingTransport())
        await gateway.on_message(make_message(text="hi", guid="1"))
        assert "Sending reply failed" in caplog.text


class TestNonEchoingTransport:
    @pytest.mark.asyncio
    async def test_replies_not_recorded(self):
        gateway, _, transport = make_gateway(transport=FakeTransport(echoes_sent=False))
        for i in range(3):
            await gateway.on_message(make_message(text=f"search {i}", guid=str(i)))
        assert len(transport.sent) == 3
        assert gateway.pending_echoes == frozenset()

    @pytest.mark.asyncio
    async def test_same_text_as_reply_is_handled(self):
        gateway, conversation, _ = make_gateway(
            reply="yes", transport=FakeTransport(echoes_sent=False),
        )
        await gateway.on_message(make_message(text="hi", guid="1"))
        await gateway.on_message(make_message(text="yes", guid="2"))
        assert conversation.handle.await_count == 2
