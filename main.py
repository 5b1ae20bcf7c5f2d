"""
Resy bot entry point.

Wires the intent extractor, the Resy client, the booking conversation and a
message transport together, and runs until interrupted.

Usage:
    Watch iMessage:   python main.py watch
    Console mode:     python main.py console
    One-shot search:  python main.py search "Table for 2 at Carbone in NYC tomorrow"
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from openai import AsyncOpenAI

from resy_bot.config import AppConfig, require_credentials, settings
from resy_bot.conversation.booking_flow import BookingConversation
from resy_bot.conversation.gateway import MessageGateway
from resy_bot.errors import ResyBotError
from resy_bot.prompts.reply_templates import build_no_results_reply, build_venue_list
from resy_bot.schemas.session_schema import Session
from resy_bot.tools.intent_extractor import IntentExtractor
from resy_bot.tools.resy_client import ResyClient
from resy_bot.transports.base import Transport
from resy_bot.transports.console import ConsoleTransport
from resy_bot.transports.imessage import IMessageTransport

logger = logging.getLogger(__name__)

BANNER = """\
═══════════════════════════════════════════
  🍴 Resy Bot
═══════════════════════════════════════════
  Text yourself to search restaurants.
  Flow: search → pick restaurant → pick time → book
  Say "reset" anytime to start over.
───────────────────────────────────────────"""


def _build_resy_client(config: AppConfig) -> ResyClient:
    return ResyClient(
        api_key=config.resy.api_key,
        auth_token=config.resy.auth_token,
        base_url=config.resy.base_url,
        timeout=config.resy.timeout_sec,
        default_geo=(config.resy.default_latitude, config.resy.default_longitude),
        per_page=config.display.search_per_page,
        max_venues=config.display.max_venues,
        strict_venue_match=config.resy.strict_venue_match,
    )


def _build_extractor(config: AppConfig) -> IntentExtractor:
    return IntentExtractor(
        client=AsyncOpenAI(api_key=config.model.openai_api_key),
        model=config.model.llm_model,
        default_geo=(config.resy.default_latitude, config.resy.default_longitude),
    )


async def _run_gateway(
    config: AppConfig, transport: Transport, handle_signals: bool, recipient_id: str = "",
) -> None:
    """Run one conversation over ``transport`` until it stops."""
    session = Session()
    async with _build_resy_client(config) as resy:
        conversation = BookingConversation(
            session, resy, _build_extractor(config), max_slots=config.display.max_slots,
        )
        gateway = MessageGateway(
            conversation,
            transport,
            recipient_id=recipient_id,
            echo_prefix_length=config.transport.echo_prefix_length,
        )

        if handle_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, transport.stop)

        try:
            await gateway.start()
        finally:
            logger.info("Shutting down")
            await transport.close()


async def _run_search(config: AppConfig, request: str) -> int:
    """One-shot pipeline: extract the search, query Resy, print the list."""
    async with _build_resy_client(config) as resy:
        search = await _build_extractor(config).extract(request)
        print(f"▸ {search.query!r} in {search.location} ({search.latitude}, {search.longitude})")
        print(f"  {search.day.isoformat()} · party of {search.party_size}\n")
        venues = await resy.search(
            search.query, search.location, search.latitude, search.longitude,
        )
        if not venues:
            print(build_no_results_reply(search))
            return 1
        print(build_venue_list(venues, search))
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Book Resy tables by text message")
    sub = parser.add_subparsers(dest="mode")
    sub.add_parser("watch", help="Watch iMessage and reply in the same chat (default)")
    sub.add_parser("console", help="Chat in this terminal")
    search_parser = sub.add_parser("search", help="Run a single search and print results")
    search_parser.add_argument("request", nargs="+", help="Free-text request")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        require_credentials(settings)
    except ValueError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 2

    if args.mode == "search":
        try:
            return asyncio.run(_run_search(settings, " ".join(args.request).strip()))
        except ResyBotError as exc:
            print(f"❌ {exc}", file=sys.stderr)
            return 1

    if args.mode == "console":
        asyncio.run(_run_gateway(settings, ConsoleTransport(), handle_signals=False))
        return 0

    print(BANNER)
    transport = IMessageTransport(
        settings.transport.imessage_db_path,
        poll_interval=settings.transport.poll_interval_sec,
    )
    asyncio.run(_run_gateway(
        settings, transport, handle_signals=True,
        recipient_id=settings.transport.recipient_id,
    ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
