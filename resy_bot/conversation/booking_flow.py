"""
Booking conversation: search -> pick restaurant -> pick time -> confirm -> book.

``BookingConversation.handle`` is the single entry point. It reads the
current step from the shared ``Session``, calls the intent extractor and the
reservation client as needed, mutates the session through the state machine
and returns the reply text.

Soft outcomes (no venues, slot taken, hold expired, payment required) are
answered here. Extraction, upstream and booking failures propagate to the
caller with the session left as last mutated.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from resy_bot.errors import PaymentRequiredError
from resy_bot.logging_context import get_turn_logger
from resy_bot.prompts import reply_templates as replies
from resy_bot.conversation.state_machine import BookingStateMachine, TransitionTrigger
from resy_bot.schemas.session_schema import BookingStep, Session
from resy_bot.tools.intent_extractor import IntentExtractor
from resy_bot.tools.resy_client import ResyClient
from resy_bot.utils import is_reset_command, normalize_command, parse_choice

logger = get_turn_logger(__name__)

BACK_COMMANDS = ("back",)
DECLINE_COMMANDS = ("no", "back")
CONFIRM_COMMANDS = ("yes", "confirm", "book")
MAX_SLOTS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingConversation:
    """Drives one ``Session`` through the booking steps."""

    def __init__(
        self,
        session: Session,
        resy: ResyClient,
        extractor: IntentExtractor,
        clock: Optional[Callable[[], datetime]] = None,
        max_slots: int = MAX_SLOTS,
    ) -> None:
        self.session = session
        self.resy = resy
        self.extractor = extractor
        self.clock = clock or _utcnow
        self.max_slots = max_slots
        self.sm = BookingStateMachine(session)

    async def handle(self, text: str) -> str:
        """Process one user message and return the reply."""
        if is_reset_command(text):
            self._reset()
            return replies.build_reset_reply()

        # A venue-list message that is not a valid choice starts a new search
        # with the same text: the handler returns None, the session is back in
        # idle and the loop dispatches once more.
        while True:
            step = self.session.step
            if step == BookingStep.IDLE:
                return await self._handle_idle(text)
            if step == BookingStep.VENUE_LIST:
                reply = await self._handle_venue_list(text)
                if reply is None:
                    continue
                return reply
            if step == BookingStep.SLOT_LIST:
                return await self._handle_slot_list(text)
            return await self._handle_confirm(text)

    def _reset(self) -> None:
        self.sm.transition(TransitionTrigger.RESET)
        self.session.reset()

    # ------------------------------------------------------------------ #
    # Idle: new search
    # ------------------------------------------------------------------ #

    async def _handle_idle(self, text: str) -> str:
        logger.info("Extracting search")
        search = await self.extractor.extract(text)
        venues = await self.resy.search(
            search.query, search.location, search.latitude, search.longitude,
        )
        if not venues:
            return replies.build_no_results_reply(search)

        self.sm.transition(TransitionTrigger.VENUES_FOUND)
        self.session.search = search
        self.session.venues = list(venues)
        return replies.build_venue_list(self.session.venues, search)

    # ------------------------------------------------------------------ #
    # Venue list: pick a restaurant
    # ------------------------------------------------------------------ #

    async def _handle_venue_list(self, text: str) -> Optional[str]:
        if normalize_command(text) in BACK_COMMANDS:
            self._reset()
            return replies.build_back_to_search_reply()

        choice = parse_choice(text, len(self.session.venues))
        if choice is None:
            logger.info("Not a venue choice, treating as a new search")
            self.sm.transition(TransitionTrigger.NEW_SEARCH)
            self.session.reset()
            return None

        venue = self.session.venues[choice - 1]
        search = self.session.search
        logger.info("Availability for %s (%s)", venue.name, venue.id)
        slots = await self.resy.availability(
            venue.id, search.day, search.party_size, search.latitude, search.longitude,
        )

        self.sm.transition(TransitionTrigger.VENUE_PICKED)
        self.session.picked_venue = venue
        self.session.slots = list(slots)
        return self._slot_list_text()

    # ------------------------------------------------------------------ #
    # Slot list: pick a time and take a hold
    # ------------------------------------------------------------------ #

    async def _handle_slot_list(self, text: str) -> str:
        if normalize_command(text) in BACK_COMMANDS:
            self.sm.transition(TransitionTrigger.BACK_TO_VENUES)
            self.session.clear_venue_choice()
            return replies.build_venue_list(self.session.venues, self.session.search)

        max_slots = min(len(self.session.slots), self.max_slots)
        choice = parse_choice(text, max_slots)
        if choice is None:
            return replies.build_slot_prompt(max_slots)

        slot = self.session.slots[choice - 1]
        venue = self.session.picked_venue
        search = self.session.search
        logger.info("Requesting hold at %s for %s", venue.name, slot.start)
        hold = await self.resy.hold(slot.token, search.day, search.party_size)
        if not hold.book_token:
            return replies.build_slot_taken_reply()

        self.sm.transition(TransitionTrigger.SLOT_HELD)
        self.session.picked_slot = slot
        self.session.book_token = hold.book_token
        self.session.book_expires = hold.expires_at
        return replies.build_confirm_summary(venue, slot, search, hold)

    # ------------------------------------------------------------------ #
    # Confirm: book or go back
    # ------------------------------------------------------------------ #

    async def _handle_confirm(self, text: str) -> str:
        command = normalize_command(text)
        if command in DECLINE_COMMANDS:
            self.sm.transition(TransitionTrigger.HOLD_DECLINED)
            self.session.release_hold()
            return replies.build_declined_reply(self._slot_list_text())

        if command not in CONFIRM_COMMANDS:
            return replies.build_confirm_prompt()

        expires = self.session.book_expires
        if expires is not None and self.clock() > expires:
            logger.info("Hold expired at %s", expires.isoformat())
            self.sm.transition(TransitionTrigger.HOLD_EXPIRED)
            self.session.release_hold()
            return replies.build_hold_expired_reply(self._slot_list_text())

        venue = self.session.picked_venue
        slot = self.session.picked_slot
        search = self.session.search
        logger.info("Booking %s at %s", venue.name, slot.start)
        try:
            confirmation = await self.resy.book(self.session.book_token)
        except PaymentRequiredError:
            self.sm.transition(TransitionTrigger.PAYMENT_REQUIRED)
            self.session.release_hold()
            return replies.build_payment_required_reply(venue.name)

        reply = replies.build_success_reply(venue, slot, search, confirmation)
        self.sm.transition(TransitionTrigger.BOOKED)
        self.session.reset()
        return reply

    def _slot_list_text(self) -> str:
        return replies.build_slot_list(
            self.session.picked_venue, self.session.slots, self.session.search,
            limit=self.max_slots,
        )
