"""Booking step enum and the per-process conversation session."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from resy_bot.schemas.reservation_schema import SearchParams, Slot, Venue


class BookingStep(str, Enum):
    """Where the conversation currently is."""
    IDLE = "idle"
    VENUE_LIST = "venue_list"
    SLOT_LIST = "slot_list"
    CONFIRM = "confirm"


@dataclass
class Session:
    """
    The single active conversation.

    Owned by the message gateway and passed by reference into the booking
    conversation, which is the only writer. Fields are populated only in the
    steps that need them; leaving a step clears what is no longer valid.
    """
    step: BookingStep = BookingStep.IDLE
    search: Optional[SearchParams] = None
    venues: list[Venue] = field(default_factory=list)
    picked_venue: Optional[Venue] = None
    slots: list[Slot] = field(default_factory=list)
    picked_slot: Optional[Slot] = None
    book_token: Optional[str] = None
    book_expires: Optional[datetime] = None

    def reset(self) -> None:
        """Return to idle and discard every field."""
        self.step = BookingStep.IDLE
        self.search = None
        self.venues = []
        self.clear_venue_choice()

    def clear_venue_choice(self) -> None:
        self.picked_venue = None
        self.slots = []
        self.release_hold()

    def release_hold(self) -> None:
        self.picked_slot = None
        self.book_token = None
        self.book_expires = None

    def is_empty(self) -> bool:
        return (
            self.step == BookingStep.IDLE
            and self.search is None
            and not self.venues
            and self.picked_venue is None
            and not self.slots
            and self.picked_slot is None
            and self.book_token is None
            and self.book_expires is None
        )
