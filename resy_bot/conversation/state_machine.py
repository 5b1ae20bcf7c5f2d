"""
Explicit transition table for the booking conversation.

Every change of ``Session.step`` goes through ``BookingStateMachine.transition``
with a named trigger. A trigger that is not listed for the current step is a
programming error and raises ``InvalidTransitionError``.

Usage:
    sm = BookingStateMachine(session)
    sm.transition(TransitionTrigger.VENUES_FOUND)
    assert session.step == BookingStep.VENUE_LIST
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from resy_bot.schemas.session_schema import BookingStep, Session

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Events that cause step transitions."""
    RESET = "reset"
    VENUES_FOUND = "venues_found"
    VENUE_PICKED = "venue_picked"
    NEW_SEARCH = "new_search"
    BACK_TO_VENUES = "back_to_venues"
    SLOT_HELD = "slot_held"
    HOLD_DECLINED = "hold_declined"
    HOLD_EXPIRED = "hold_expired"
    PAYMENT_REQUIRED = "payment_required"
    BOOKED = "booked"


@dataclass(frozen=True)
class Transition:
    """A single valid step transition."""
    from_step: BookingStep
    to_step: BookingStep
    trigger: TransitionTrigger


@dataclass
class StepEntry:
    """Recorded history entry for a step visit."""
    step: BookingStep
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current step."""


class BookingStateMachine:
    """Validates and records step changes on a ``Session``."""

    TRANSITIONS: list[Transition] = [
        # --- Global reset ---
        *[Transition(step, BookingStep.IDLE, TransitionTrigger.RESET) for step in BookingStep],

        # --- Search ---
        Transition(BookingStep.IDLE, BookingStep.VENUE_LIST, TransitionTrigger.VENUES_FOUND),

        # --- Venue list ---
        Transition(BookingStep.VENUE_LIST, BookingStep.SLOT_LIST, TransitionTrigger.VENUE_PICKED),
        Transition(BookingStep.VENUE_LIST, BookingStep.IDLE, TransitionTrigger.NEW_SEARCH),

        # --- Slot list ---
        Transition(BookingStep.SLOT_LIST, BookingStep.VENUE_LIST, TransitionTrigger.BACK_TO_VENUES),
        Transition(BookingStep.SLOT_LIST, BookingStep.CONFIRM, TransitionTrigger.SLOT_HELD),

        # --- Confirmation ---
        Transition(BookingStep.CONFIRM, BookingStep.SLOT_LIST, TransitionTrigger.HOLD_DECLINED),
        Transition(BookingStep.CONFIRM, BookingStep.SLOT_LIST, TransitionTrigger.HOLD_EXPIRED),
        Transition(BookingStep.CONFIRM, BookingStep.SLOT_LIST, TransitionTrigger.PAYMENT_REQUIRED),
        Transition(BookingStep.CONFIRM, BookingStep.IDLE, TransitionTrigger.BOOKED),
    ]

    def __init__(self, session: Session) -> None:
        self.session = session
        self._history: list[StepEntry] = [
            StepEntry(step=session.step, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_step(self) -> BookingStep:
        return self.session.step

    def transition(self, trigger: TransitionTrigger) -> BookingStep:
        """
        Move the session to the step ``trigger`` leads to.

        Only ``step`` is changed here; the caller clears or sets the fields
        that belong to the new step.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_step == self.session.step and t.trigger == trigger:
                old_step = self.session.step
                self.session.step = t.to_step
                self._history.append(StepEntry(
                    step=t.to_step,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Step transition: %s -> %s (trigger: %s)",
                    old_step.value, t.to_step.value, trigger.value,
                )
                return t.to_step

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self.session.step.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current step."""
        return [t.trigger for t in self.TRANSITIONS if t.from_step == self.session.step]

    def get_history(self) -> list[StepEntry]:
        return list(self._history)

    def get_step_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.step.value for entry in self._history]
