"""Exception hierarchy for turn-level failures.

Soft outcomes (slot taken, hold expired) are not exceptions. Everything here
either reaches the gateway and becomes an error reply, or in the case of
``PaymentRequiredError`` is caught by the booking conversation.
"""

from typing import Optional


class ResyBotError(Exception):
    """Base class for errors surfaced to the user as a turn failure."""


class IntentExtractionError(ResyBotError):
    """The language model did not return a usable search call."""


class ReservationAPIError(ResyBotError):
    """Non-success response from the reservation API."""

    def __init__(self, operation: str, status: int, body: str = "", message: Optional[str] = None) -> None:
        self.operation = operation
        self.status = status
        self.body = body
        super().__init__(message or f"Resy {operation} failed ({status})")


class PaymentRequiredError(ReservationAPIError):
    """Booking needs a card on file or deposit; it cannot finish through this channel."""

    def __init__(self, body: str = "") -> None:
        super().__init__("book", 402, body, message="Payment required")


class BookingError(ReservationAPIError):
    """Commit call failed for any reason other than payment."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__("book", status, body, message=f"Booking failed ({status}): {body}")
