"""Shared text helpers used across the reservation bot."""

import re
from typing import Optional

RESET_COMMANDS = ("reset", "start over")

_LOCATION_SEPARATORS = re.compile(r"[,.\-]")
MIN_LOCATION_WORD_LENGTH = 3


def normalize_command(text: str) -> str:
    """Lowercase and trim user input for command matching."""
    return text.strip().lower()


def is_reset_command(text: str) -> bool:
    return normalize_command(text) in RESET_COMMANDS


def parse_choice(text: str, upper: int) -> Optional[int]:
    """Parse a 1-based menu choice, returning None when out of ``1..upper``.

    Leading digits are accepted the way a user types them ("2", "2.", "2 please").

    Examples:
        >>> parse_choice("2", 5)
        2
        >>> parse_choice("7", 5) is None
        True
        >>> parse_choice("sushi", 5) is None
        True
    """
    match = re.match(r"\s*(\d+)", text)
    if not match:
        return None
    number = int(match.group(1))
    if number < 1 or number > upper:
        return None
    return number


def location_words(location: str) -> list[str]:
    """Significant lowercase words of a location string.

    Examples:
        >>> location_words("Williamsburg, Brooklyn")
        ['williamsburg', 'brooklyn']
        >>> location_words("NY")
        []
    """
    cleaned = _LOCATION_SEPARATORS.sub(" ", location.lower()).strip()
    return [w for w in cleaned.split() if len(w) >= MIN_LOCATION_WORD_LENGTH]


def to_12h(value: str) -> str:
    """Render an ``HH:MM`` time as ``h:MM AM/PM``; unknown values pass through.

    Examples:
        >>> to_12h("19:30")
        '7:30 PM'
        >>> to_12h("00:05")
        '12:05 AM'
    """
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except ValueError:
        return value
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"
