"""User-facing reply text for each step of the booking conversation."""

from typing import Optional

from resy_bot.schemas.reservation_schema import BookingConfirmation, Hold, SearchParams, Slot, Venue
from resy_bot.utils import to_12h

START_HINT = 'What are you looking for? (e.g. "Italian in NYC tomorrow")'


def build_reset_reply() -> str:
    return f"🔄 Starting fresh! {START_HINT}"


def build_back_to_search_reply() -> str:
    return "🔄 What would you like to search for?"


def build_no_results_reply(search: SearchParams) -> str:
    return f'No results for "{search.query}" in {search.location}. Try a different search.'


def build_venue_list(venues: list[Venue], search: SearchParams) -> str:
    header = (
        f'🍴 Top {len(venues)} · "{search.query}" in {search.location}\n'
        f"📅 {search.day.isoformat()} · 👥 {search.party_size} guests\n"
    )
    lines = []
    for i, venue in enumerate(venues, start=1):
        price = " " + "$" * venue.price if venue.price > 0 else ""
        cuisine = venue.cuisine[0] if venue.cuisine else ""
        lines.append(
            f"{i}. {venue.name}{price}\n"
            f"   📍 {venue.neighborhood or venue.city} · {cuisine}\n"
            f"   ⭐ {venue.rating:.1f} ({venue.reviews} reviews)"
        )
    body = "\n\n".join(lines)
    return (
        f"{header}\n{body}\n\n"
        f"Reply with a number (1–{len(venues)}) to see times, or type a new search."
    )


def build_slot_list(venue: Venue, slots: list[Slot], search: SearchParams, limit: int = 10) -> str:
    day = search.day.isoformat()
    if not slots:
        return (
            f"😕 {venue.name} has no open slots on {day} for {search.party_size} guests.\n\n"
            "Reply \"back\" to pick a different restaurant, or type \"reset\" for a new search."
        )
    shown = slots[:limit]
    lines = [
        f"{i}. {to_12h(s.start)} – {to_12h(s.end)}  ({s.type})"
        for i, s in enumerate(shown, start=1)
    ]
    return (
        f"🕐 {venue.name}\n📅 {day} · 👥 {search.party_size} guests\n\n"
        + "\n".join(lines)
        + f"\n\nReply with a number (1–{len(shown)}) to book that slot.\n"
        'Or reply "back" to pick a different restaurant.'
    )


def build_slot_prompt(max_slots: int) -> str:
    if max_slots == 0:
        return 'No times to pick from here. Say "back" to see restaurants, or "reset" to start over.'
    return f'Pick a number from 1–{max_slots}, say "back" to see restaurants, or "reset" to start over.'


def build_slot_taken_reply() -> str:
    return '😕 That slot just got taken! Pick another number, or say "back".'


def build_confirm_summary(venue: Venue, slot: Slot, search: SearchParams, hold: Hold) -> str:
    policy = hold.cancellation_policy or "No cancellation policy listed."
    if hold.deposit_total > 0:
        pay_info = f"💳 Deposit: ${hold.deposit_total:.2f}"
    else:
        pay_info = "💳 No deposit required"
    return (
        "📋 Booking summary:\n\n"
        f"🍴 {venue.name}\n"
        f"📅 {search.day.isoformat()} at {to_12h(slot.start)}\n"
        f"👥 {search.party_size} guests · 🪑 {slot.type}\n"
        f"{pay_info}\n\n{policy}\n\n"
        'Reply "yes" to confirm, or "no" to go back.'
    )


def build_confirm_prompt() -> str:
    return 'Reply "yes" to book, "no" to go back, or "reset" to start over.'


def build_declined_reply(slot_list: str) -> str:
    return f"No problem!\n\n{slot_list}"


def build_hold_expired_reply(slot_list: str) -> str:
    return f"⏰ That hold expired. Pick a time again:\n\n{slot_list}"


def build_payment_required_reply(venue_name: str) -> str:
    return (
        f"💳 {venue_name} requires a credit card or deposit to complete the booking.\n\n"
        "👉 Head to resy.com or the Resy app to finish booking this one.\n\n"
        "Want to pick a different time, or say \"back\" for a different restaurant?"
    )


def build_success_reply(
    venue: Venue, slot: Slot, search: SearchParams, confirmation: BookingConfirmation
) -> str:
    return (
        "✅ You're booked!\n\n"
        f"🍴 {venue.name}\n"
        f"📅 {search.day.isoformat()} at {to_12h(slot.start)}\n"
        f"👥 {search.party_size} guests · 🪑 {slot.type}\n"
        f"🆔 {confirmation.resy_token or 'N/A'}\n\n"
        "Enjoy! 🎉"
    )


def build_error_reply(message: Optional[str]) -> str:
    return f'❌ Something went wrong: {message or "unknown error"}\n\nSay "reset" to start over.'
