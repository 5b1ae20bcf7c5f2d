"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from resy_bot.conversation.booking_flow import BookingConversation
from resy_bot.conversation.state_machine import BookingStateMachine
from resy_bot.schemas.reservation_schema import (
    BookingConfirmation,
    Hold,
    SearchParams,
    Slot,
    Venue,
)
from resy_bot.schemas.session_schema import Session

NOW = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def session():
    return Session()


@pytest.fixture
def state_machine(session):
    return BookingStateMachine(session)


@pytest.fixture
def resy():
    """Stand-in for ResyClient with async methods the tests configure."""
    client = MagicMock()
    client.search = AsyncMock(return_value=make_venues(3))
    client.availability = AsyncMock(return_value=make_slots(3))
    client.hold = AsyncMock(return_value=make_hold())
    client.book = AsyncMock(return_value=BookingConfirmation(resy_token="RESY-123"))
    return client


@pytest.fixture
def extractor():
    ext = MagicMock()
    ext.extract = AsyncMock(return_value=make_search())
    return ext


@pytest.fixture
def conversation(session, resy, extractor):
    return BookingConversation(session, resy, extractor, clock=lambda: NOW)


def make_search(
    query: str = "Italian",
    location: str = "NYC",
    day: date = date(2024, 6, 2),
    party_size: int = 4,
) -> SearchParams:
    return SearchParams(
        query=query,
        location=location,
        latitude=40.7128,
        longitude=-74.006,
        day=day,
        party_size=party_size,
    )


def make_venues(count: int, city: str = "New York") -> list[Venue]:
    return [
        Venue(
            id=100 + i,
            name=f"Venue {i}",
            neighborhood="West Village",
            city=city,
            cuisine=["Italian"],
            rating=4.5,
            reviews=200,
            price=3,
        )
        for i in range(1, count + 1)
    ]


def make_slots(count: int) -> list[Slot]:
    return [
        Slot(
            start=f"{17 + i // 2:02d}:{(i % 2) * 30:02d}",
            end=f"{19 + i // 2:02d}:{(i % 2) * 30:02d}",
            type="Dining Room",
            token=f"rgs://resy/100/{i}",
        )
        for i in range(count)
    ]


def make_hold(
    token: Optional[str] = "BOOK-TOKEN",
    expires_at: Optional[datetime] = NOW + timedelta(minutes=5),
) -> Hold:
    return Hold(
        book_token=token,
        expires_at=expires_at,
        deposit_total=0.0,
        cancellation_policy="Cancel 24 hours ahead to avoid a fee.",
    )


def make_hit(
    venue_id: int,
    name: str,
    locality: str,
    neighborhood: str = "",
    cuisine: Optional[list[str]] = None,
) -> dict:
    """One raw venuesearch hit."""
    return {
        "id": {"resy": venue_id},
        "name": name,
        "locality": locality,
        "neighborhood": neighborhood,
        "cuisine": cuisine or ["Italian"],
        "rating": {"average": 4.6, "count": 321},
        "price_range_id": 2,
    }


def make_find_entry(venue_id: int, starts: list[str]) -> dict:
    """One raw venue entry of a /4/find response."""
    return {
        "venue": {"id": {"resy": venue_id}},
        "slots": [
            {
                "date": {"start": f"2024-06-02 {s}:00", "end": f"2024-06-02 {s}:00"},
                "config": {"type": "Dining Room", "token": f"cfg-{venue_id}-{s}"},
            }
            for s in starts
        ],
    }


async def drive_to_venue_list(conversation: BookingConversation) -> str:
    return await conversation.handle("Italian in NYC tomorrow for 4")


async def drive_to_slot_list(conversation: BookingConversation) -> str:
    await drive_to_venue_list(conversation)
    return await conversation.handle("1")


async def drive_to_confirm(conversation: BookingConversation) -> str:
    await drive_to_slot_list(conversation)
    return await conversation.handle("1")
