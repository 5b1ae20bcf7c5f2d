"""Search, venue, slot and hold data models."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SearchParams(BaseModel):
    """Structured search produced once per new search."""

    model_config = ConfigDict(frozen=True)

    query: str
    location: str
    latitude: float
    longitude: float
    day: date
    party_size: int = Field(ge=1)


class Venue(BaseModel):
    """A restaurant returned by venue search."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = "Unknown"
    neighborhood: str = ""
    city: str = ""
    cuisine: list[str] = Field(default_factory=list)
    rating: float = 0.0
    reviews: int = 0
    price: int = 0


class Slot(BaseModel):
    """One bookable time window; ``token`` is opaque and only sent back upstream."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    type: str = "Standard"
    token: str = ""


class Hold(BaseModel):
    """Result of a details/hold request. ``book_token`` is None when the slot was taken."""

    book_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    deposit_total: float = 0.0
    cancellation_policy: Optional[str] = None


class BookingConfirmation(BaseModel):
    """Committed reservation."""

    resy_token: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)
