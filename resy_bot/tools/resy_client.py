"""
Resy reservation API client.

Four calls against the upstream service: venue search, slot availability,
slot details (which issues the time-limited hold) and the booking commit.
Raw JSON is translated into typed records by the module-level parsers so the
loose upstream shapes are handled in one place.

The commit call is not idempotent and is never retried here.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional

import httpx

from resy_bot.errors import BookingError, PaymentRequiredError, ReservationAPIError
from resy_bot.schemas.reservation_schema import BookingConfirmation, Hold, Slot, Venue
from resy_bot.utils import location_words

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.resy.com"
DEFAULT_GEO = (40.7128, -74.006)
SEARCH_PER_PAGE = 20
MAX_VENUES = 5
BOOK_SOURCE_ID = "resy.com-venue-details"
UNKNOWN_TIME = "??:??"


# ---------------------------------------------------------------------- #
# Parsers
# ---------------------------------------------------------------------- #

def _venue_from_hit(hit: dict[str, Any]) -> Venue:
    rating = hit.get("rating") or {}
    return Venue(
        id=(hit.get("id") or {}).get("resy") or 0,
        name=hit.get("name") or "Unknown",
        neighborhood=hit.get("neighborhood") or "",
        city=hit.get("locality") or "",
        cuisine=hit.get("cuisine") or [],
        rating=rating.get("average") or 0.0,
        reviews=rating.get("count") or 0,
        price=hit.get("price_range_id") or 0,
    )


def filter_by_location(venues: list[Venue], location: str) -> list[Venue]:
    """
    Keep venues whose city or neighborhood mentions a significant word of
    ``location``. Falls back to the input when nothing matches, so a
    non-empty input never yields an empty result.
    """
    words = location_words(location)
    local = [
        v for v in venues
        if any(w in f"{v.city} {v.neighborhood}".lower() for w in words)
    ]
    return local or venues


def parse_venues(data: dict[str, Any], location: str, limit: int = MAX_VENUES) -> list[Venue]:
    """Parse a venuesearch response, post-filter by location and cap in upstream order."""
    hits = (data.get("search") or {}).get("hits") or []
    venues = [_venue_from_hit(h) for h in hits]
    return filter_by_location(venues, location)[:limit]


def _clip_time(value: Optional[str]) -> str:
    """``"2024-06-02 19:30:00"`` -> ``"19:30"``."""
    if not value or " " not in value:
        return UNKNOWN_TIME
    return value.split(" ", 1)[1][:5] or UNKNOWN_TIME


def parse_slots(data: dict[str, Any], venue_id: int, strict: bool = False) -> list[Slot]:
    """
    Parse a find response into slots for ``venue_id``.

    The response lists venues without a keyed contract. When no entry
    matches the id, the first entry is used unless ``strict`` is set, in
    which case the mismatch is an error.
    """
    entries = (data.get("results") or {}).get("venues") or []
    entry = next(
        (e for e in entries if ((e.get("venue") or {}).get("id") or {}).get("resy") == venue_id),
        None,
    )
    if entry is None and entries:
        if strict:
            raise ReservationAPIError(
                "availability", 200,
                message=f"Availability response has no entry for venue {venue_id}",
            )
        logger.warning("No availability entry for venue %s, using first entry", venue_id)
        entry = entries[0]
    if entry is None:
        return []

    slots = []
    for raw in entry.get("slots") or []:
        when = raw.get("date") or {}
        config = raw.get("config") or {}
        slots.append(Slot(
            start=_clip_time(when.get("start")),
            end=_clip_time(when.get("end")),
            type=config.get("type") or "Standard",
            token=config.get("token") or "",
        ))
    return slots


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """Parse the hold expiry; naive timestamps are in the host's local time zone."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable hold expiry %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def parse_hold(data: dict[str, Any]) -> Hold:
    """Parse a details response. A missing book token means the slot is gone."""
    token = data.get("book_token") or {}
    payment = data.get("payment") or {}
    policies = ((data.get("cancellation") or {}).get("display") or {}).get("policy") or []
    return Hold(
        book_token=token.get("value") or None,
        expires_at=_parse_expiry(token.get("date_expires")),
        deposit_total=(payment.get("amounts") or {}).get("total") or 0.0,
        cancellation_policy=policies[0] if policies else None,
    )


# ---------------------------------------------------------------------- #
# Client
# ---------------------------------------------------------------------- #

class ResyClient:
    """Stateless async wrapper around the Resy endpoints used for booking."""

    def __init__(
        self,
        api_key: str,
        auth_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
        default_geo: tuple[float, float] = DEFAULT_GEO,
        per_page: int = SEARCH_PER_PAGE,
        max_venues: int = MAX_VENUES,
        strict_venue_match: bool = False,
    ) -> None:
        self.api_key = api_key
        self.auth_token = auth_token
        self.default_geo = default_geo
        self.per_page = per_page
        self.max_venues = max_venues
        self.strict_venue_match = strict_venue_match
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout,
        )

    async def __aenter__(self) -> "ResyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f'ResyAPI api_key="{self.api_key}"',
            "X-Resy-Auth-Token": self.auth_token,
            "X-Resy-Universal-Auth": self.auth_token,
            "Content-Type": "application/json",
            "Origin": "https://resy.com",
            "Referer": "https://resy.com/",
        }

    def _geo(self, lat: Optional[float], lng: Optional[float]) -> tuple[float, float]:
        return (lat or self.default_geo[0], lng or self.default_geo[1])

    @staticmethod
    def _check(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        logger.error("Resy %s failed: %s %s", operation, response.status_code, response.text[:200])
        raise ReservationAPIError(operation, response.status_code, response.text)

    async def search(
        self, query: str, location: str, lat: Optional[float], lng: Optional[float]
    ) -> list[Venue]:
        """
        Search venues near ``location``.

        The upstream geo field is not a proximity filter, so the location is
        appended to the query text and the results are over-fetched and
        post-filtered before the display cap is applied.
        """
        latitude, longitude = self._geo(lat, lng)
        body = {
            "per_page": self.per_page,
            "query": f"{query} {location}",
            "types": ["venue"],
            "geo": {"latitude": latitude, "longitude": longitude},
        }
        logger.debug("POST /3/venuesearch/search %s", body)
        response = await self._client.post(
            "/3/venuesearch/search", json=body, headers=self._headers(),
        )
        self._check(response, "search")
        venues = parse_venues(response.json(), location, limit=self.max_venues)
        logger.info("Search %r in %s -> %d venues", query, location, len(venues))
        return venues

    async def availability(
        self,
        venue_id: int,
        day: date,
        party_size: int,
        lat: Optional[float],
        lng: Optional[float],
    ) -> list[Slot]:
        """Fetch open slots for one venue on ``day``, in upstream order."""
        latitude, longitude = self._geo(lat, lng)
        params = {
            "venue_id": str(venue_id),
            "day": day.isoformat(),
            "party_size": str(party_size),
            "lat": str(latitude),
            "long": str(longitude),
        }
        logger.debug("GET /4/find %s", params)
        response = await self._client.get("/4/find", params=params, headers=self._headers())
        self._check(response, "availability")
        slots = parse_slots(response.json(), venue_id, strict=self.strict_venue_match)
        logger.info("Availability for venue %s on %s -> %d slots", venue_id, day, len(slots))
        return slots

    async def hold(self, config_token: str, day: date, party_size: int) -> Hold:
        """Request slot details with ``commit=1``, which issues a booking token."""
        body = {
            "commit": 1,
            "config_id": config_token,
            "day": day.isoformat(),
            "party_size": party_size,
        }
        response = await self._client.post("/3/details", json=body, headers=self._headers())
        self._check(response, "details")
        hold = parse_hold(response.json())
        if hold.book_token is None:
            logger.info("Details returned no book token; slot was taken")
        return hold

    async def book(self, book_token: str) -> BookingConfirmation:
        """
        Commit a hold.

        Raises:
            PaymentRequiredError: upstream answered 402.
            BookingError: any other non-success status.
        """
        headers = self._headers()
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        response = await self._client.post(
            "/3/book",
            data={"book_token": book_token, "source_id": BOOK_SOURCE_ID},
            headers=headers,
        )
        if response.status_code == 402:
            logger.info("Booking requires payment details")
            raise PaymentRequiredError(response.text)
        if not response.is_success:
            logger.error("Booking failed: %s %s", response.status_code, response.text[:200])
            raise BookingError(response.status_code, response.text)

        data = response.json()
        logger.info("Booking committed")
        return BookingConfirmation(resy_token=data.get("resy_token"), raw=data)
