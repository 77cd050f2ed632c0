"""Ticketmaster Discovery API adapter.

API Reference: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/

Ticketmaster is the primary source and needs an API key. A missing key is
a deployment fault, so the adapter raises AdapterConfigError instead of
quietly returning nothing.
"""

import logging
import math
from types import MappingProxyType
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from marquee.adapters.base import (
    AdapterConfigError,
    AdapterParseError,
    AdapterTimeoutError,
    handle_http_status,
)
from marquee.config import Settings, get_settings
from marquee.models import (
    AdapterSearchParams,
    DateStatus,
    Event,
    EventImage,
    EventSource,
    EventType,
    PriceRange,
    SourceResult,
    Venue,
)

logger = logging.getLogger(__name__)

# Canonical category -> Ticketmaster classificationName
CLASSIFICATIONS: Mapping[EventType, str] = MappingProxyType(
    {
        EventType.MUSIC: "music",
        EventType.SPORTS: "sports",
        EventType.THEATRE: "theatre",
        EventType.MUSICAL: "theatre",
        EventType.COMEDY: "comedy",
        EventType.FAMILY: "family",
        EventType.FILM: "film",
    }
)

# Ticketmaster segment name -> canonical category
SEGMENTS: Mapping[str, EventType] = MappingProxyType(
    {
        "Music": EventType.MUSIC,
        "Sports": EventType.SPORTS,
        "Arts & Theatre": EventType.THEATRE,
        "Film": EventType.FILM,
        "Comedy": EventType.COMEDY,
        "Family": EventType.FAMILY,
        "Miscellaneous": EventType.OTHER,
        "Undefined": EventType.OTHER,
    }
)

SORT_PARAMS: Mapping[str, str] = MappingProxyType(
    {
        "date": "date,asc",
        "relevance": "relevance,desc",
        "name": "name,asc",
    }
)
DEFAULT_SORT = "date,asc"


def _primary_classification(raw: dict[str, Any]) -> dict[str, Any] | None:
    classifications = raw.get("classifications") or []
    if not classifications:
        return None
    for classification in classifications:
        if classification.get("primary"):
            return classification
    return classifications[0]


def _event_type(classification: dict[str, Any] | None) -> EventType:
    if classification is None:
        return EventType.OTHER
    genre_name = (classification.get("genre") or {}).get("name") or ""
    if "musical" in genre_name.lower():
        return EventType.MUSICAL
    segment_name = (classification.get("segment") or {}).get("name") or "Undefined"
    return SEGMENTS.get(segment_name, EventType.OTHER)


def _date_status(start: dict[str, Any]) -> DateStatus:
    if start.get("dateTBD"):
        return DateStatus.TBD
    if start.get("dateTBA"):
        return DateStatus.TBA
    return DateStatus.CONFIRMED


def _best_image(images: list[dict[str, Any]]) -> str | None:
    if not images:
        return None
    largest = max(images, key=lambda img: (img.get("width") or 0) * (img.get("height") or 0))
    return largest.get("url")


def _coordinate(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def map_ticketmaster_event(raw: dict[str, Any]) -> Event | None:
    """Map a Ticketmaster event payload onto the canonical Event.

    Returns None when the venue has no usable coordinates or the payload
    lacks required fields.
    """
    venues = (raw.get("_embedded") or {}).get("venues") or []
    venue = venues[0] if venues else None
    if not venue:
        return None

    location = venue.get("location") or {}
    lat = _coordinate(location.get("latitude"))
    lng = _coordinate(location.get("longitude"))
    if lat is None or lng is None:
        return None

    dates = raw.get("dates") or {}
    start = dates.get("start") or {}
    classification = _primary_classification(raw)
    images = raw.get("images") or []
    price_ranges = raw.get("priceRanges") or []
    state = venue.get("state") or {}

    try:
        return Event(
            id=EventSource.TICKETMASTER.compose_id(raw["id"]),
            source=EventSource.TICKETMASTER,
            source_id=raw["id"],
            name=raw["name"],
            description=raw.get("info") or raw.get("pleaseNote"),
            event_type=_event_type(classification),
            genre=((classification or {}).get("genre") or {}).get("name"),
            sub_genre=((classification or {}).get("subGenre") or {}).get("name"),
            start_date=start["localDate"],
            start_time=start.get("localTime"),
            end_date=(dates.get("end") or {}).get("localDate"),
            timezone=dates.get("timezone"),
            date_status=_date_status(start),
            venue=Venue(
                name=venue.get("name") or "Unknown",
                address=(venue.get("address") or {}).get("line1"),
                city=(venue.get("city") or {}).get("name") or "Unknown",
                state=state.get("stateCode") or state.get("name") or "Unknown",
                postal_code=venue.get("postalCode"),
                latitude=lat,
                longitude=lng,
            ),
            price_range=(
                PriceRange(
                    min=price_ranges[0].get("min"),
                    max=price_ranges[0].get("max"),
                    currency=price_ranges[0].get("currency") or "USD",
                )
                if price_ranges
                else None
            ),
            image_url=_best_image(images),
            images=tuple(
                EventImage(url=img["url"], width=img.get("width", 0), height=img.get("height", 0))
                for img in images
                if img.get("url")
            ),
            url=raw["url"],
            popularity=None,
        )
    except (KeyError, TypeError, ValidationError) as e:
        logger.debug(f"Dropping unmappable Ticketmaster event {raw.get('id')}: {e}")
        return None


class TicketmasterAdapter:
    """Ticketmaster Discovery v2 adapter.

    Attributes:
        source_name: "ticketmaster"
    """

    BASE_URL = "https://app.ticketmaster.com/discovery/v2"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client: httpx.AsyncClient | None = None

    @property
    def source_name(self) -> str:
        return EventSource.TICKETMASTER.value

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout),
                headers={"User-Agent": "Marquee/1.0"},
            )
        return self._client

    def _api_key(self) -> str:
        if not self._settings.has_ticketmaster_credentials():
            raise AdapterConfigError(
                self.source_name,
                Settings.get_credential_error_message(self.source_name),
            )
        return self._settings.ticketmaster_api_key.get_secret_value()  # type: ignore[union-attr]

    def _build_query(self, params: AdapterSearchParams, api_key: str) -> dict[str, str | int]:
        query: dict[str, str | int] = {
            "apikey": api_key,
            "latlong": f"{params.latitude},{params.longitude}",
            "radius": str(params.radius),
            "unit": "miles",
            "size": params.size,
            "page": params.page,
            "sort": SORT_PARAMS.get(params.sort, DEFAULT_SORT),
        }
        if params.keyword:
            query["keyword"] = params.keyword
        if params.event_type and params.event_type in CLASSIFICATIONS:
            query["classificationName"] = CLASSIFICATIONS[params.event_type]
        if params.start_datetime:
            query["startDateTime"] = params.start_datetime
        if params.end_datetime:
            query["endDateTime"] = params.end_datetime
        return query

    async def search(self, params: AdapterSearchParams) -> SourceResult:
        """Search Ticketmaster for events near a location.

        Raises:
            AdapterConfigError: If no API key is configured.
            AdapterTimeoutError: If the request times out.
            AdapterAuthError: If Ticketmaster rejects the key.
            AdapterParseError: On other HTTP errors or malformed JSON.
        """
        query = self._build_query(params, self._api_key())
        client = await self._get_client()
        logger.info(
            f"Querying Ticketmaster: latlong={query['latlong']} radius={params.radius} "
            f"size={params.size} keyword={params.keyword!r}"
        )

        try:
            response = await client.get(f"{self.BASE_URL}/events.json", params=query)
        except httpx.TimeoutException as e:
            logger.warning("Ticketmaster timeout")
            raise AdapterTimeoutError(self.source_name, self._settings.request_timeout) from e
        except httpx.HTTPError as e:
            logger.error(f"Ticketmaster HTTP error: {type(e).__name__}")
            raise AdapterParseError(self.source_name, type(e).__name__) from e

        if not response.is_success:
            logger.error(f"Ticketmaster API error: status={response.status_code}")
            handle_http_status(self.source_name, response)

        try:
            data = response.json()
        except ValueError as e:
            raise AdapterParseError(self.source_name, "Invalid JSON response") from e

        raw_events = (data.get("_embedded") or {}).get("events") or []
        events = [event for event in map(map_ticketmaster_event, raw_events) if event is not None]
        if len(events) < len(raw_events):
            logger.debug(f"Dropped {len(raw_events) - len(events)} Ticketmaster events")

        total = (data.get("page") or {}).get("totalElements", len(events))
        return SourceResult(events=events, total=total)

    async def get_by_id(self, source_id: str) -> Event | None:
        """Fetch a single Ticketmaster event. Returns None on any HTTP failure."""
        api_key = self._api_key()
        client = await self._get_client()
        logger.info(f"Fetching single Ticketmaster event: {source_id}")

        try:
            response = await client.get(
                f"{self.BASE_URL}/events/{source_id}.json", params={"apikey": api_key}
            )
        except httpx.TimeoutException as e:
            raise AdapterTimeoutError(self.source_name, self._settings.request_timeout) from e
        except httpx.HTTPError as e:
            raise AdapterParseError(self.source_name, type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                f"Ticketmaster single-event fetch failed: status={response.status_code} "
                f"id={source_id}"
            )
            return None

        try:
            return map_ticketmaster_event(response.json())
        except ValueError as e:
            raise AdapterParseError(self.source_name, "Invalid JSON response") from e

    async def health_check(self) -> bool:
        """Check if the Discovery API answers with our key."""
        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.BASE_URL}/events.json", params={"apikey": self._api_key(), "size": 1}
            )
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"Ticketmaster health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("Ticketmaster adapter client closed")


__all__ = [
    "CLASSIFICATIONS",
    "SEGMENTS",
    "TicketmasterAdapter",
    "map_ticketmaster_event",
]
