"""SeatGeek Platform API adapter.

API Reference: https://platform.seatgeek.com/

SeatGeek is a secondary source: without a client id, or when the API
errors, the adapter returns an empty result so the other sources still
produce a feed.
"""

import logging
from types import MappingProxyType
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from marquee.adapters.base import AdapterParseError, AdapterTimeoutError
from marquee.config import Settings, get_settings
from marquee.models import (
    AdapterSearchParams,
    DateStatus,
    Event,
    EventSource,
    EventType,
    PriceRange,
    SourceResult,
    Venue,
)

logger = logging.getLogger(__name__)

# Canonical category -> SeatGeek event type
SEATGEEK_TYPES: Mapping[EventType, str] = MappingProxyType(
    {
        EventType.MUSIC: "concert",
        EventType.SPORTS: "sports",
        EventType.THEATRE: "theater",
        EventType.MUSICAL: "theater",
        EventType.COMEDY: "comedy",
        EventType.FAMILY: "family",
        EventType.FILM: "film",
    }
)

# SeatGeek taxonomy/type name -> canonical category
TAXONOMY_TYPES: Mapping[str, EventType] = MappingProxyType(
    {
        "concert": EventType.MUSIC,
        "music_festival": EventType.MUSIC,
        "classical": EventType.MUSIC,
        "sports": EventType.SPORTS,
        "baseball": EventType.SPORTS,
        "basketball": EventType.SPORTS,
        "football": EventType.SPORTS,
        "hockey": EventType.SPORTS,
        "soccer": EventType.SPORTS,
        "mma": EventType.SPORTS,
        "wrestling": EventType.SPORTS,
        "golf": EventType.SPORTS,
        "tennis": EventType.SPORTS,
        "auto_racing": EventType.SPORTS,
        "horse_racing": EventType.SPORTS,
        "theater": EventType.THEATRE,
        "dance_performance_tour": EventType.THEATRE,
        "broadway_tickets_national": EventType.MUSICAL,
        "musical": EventType.MUSICAL,
        "comedy": EventType.COMEDY,
        "family": EventType.FAMILY,
        "circus": EventType.FAMILY,
        "film": EventType.FILM,
        "literary": EventType.OTHER,
    }
)

SORT_PARAMS: Mapping[str, str] = MappingProxyType(
    {
        "date": "datetime_local.asc",
        "relevance": "score.desc",
        "name": "name.asc",
    }
)
DEFAULT_SORT = "datetime_local.asc"


def _event_type(raw: dict[str, Any]) -> EventType:
    for taxonomy in raw.get("taxonomies") or []:
        mapped = TAXONOMY_TYPES.get(taxonomy.get("name", ""))
        if mapped:
            return mapped
    return TAXONOMY_TYPES.get(raw.get("type") or "", EventType.OTHER)


def _best_image(performers: list[dict[str, Any]]) -> str | None:
    for performer in performers:
        huge = (performer.get("images") or {}).get("huge")
        if huge:
            return huge
        if performer.get("image"):
            return performer["image"]
    return None


def _split_datetime(value: str) -> tuple[str, str | None]:
    """Split ``2025-06-01T19:30:00`` into ``("2025-06-01", "19:30:00")``."""
    if "T" not in value:
        return value, None
    date_part, time_part = value.split("T", 1)
    return date_part, f"{time_part[:5]}:00"


def map_seatgeek_event(raw: dict[str, Any]) -> Event | None:
    """Map a SeatGeek event payload onto the canonical Event.

    Returns None when the venue has no coordinates or required fields are
    missing.
    """
    venue = raw.get("venue") or {}
    location = venue.get("location") or {}
    lat = location.get("lat")
    lon = location.get("lon")
    if lat is None or lon is None:
        return None

    local = raw.get("datetime_local") or raw.get("datetime_utc")
    if not local:
        return None
    start_date, start_time = _split_datetime(local)
    tbd = bool(raw.get("datetime_tbd"))

    performers = raw.get("performers") or []
    stats = raw.get("stats") or {}
    score = raw.get("score") or 0

    try:
        source_id = str(raw["id"])
        return Event(
            id=EventSource.SEATGEEK.compose_id(source_id),
            source=EventSource.SEATGEEK,
            source_id=source_id,
            name=raw["title"],
            description=raw.get("description") or None,
            event_type=_event_type(raw),
            genre=performers[0].get("type") if performers else None,
            sub_genre=None,
            start_date=start_date,
            start_time=None if tbd else start_time,
            date_status=DateStatus.TBD if tbd else DateStatus.CONFIRMED,
            venue=Venue(
                name=venue.get("name_v2") or venue.get("name") or "Unknown",
                address=venue.get("address"),
                city=venue.get("city") or "Unknown",
                state=venue.get("state") or "Unknown",
                postal_code=venue.get("postal_code"),
                latitude=lat,
                longitude=lon,
            ),
            price_range=(
                PriceRange(
                    min=stats["lowest_price"],
                    max=stats.get("highest_price"),
                    currency="USD",
                )
                if stats.get("lowest_price") is not None
                else None
            ),
            image_url=_best_image(performers),
            url=raw["url"],
            popularity=round(score * 100) if score > 0 else None,
        )
    except (KeyError, TypeError, ValidationError) as e:
        logger.debug(f"Dropping unmappable SeatGeek event {raw.get('id')}: {e}")
        return None


class SeatGeekAdapter:
    """SeatGeek events adapter.

    Attributes:
        source_name: "seatgeek"
    """

    BASE_URL = "https://api.seatgeek.com/2"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client: httpx.AsyncClient | None = None

    @property
    def source_name(self) -> str:
        return EventSource.SEATGEEK.value

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout),
                headers={"User-Agent": "Marquee/1.0"},
            )
        return self._client

    def _client_id(self) -> str | None:
        if not self._settings.has_seatgeek_credentials():
            return None
        return self._settings.seatgeek_client_id.get_secret_value()  # type: ignore[union-attr]

    def _build_query(self, params: AdapterSearchParams, client_id: str) -> dict[str, str | int]:
        query: dict[str, str | int] = {
            "client_id": client_id,
            "lat": str(params.latitude),
            "lon": str(params.longitude),
            "range": f"{params.radius}mi",
            "per_page": params.size,
            # SeatGeek pages are 1-indexed
            "page": params.page + 1,
            "sort": SORT_PARAMS.get(params.sort, DEFAULT_SORT),
        }
        if params.keyword:
            query["q"] = params.keyword
        if params.event_type and params.event_type in SEATGEEK_TYPES:
            query["type"] = SEATGEEK_TYPES[params.event_type]
        if params.start_datetime:
            query["datetime_utc.gte"] = params.start_datetime
        if params.end_datetime:
            query["datetime_utc.lte"] = params.end_datetime
        return query

    async def search(self, params: AdapterSearchParams) -> SourceResult:
        """Search SeatGeek for events near a location.

        Returns an empty result when no client id is configured or the API
        answers with an error status.

        Raises:
            AdapterTimeoutError: If the request times out.
            AdapterParseError: On transport errors or malformed JSON.
        """
        client_id = self._client_id()
        if client_id is None:
            logger.debug("SeatGeek client id not configured, skipping SeatGeek search")
            return SourceResult.empty()

        query = self._build_query(params, client_id)
        client = await self._get_client()
        logger.info(
            f"Querying SeatGeek: lat={query['lat']} lon={query['lon']} range={query['range']} "
            f"per_page={params.size} q={params.keyword!r}"
        )

        try:
            response = await client.get(f"{self.BASE_URL}/events", params=query)
        except httpx.TimeoutException as e:
            logger.warning("SeatGeek timeout")
            raise AdapterTimeoutError(self.source_name, self._settings.request_timeout) from e
        except httpx.HTTPError as e:
            logger.error(f"SeatGeek HTTP error: {type(e).__name__}")
            raise AdapterParseError(self.source_name, type(e).__name__) from e

        if not response.is_success:
            logger.error(f"SeatGeek API error: status={response.status_code}")
            return SourceResult.empty()

        try:
            data = response.json()
        except ValueError as e:
            raise AdapterParseError(self.source_name, "Invalid JSON response") from e

        raw_events = data.get("events") or []
        events = [event for event in map(map_seatgeek_event, raw_events) if event is not None]
        if len(events) < len(raw_events):
            logger.debug(f"Dropped {len(raw_events) - len(events)} SeatGeek events")

        total = (data.get("meta") or {}).get("total", len(events))
        return SourceResult(events=events, total=total)

    async def get_by_id(self, source_id: str) -> Event | None:
        """Fetch a single SeatGeek event. Returns None when unconfigured or not found."""
        client_id = self._client_id()
        if client_id is None:
            return None

        client = await self._get_client()
        logger.info(f"Fetching single SeatGeek event: {source_id}")

        try:
            response = await client.get(
                f"{self.BASE_URL}/events/{source_id}", params={"client_id": client_id}
            )
        except httpx.TimeoutException as e:
            raise AdapterTimeoutError(self.source_name, self._settings.request_timeout) from e
        except httpx.HTTPError as e:
            raise AdapterParseError(self.source_name, type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                f"SeatGeek single-event fetch failed: status={response.status_code} id={source_id}"
            )
            return None

        try:
            return map_seatgeek_event(response.json())
        except ValueError as e:
            raise AdapterParseError(self.source_name, "Invalid JSON response") from e

    async def health_check(self) -> bool:
        """Check if the SeatGeek API answers with our client id."""
        client_id = self._client_id()
        if client_id is None:
            return False
        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.BASE_URL}/events", params={"client_id": client_id, "per_page": 1}
            )
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"SeatGeek health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("SeatGeek adapter client closed")


__all__ = [
    "SEATGEEK_TYPES",
    "TAXONOMY_TYPES",
    "SeatGeekAdapter",
    "map_seatgeek_event",
]
