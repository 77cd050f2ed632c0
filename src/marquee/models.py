"""Pydantic models for Marquee event aggregation."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventSource(str, Enum):
    """Upstream provider an event record came from."""

    TICKETMASTER = "ticketmaster"
    SEATGEEK = "seatgeek"
    WEB = "web"

    @property
    def id_prefix(self) -> str:
        """Prefix used when composing a record's global id."""
        return {
            EventSource.TICKETMASTER: "tm",
            EventSource.SEATGEEK: "sg",
            EventSource.WEB: "web",
        }[self]

    def compose_id(self, source_id: str) -> str:
        """Build the global id for a source-local id (e.g. ``tm_G5v0Z9``)."""
        return f"{self.id_prefix}_{source_id}"


class EventType(str, Enum):
    """Closed event category enumeration."""

    MUSIC = "music"
    SPORTS = "sports"
    THEATRE = "theatre"
    MUSICAL = "musical"
    COMEDY = "comedy"
    FAMILY = "family"
    FILM = "film"
    OTHER = "other"


class DateStatus(str, Enum):
    """Confidence in an event's scheduled date."""

    CONFIRMED = "confirmed"
    TBD = "tbd"  # date to be determined
    TBA = "tba"  # time to be announced


class SortKey(str, Enum):
    """Supported orderings for the aggregated feed."""

    DATE = "date"
    NAME = "name"
    RELEVANCE = "relevance"


class Venue(BaseModel):
    """Where an event takes place. Coordinates are always present."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str
    address: str | None = None
    city: str
    state: str
    postal_code: str | None = None
    latitude: float = Field(allow_inf_nan=False)
    longitude: float = Field(allow_inf_nan=False)


class PriceRange(BaseModel):
    """Ticket price range. Either bound may be unknown."""

    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None
    currency: str = "USD"


class EventImage(BaseModel):
    """One image variant of an event."""

    model_config = ConfigDict(frozen=True)

    url: str
    width: int
    height: int


class Event(BaseModel):
    """Canonical event record shared by every source.

    Records are immutable; deduplication builds new collections rather than
    editing records in place.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    # Identity
    id: str
    source: EventSource
    source_id: str

    # Descriptive
    name: str
    description: str | None = None
    event_type: EventType = EventType.OTHER
    genre: str | None = None
    sub_genre: str | None = None

    # Temporal
    start_date: str  # YYYY-MM-DD
    start_time: str | None = None  # HH:MM:SS local
    end_date: str | None = None
    timezone: str | None = None
    date_status: DateStatus = DateStatus.CONFIRMED

    # Spatial
    venue: Venue

    # Commercial
    price_range: PriceRange | None = None

    # Media
    image_url: str | None = None
    images: tuple[EventImage, ...] = ()

    # Presentation
    url: str
    popularity: float | None = None


class SearchParams(BaseModel):
    """Parameters for one aggregated search across all sources.

    Callers validate bounds (coordinates, radius, page, size) before
    constructing this.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    latitude: float
    longitude: float
    radius: float = 25
    keyword: str | None = None
    event_type: EventType | None = None
    start_datetime: str | None = None  # UTC ISO 8601
    end_datetime: str | None = None  # UTC ISO 8601
    page: int = 0
    size: int = 20
    sort: str = SortKey.DATE.value

    @classmethod
    def from_dates(
        cls,
        latitude: float,
        longitude: float,
        start_date: str | None = None,
        end_date: str | None = None,
        **kwargs: object,
    ) -> SearchParams:
        """Build params from calendar dates (YYYY-MM-DD).

        The start date becomes midnight UTC and the end date the last second
        of that day. Values that already carry a time part pass through.
        """
        return cls(
            latitude=latitude,
            longitude=longitude,
            start_datetime=_date_bound(start_date, "T00:00:00Z"),
            end_datetime=_date_bound(end_date, "T23:59:59Z"),
            **kwargs,
        )


def utc_now_bound() -> str:
    """Current time as a UTC ISO 8601 bound, to the second."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _date_bound(value: str | None, suffix: str) -> str | None:
    if not value:
        return None
    if "T" in value:
        return value
    return f"{value}{suffix}"


class AdapterSearchParams(BaseModel):
    """Parameters handed to a single source adapter.

    ``event_type`` and ``sort`` use the canonical vocabulary; each adapter
    translates them into its own taxonomy.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    radius: float
    keyword: str | None = None
    event_type: EventType | None = None
    start_datetime: str | None = None
    end_datetime: str | None = None
    page: int = 0
    size: int = 20
    sort: str = SortKey.DATE.value


class SourceResult(BaseModel):
    """Events returned by one adapter, plus the upstream's own total."""

    model_config = ConfigDict(frozen=True)

    events: list[Event] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def empty(cls) -> SourceResult:
        return cls(events=[], total=0)


class SourceBreakdown(BaseModel):
    """Raw per-source counts (before dedup) and the global dedup loss."""

    counts: dict[str, int] = Field(default_factory=dict)
    duplicates_removed: int = 0

    def count_for(self, source: EventSource | str) -> int:
        key = source.value if isinstance(source, EventSource) else source
        return self.counts.get(key, 0)

    def to_dict(self) -> dict[str, int]:
        """Flatten into a single mapping for display or JSON."""
        flat = {source.value: self.count_for(source) for source in EventSource}
        for name, count in self.counts.items():
            flat.setdefault(name, count)
        flat["duplicates_removed"] = self.duplicates_removed
        return flat


class AggregatedResult(BaseModel):
    """One page of the merged feed.

    ``total`` is the deduplicated count across all sources, not any single
    source's raw total.
    """

    events: list[Event] = Field(default_factory=list)
    total: int = 0
    sources: SourceBreakdown = Field(default_factory=SourceBreakdown)

    def total_pages(self, size: int) -> int:
        """Number of pages of ``size`` needed to show ``total`` events."""
        if size <= 0:
            return 0
        return math.ceil(self.total / size)


__all__ = [
    "AdapterSearchParams",
    "AggregatedResult",
    "DateStatus",
    "Event",
    "EventImage",
    "EventSource",
    "EventType",
    "PriceRange",
    "SearchParams",
    "SortKey",
    "SourceBreakdown",
    "SourceResult",
    "Venue",
    "utc_now_bound",
]
