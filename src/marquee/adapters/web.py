"""Web search adapter backed by the Anthropic Messages API.

Finds events that the ticketing APIs miss (venue sites, local calendars,
Eventbrite pages) using the server-side web search tool, then forces the
model to report them through a structured ``extract_events`` tool.

This source is optional: without an API key, or without a keyword to
search for, it returns an empty result.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

import anthropic
from pydantic import BaseModel, ValidationError

from marquee.adapters.base import AdapterAuthError, AdapterParseError, AdapterTimeoutError
from marquee.config import Settings, get_settings
from marquee.models import (
    AdapterSearchParams,
    Event,
    EventSource,
    EventType,
    PriceRange,
    SourceResult,
    Venue,
)

logger = logging.getLogger(__name__)

EXTRACT_TOOL_NAME = "extract_events"

EXTRACT_TOOL: dict[str, Any] = {
    "name": EXTRACT_TOOL_NAME,
    "description": "Extract structured event information from web search results.",
    "input_schema": {
        "type": "object",
        "properties": {
            "events": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Event name"},
                        "venue": {"type": "string", "description": "Venue name"},
                        "city": {"type": "string", "description": "City"},
                        "state": {"type": "string", "description": "State abbreviation"},
                        "latitude": {"type": "number", "description": "Venue latitude"},
                        "longitude": {"type": "number", "description": "Venue longitude"},
                        "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                        "time": {"type": "string", "description": "Time in HH:MM:SS format"},
                        "eventType": {
                            "type": "string",
                            "enum": [t.value for t in EventType],
                        },
                        "url": {"type": "string", "description": "Ticket or event page URL"},
                        "description": {"type": "string", "description": "Brief description"},
                        "priceMin": {"type": "number", "description": "Minimum price"},
                        "priceMax": {"type": "number", "description": "Maximum price"},
                    },
                    "required": [
                        "name",
                        "venue",
                        "city",
                        "state",
                        "latitude",
                        "longitude",
                        "date",
                        "eventType",
                        "url",
                    ],
                },
            }
        },
        "required": ["events"],
    },
}

SYSTEM_PROMPT = (
    "You are an event research assistant. Today is {today}. Search the web for live "
    "events matching the user's query. Focus on venue websites, Eventbrite, local event "
    "calendars, and other sources not typically found on Ticketmaster or SeatGeek. "
    "Report events with the extract_events tool. Only include events with confirmed "
    "dates, venues and venue coordinates."
)


class ExtractedEvent(BaseModel):
    """One event as reported through the extract_events tool."""

    name: str | None = None
    venue: str | None = None
    city: str | None = None
    state: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    date: str | None = None
    time: str | None = None
    eventType: str | None = None
    url: str | None = None
    description: str | None = None
    priceMin: float | None = None
    priceMax: float | None = None


def _web_source_id(item: ExtractedEvent) -> str:
    digest = hashlib.md5(f"{item.name}|{item.date}|{item.venue}|{item.url}".encode())
    return digest.hexdigest()[:12]


def map_web_event(item: ExtractedEvent) -> Event | None:
    """Map an extracted web event onto the canonical Event.

    Returns None when name, venue, date, url or coordinates are missing.
    """
    if not (item.name and item.venue and item.date and item.url):
        return None
    if item.latitude is None or item.longitude is None:
        return None

    try:
        event_type = EventType(item.eventType) if item.eventType else EventType.OTHER
    except ValueError:
        event_type = EventType.OTHER

    source_id = _web_source_id(item)
    try:
        return Event(
            id=EventSource.WEB.compose_id(source_id),
            source=EventSource.WEB,
            source_id=source_id,
            name=item.name,
            description=item.description,
            event_type=event_type,
            start_date=item.date,
            start_time=item.time or None,
            venue=Venue(
                name=item.venue,
                city=item.city or "Unknown",
                state=item.state or "Unknown",
                latitude=item.latitude,
                longitude=item.longitude,
            ),
            price_range=(
                PriceRange(min=item.priceMin, max=item.priceMax, currency="USD")
                if item.priceMin is not None
                else None
            ),
            url=item.url,
        )
    except ValidationError as e:
        logger.debug(f"Dropping unmappable web event {item.name!r}: {e}")
        return None


class WebSearchAdapter:
    """Web search event source.

    Attributes:
        source_name: "web"
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def source_name(self) -> str:
        return EventSource.WEB.value

    async def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazy initialization of the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._settings.anthropic_api_key.get_secret_value(),  # type: ignore[union-attr]
                timeout=self._settings.web_search_timeout,
            )
        return self._client

    def _build_prompt(self, params: AdapterSearchParams) -> str:
        lines = [
            f'Search for: "{params.keyword}" near latitude {params.latitude}, '
            f"longitude {params.longitude} (within {params.radius} miles).",
        ]
        if params.event_type:
            lines.append(f"Event category: {params.event_type.value}.")
        if params.start_datetime or params.end_datetime:
            lines.append(
                f"Only events between {params.start_datetime or 'now'} and "
                f"{params.end_datetime or 'any later date'}."
            )
        lines.append(
            f"Report at most {params.size} events using the {EXTRACT_TOOL_NAME} tool."
        )
        return "\n".join(lines)

    async def search(self, params: AdapterSearchParams) -> SourceResult:
        """Search the web for events matching the keyword.

        Raises:
            AdapterTimeoutError: If the API call times out.
            AdapterAuthError: If the API key is rejected.
            AdapterParseError: On other API errors.
        """
        if not self._settings.has_anthropic_credentials():
            logger.debug("Anthropic API key not configured, skipping web search")
            return SourceResult.empty()
        if not params.keyword:
            logger.debug("No keyword given, skipping web search")
            return SourceResult.empty()
        if params.page > 0:
            # Web results are not paginated upstream
            return SourceResult.empty()

        client = await self._get_client()
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        logger.info(f"Querying web search: keyword={params.keyword!r} radius={params.radius}")

        try:
            response = await client.messages.create(
                model=self._settings.web_search_model,
                max_tokens=4096,
                system=SYSTEM_PROMPT.format(today=today),
                messages=[{"role": "user", "content": self._build_prompt(params)}],
                tools=[
                    EXTRACT_TOOL,
                    {
                        "type": "web_search_20250305",
                        "name": "web_search",
                        "max_uses": self._settings.web_search_max_uses,
                    },
                ],
            )
        except anthropic.APITimeoutError as e:
            logger.warning("Web search timeout")
            raise AdapterTimeoutError(self.source_name, self._settings.web_search_timeout) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AdapterAuthError(self.source_name, type(e).__name__) from e
        except anthropic.APIError as e:
            logger.error(f"Web search API error: {type(e).__name__}")
            raise AdapterParseError(self.source_name, type(e).__name__) from e

        events = self._parse_response(response)[: params.size]
        return SourceResult(events=events, total=len(events))

    def _parse_response(self, response: Any) -> list[Event]:
        extract_block = next(
            (
                block
                for block in response.content
                if getattr(block, "type", None) == "tool_use"
                and getattr(block, "name", None) == EXTRACT_TOOL_NAME
            ),
            None,
        )
        if extract_block is None:
            logger.debug("Web search did not return structured events")
            return []

        raw_events = (extract_block.input or {}).get("events") or []
        events: list[Event] = []
        seen_ids: set[str] = set()
        for raw in raw_events:
            try:
                item = ExtractedEvent.model_validate(raw)
            except ValidationError:
                continue
            event = map_web_event(item)
            if event is None or event.id in seen_ids:
                continue
            seen_ids.add(event.id)
            events.append(event)
        return events

    async def get_by_id(self, source_id: str) -> Event | None:
        """Web results cannot be looked up again by id."""
        return None

    async def health_check(self) -> bool:
        """Web search is usable whenever a key is configured."""
        return self._settings.has_anthropic_credentials()

    async def close(self) -> None:
        """Close the Anthropic client."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.debug("Web search adapter client closed")


__all__ = [
    "EXTRACT_TOOL",
    "ExtractedEvent",
    "WebSearchAdapter",
    "map_web_event",
]
