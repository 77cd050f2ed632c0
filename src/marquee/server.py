"""FastMCP server exposing Marquee event search tools."""

import asyncio
import atexit
import logging

from fastmcp import FastMCP

from marquee.adapters import (
    AdapterConfigError,
    AdapterError,
    EventSourceAdapter,
    SeatGeekAdapter,
    TicketmasterAdapter,
    WebSearchAdapter,
)
from marquee.aggregation import EventAggregator, search_with_broadening
from marquee.config import configure_logging, get_settings
from marquee.models import (
    AggregatedResult,
    Event,
    EventSource,
    EventType,
    SearchParams,
    SortKey,
    utc_now_bound,
)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("marquee")

MIN_RADIUS_MILES = 1
MAX_RADIUS_MILES = 500
MAX_PAGE_SIZE = 100

# Global instance (initialized on first use)
_aggregator: EventAggregator | None = None


def _get_aggregator() -> EventAggregator:
    global _aggregator
    if _aggregator is None:
        settings = get_settings()
        # Registration order is trust order; dedup ties go to earlier sources
        adapters: dict[str, EventSourceAdapter] = {
            EventSource.TICKETMASTER.value: TicketmasterAdapter(settings),
            EventSource.SEATGEEK.value: SeatGeekAdapter(settings),
            EventSource.WEB.value: WebSearchAdapter(settings),
        }
        _aggregator = EventAggregator(adapters=adapters, settings=settings)
    return _aggregator


async def _cleanup_resources() -> None:
    """Close all adapter connections."""
    global _aggregator
    if _aggregator is not None:
        await _aggregator.close()
        _aggregator = None
    logger.debug("All resources cleaned up")


def _atexit_cleanup() -> None:
    """Synchronous atexit handler that runs async cleanup."""
    try:
        asyncio.run(_cleanup_resources())
    except Exception as e:
        # Don't let cleanup errors prevent shutdown
        logger.debug(f"Cleanup error (non-fatal): {e}")


atexit.register(_atexit_cleanup)


def _format_event_line(index: int, event: Event) -> str:
    when = event.start_date
    if event.start_time:
        when += f" {event.start_time[:5]}"
    if event.date_status.value != "confirmed":
        when += f" ({event.date_status.value.upper()})"

    line = (
        f"{index}. **{event.name}** - {when}\n"
        f"   {event.venue.name}, {event.venue.city}, {event.venue.state}"
        f" | {event.event_type.value} | {event.source.value}"
    )
    if event.price_range and event.price_range.min is not None:
        price = f"{event.price_range.min:.0f}"
        if event.price_range.max is not None:
            price += f"-{event.price_range.max:.0f}"
        line += f" | {price} {event.price_range.currency}"
    line += f"\n   id: `{event.id}` | {event.url}"
    return line


def _format_results(result: AggregatedResult, params: SearchParams) -> str:
    breakdown = result.sources
    lines = [
        "## Event Search Results",
        "",
        f"**{result.total} events found** "
        f"(page {params.page + 1} of {max(result.total_pages(params.size), 1)})",
        "",
        "Sources: "
        + ", ".join(f"{name} {count}" for name, count in breakdown.counts.items())
        + f". {breakdown.duplicates_removed} duplicates removed.",
        "",
    ]
    if not result.events:
        lines.append("No events on this page. Try a wider radius or fewer filters.")
    else:
        start = params.page * params.size
        lines.extend(
            _format_event_line(start + i, event) for i, event in enumerate(result.events, 1)
        )
    return "\n".join(lines)


def _search_request_problems(
    latitude: float, longitude: float, radius: float, page: int, size: int, sort: str
) -> list[str]:
    problems = []
    if not -90 <= latitude <= 90:
        problems.append(f"`latitude` must be between -90 and 90 (got {latitude})")
    if not -180 <= longitude <= 180:
        problems.append(f"`longitude` must be between -180 and 180 (got {longitude})")
    if not MIN_RADIUS_MILES <= radius <= MAX_RADIUS_MILES:
        problems.append(
            f"`radius` must be between {MIN_RADIUS_MILES} and {MAX_RADIUS_MILES} miles "
            f"(got {radius})"
        )
    if page < 0:
        problems.append(f"`page` must be 0 or greater (got {page})")
    if not 1 <= size <= MAX_PAGE_SIZE:
        problems.append(f"`size` must be between 1 and {MAX_PAGE_SIZE} (got {size})")
    if sort not in {key.value for key in SortKey}:
        problems.append(
            f"`sort` must be one of {', '.join(key.value for key in SortKey)} (got {sort!r})"
        )
    return problems


@mcp.tool()
async def search_events(
    latitude: float,
    longitude: float,
    radius: float = 25,
    keyword: str | None = None,
    event_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int = 0,
    size: int = 20,
    sort: str = "date",
    broaden: bool = False,
) -> str:
    """Search live events near a location across Ticketmaster, SeatGeek and the web.

    Results from all sources are merged, duplicates removed, then sorted
    and paginated.

    Args:
        latitude: Search center latitude (-90 to 90)
        longitude: Search center longitude (-180 to 180)
        radius: Search radius in miles (1 to 500)
        keyword: Optional artist, team or event keyword
        event_type: Optional category: music, sports, theatre, musical,
            comedy, family, film, other
        start_date: Optional earliest date (YYYY-MM-DD); defaults to now
        end_date: Optional latest date (YYYY-MM-DD)
        page: Zero-based page number
        size: Page size (1 to 100)
        sort: "date", "name" or "relevance"
        broaden: Retry with looser filters when few events are found

    Returns:
        Markdown list of events with ids, venues and source breakdown.
    """
    logger.info(
        f"Event search requested: lat={latitude} lng={longitude} radius={radius} "
        f"keyword={keyword!r} type={event_type} page={page}"
    )

    problems = _search_request_problems(latitude, longitude, radius, page, size, sort)
    if problems:
        logger.warning(f"Rejected event search: {'; '.join(problems)}")
        return "## Invalid Request\n\n" + "\n".join(f"- {problem}" for problem in problems)

    category: EventType | None = None
    if event_type:
        try:
            category = EventType(event_type.lower())
        except ValueError:
            return (
                f"## Invalid Event Type\n\n"
                f"Unknown event type: **{event_type}**\n\n"
                f"**Supported types:** {', '.join(t.value for t in EventType)}"
            )

    params = SearchParams.from_dates(
        latitude,
        longitude,
        start_date=start_date or utc_now_bound(),
        end_date=end_date,
        radius=radius,
        keyword=keyword,
        event_type=category,
        page=page,
        size=size,
        sort=sort,
    )

    try:
        aggregator = _get_aggregator()
        if broaden:
            broadened = await search_with_broadening(aggregator, params, limit=size)
            result = broadened.result
        else:
            result = await aggregator.search_all_sources(params)

        if category is EventType.MUSICAL:
            # Ticketmaster has no musical classification; narrow theatre results
            result = result.model_copy(
                update={
                    "events": [
                        e
                        for e in result.events
                        if e.event_type is EventType.MUSICAL
                        or "musical" in (e.genre or "").lower()
                    ]
                }
            )

        logger.info(f"Event search completed: {result.total} events")
        return _format_results(result, params)

    except AdapterConfigError as e:
        logger.error(f"Event search misconfigured: {e}")
        return (
            f"## Source Not Configured\n\n"
            f"**What happened:** {e.message}\n\n"
            f"{get_settings().get_credential_error_message(e.source_name)}"
        )

    except AdapterError as e:
        logger.error(f"Adapter error during event search: {e}")
        return (
            f"## Unable to Retrieve Events\n\n"
            f"**What happened:** {e.message}\n\n"
            f"**Suggestions:**\n"
            f"- Try again in a few moments\n"
            f"- Try a different keyword or location"
        )

    except Exception as e:
        logger.exception(f"Unexpected error during event search: {e}")
        return (
            "## Error\n\n"
            "An unexpected error occurred while searching events.\n\n"
            "Please try again later."
        )


@mcp.tool()
async def get_event(event_id: str) -> str:
    """Look up a single event by the id shown in search results.

    Args:
        event_id: Composite event id such as "tm_G5vYZ9" or "sg_5512345"

    Returns:
        Markdown description of the event, or a not-found message.
    """
    logger.info(f"Event lookup requested: {event_id}")
    try:
        event = await _get_aggregator().get_event_by_id(event_id)
    except AdapterError as e:
        logger.error(f"Adapter error looking up {event_id}: {e}")
        return (
            f"## Unable to Retrieve Event\n\n"
            f"**What happened:** {e.message}\n\n"
            f"Please try again later."
        )

    if event is None:
        return f"## Event Not Found\n\nNo event found for id **{event_id}**."

    lines = [f"## {event.name}", "", _format_event_line(1, event)]
    if event.genre:
        genre = event.genre + (f" / {event.sub_genre}" if event.sub_genre else "")
        lines.append(f"\n**Genre:** {genre}")
    if event.description:
        lines.append(f"\n{event.description}")
    if event.image_url:
        lines.append(f"\n![{event.name}]({event.image_url})")
    return "\n".join(lines)


def main() -> None:
    """Run the Marquee MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting Marquee MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
