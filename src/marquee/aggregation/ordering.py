"""Sorting and pagination of the merged event feed."""

import logging
from collections.abc import Sequence

from marquee.models import Event, SortKey

logger = logging.getLogger(__name__)


def sort_events(events: Sequence[Event], sort_key: SortKey | str) -> list[Event]:
    """Return a new, stably sorted list of events.

    - ``date``: start date ascending, then start time (missing times first)
    - ``name``: name ascending, by code point (case-sensitive, so "Banana"
      sorts before "apple"; no locale collation)
    - ``relevance``: popularity descending (missing popularity counts as 0)

    An unknown key leaves the order untouched.
    """
    key = sort_key.value if isinstance(sort_key, SortKey) else sort_key

    if key == SortKey.DATE.value:
        return sorted(events, key=lambda e: (e.start_date, e.start_time or ""))
    if key == SortKey.NAME.value:
        return sorted(events, key=lambda e: e.name)
    if key == SortKey.RELEVANCE.value:
        return sorted(events, key=lambda e: e.popularity or 0, reverse=True)

    logger.debug(f"Unknown sort key {key!r}, keeping merge order")
    return list(events)


def paginate(events: Sequence[Event], page: int, size: int) -> list[Event]:
    """Slice one zero-based page out of the full sorted list."""
    start = page * size
    return list(events[start : start + size])


__all__ = ["paginate", "sort_events"]
