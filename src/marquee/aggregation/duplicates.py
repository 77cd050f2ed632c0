"""Duplicate classification and conflict resolution between two events.

``is_duplicate`` decides whether two records describe the same performance.
Any one of three independent signals is enough to merge.

``pick_best_event`` chooses which record of a duplicate pair survives.
"""

from types import MappingProxyType
from typing import Mapping

from marquee.aggregation.similarity import (
    contains_other,
    edit_similarity,
    fingerprint,
    geo_distance_miles,
    word_similarity,
)
from marquee.models import Event, EventSource

# Signal 1: strong name match within the same general area
STRONG_NAME_EDIT = 0.70
STRONG_NAME_WORDS = 0.60
MIN_FINGERPRINT_LENGTH = 3
NEARBY_MILES = 5.0

# Signal 2: same venue, partial name match
SAME_VENUE_EDIT = 0.70
PARTIAL_NAME_EDIT = 0.35
PARTIAL_NAME_WORDS = 0.30

# Signal 3: essentially the same address, moderate name match
CO_LOCATED_MILES = 0.3
MODERATE_NAME_EDIT = 0.55
MODERATE_NAME_WORDS = 0.45

SOURCE_TRUST_RANK: Mapping[str, int] = MappingProxyType(
    {
        EventSource.TICKETMASTER.value: 3,
        EventSource.SEATGEEK.value: 2,
        EventSource.WEB.value: 1,
    }
)


def _venue_distance(a: Event, b: Event) -> float:
    return geo_distance_miles(
        a.venue.latitude, a.venue.longitude, b.venue.latitude, b.venue.longitude
    )


def is_duplicate(a: Event, b: Event) -> bool:
    """Decide whether two events are the same real-world occurrence.

    Events on different calendar dates are never duplicates.
    """
    if a.start_date != b.start_date:
        return False

    name_edit = edit_similarity(a.name, b.name)
    name_words = word_similarity(a.name, b.name)
    fp_a = fingerprint(a.name)
    fp_match = fp_a == fingerprint(b.name) and len(fp_a) > MIN_FINGERPRINT_LENGTH
    distance = _venue_distance(a, b)

    strong_name = (
        name_edit >= STRONG_NAME_EDIT
        or name_words >= STRONG_NAME_WORDS
        or fp_match
        or contains_other(a.name, b.name)
    )
    if strong_name and distance <= NEARBY_MILES:
        return True

    venue_edit = edit_similarity(a.venue.name, b.venue.name)
    if venue_edit >= SAME_VENUE_EDIT and (
        name_edit >= PARTIAL_NAME_EDIT or name_words >= PARTIAL_NAME_WORDS
    ):
        return True

    if distance <= CO_LOCATED_MILES and (
        name_edit >= MODERATE_NAME_EDIT or name_words >= MODERATE_NAME_WORDS
    ):
        return True

    return False


def trust_rank(source: EventSource | str) -> int:
    """Trust rank of a source; unknown sources rank 0."""
    key = source.value if isinstance(source, EventSource) else source
    return SOURCE_TRUST_RANK.get(key, 0)


def completeness_score(event: Event) -> int:
    """Count of optional detail fields the record carries."""
    return sum(
        (
            bool(event.image_url),
            event.price_range is not None,
            bool(event.description),
            bool(event.start_time),
        )
    )


def pick_best_event(a: Event, b: Event) -> Event:
    """Pick the survivor of a duplicate pair.

    The more trusted source wins outright. Between equally trusted sources
    the more complete record wins, and a tie keeps ``a``.
    """
    rank_a = trust_rank(a.source)
    rank_b = trust_rank(b.source)
    if rank_a != rank_b:
        return a if rank_a > rank_b else b

    return a if completeness_score(a) >= completeness_score(b) else b


__all__ = [
    "SOURCE_TRUST_RANK",
    "completeness_score",
    "is_duplicate",
    "pick_best_event",
    "trust_rank",
]
