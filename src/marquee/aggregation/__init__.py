"""Event aggregation and deduplication.

Provides similarity primitives, duplicate classification and conflict
resolution, the cross-source deduplication engine, sort/paginate, and the
multi-source aggregator.
"""

from marquee.aggregation.aggregator import EventAggregator, compute_fetch_size
from marquee.aggregation.broaden import BroadenedResult, BroadenPass, search_with_broadening
from marquee.aggregation.dedup import DedupResult, deduplicate_all_sources
from marquee.aggregation.duplicates import (
    SOURCE_TRUST_RANK,
    completeness_score,
    is_duplicate,
    pick_best_event,
    trust_rank,
)
from marquee.aggregation.ordering import paginate, sort_events
from marquee.aggregation.similarity import (
    contains_other,
    edit_similarity,
    fingerprint,
    geo_distance_miles,
    normalize,
    word_similarity,
)

__all__ = [
    # Aggregator exports
    "EventAggregator",
    "compute_fetch_size",
    # Broadening exports
    "BroadenPass",
    "BroadenedResult",
    "search_with_broadening",
    # Deduplication exports
    "DedupResult",
    "SOURCE_TRUST_RANK",
    "completeness_score",
    "deduplicate_all_sources",
    "is_duplicate",
    "pick_best_event",
    "trust_rank",
    # Ordering exports
    "paginate",
    "sort_events",
    # Similarity exports
    "contains_other",
    "edit_similarity",
    "fingerprint",
    "geo_distance_miles",
    "normalize",
    "word_similarity",
]
