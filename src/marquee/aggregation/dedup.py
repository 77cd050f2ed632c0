"""Cross-source deduplication engine."""

import logging
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from marquee.aggregation.duplicates import is_duplicate, pick_best_event
from marquee.models import Event

logger = logging.getLogger(__name__)


class DedupResult(BaseModel):
    """Survivors of deduplication and how many records were folded away."""

    model_config = ConfigDict(frozen=True)

    events: list[Event] = Field(default_factory=list)
    duplicates_removed: int = 0


def deduplicate_all_sources(lists_by_source: Sequence[Sequence[Event]]) -> DedupResult:
    """Merge per-source event lists into one duplicate-free list.

    Lists are flattened in the order given, so earlier sources win ties.
    Each surviving index keeps an evolving "best" record; every later record
    that duplicates it is folded into the cluster, and when the later record
    wins the conflict it becomes the new best and the scan restarts, so the
    emitted survivor has been compared against every remaining record.
    Clusters of more than two duplicates therefore collapse into one survivor.

    Args:
        lists_by_source: Event lists, one per source, in trust order.

    Returns:
        DedupResult with survivors in first-seen order and the number of
        records removed.
    """
    all_events = [event for events in lists_by_source for event in events]
    removed: set[int] = set()
    kept: list[Event] = []

    for i, candidate in enumerate(all_events):
        if i in removed:
            continue

        best = candidate
        j = i + 1
        while j < len(all_events):
            if j in removed or not is_duplicate(best, all_events[j]):
                j += 1
                continue
            other = all_events[j]
            removed.add(j)
            if pick_best_event(best, other) is other:
                # New survivor; re-check everything it has not been compared with
                best = other
                j = i + 1
            else:
                j += 1

        # One survivor per cluster, whichever record ended up as best
        kept.append(best)

    duplicates_removed = len(all_events) - len(kept)
    if duplicates_removed:
        logger.info(
            f"Deduplication complete: {duplicates_removed} duplicates removed, {len(kept)} kept"
        )

    return DedupResult(events=kept, duplicates_removed=duplicates_removed)


__all__ = ["DedupResult", "deduplicate_all_sources"]
