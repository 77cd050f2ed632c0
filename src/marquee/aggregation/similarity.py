"""String and geographic similarity primitives for event matching.

Every comparison runs on normalized text so that surface noise such as
"Live:", "Tour" or a trailing "Tickets" never defeats a match. All functions
here are pure and symmetric in their two arguments.
"""

import math
import re

from rapidfuzz.distance import Levenshtein

EARTH_RADIUS_MILES = 3959.0

# Longer strings fall back to word overlap; edit distance is O(n*m)
MAX_EDIT_LENGTH = 120
MIN_LENGTH_RATIO = 0.4
MIN_CONTAINED_LENGTH = 4

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "at", "in", "on", "of", "and", "or",
        "live", "tour", "ticket", "tickets", "present", "presents",
        "featuring", "feat", "ft",
    }
)

_APOSTROPHES = re.compile(r"['‘’]")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_STOP_WORDS_RE = re.compile(r"\b(?:" + "|".join(sorted(STOP_WORDS)) + r")\b")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lowercase, strip punctuation and stop words, collapse whitespace.

    Args:
        text: Raw event or venue name.

    Returns:
        Normalized string, possibly empty.
    """
    normalized = text.lower()
    normalized = _APOSTROPHES.sub("", normalized)
    normalized = _NON_ALNUM.sub(" ", normalized)
    normalized = _STOP_WORDS_RE.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def _significant_words(text: str) -> list[str]:
    return [word for word in normalize(text).split(" ") if len(word) > 1]


def fingerprint(text: str) -> str:
    """First four significant words of a name, alphabetically sorted.

    Catches reordered titles such as "John Legend Live" and
    "Live: John Legend".
    """
    return " ".join(sorted(_significant_words(text))[:4])


def word_similarity(a: str, b: str) -> float:
    """Jaccard index over the sets of significant normalized words.

    Two names with no significant words are treated as identical.
    """
    words_a = set(_significant_words(a))
    words_b = set(_significant_words(b))
    if not words_a and not words_b:
        return 1.0
    union = words_a | words_b
    return len(words_a & words_b) / len(union)


def edit_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1].

    Cheap rejection when lengths differ a lot, and a word-overlap fallback
    for very long names.
    """
    na = normalize(a)
    nb = normalize(b)
    if na == nb:
        return 1.0
    if not na or not nb:
        return 0.0

    longest = max(len(na), len(nb))
    length_ratio = min(len(na), len(nb)) / longest
    if length_ratio < MIN_LENGTH_RATIO:
        return length_ratio * 0.5

    if longest > MAX_EDIT_LENGTH:
        return word_similarity(a, b)

    return 1.0 - Levenshtein.distance(na, nb) / longest


def contains_other(a: str, b: str) -> bool:
    """True if either normalized name contains the other.

    Both names must be at least four characters after normalization so that
    near-empty names never match everything.
    """
    na = normalize(a)
    nb = normalize(b)
    if len(na) < MIN_CONTAINED_LENGTH or len(nb) < MIN_CONTAINED_LENGTH:
        return False
    return na in nb or nb in na


def geo_distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance between two points, in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


__all__ = [
    "STOP_WORDS",
    "contains_other",
    "edit_similarity",
    "fingerprint",
    "geo_distance_miles",
    "normalize",
    "word_similarity",
]
