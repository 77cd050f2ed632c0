"""Base protocol and error hierarchy for event source adapters.

This module defines the EventSourceAdapter protocol that every upstream
provider adapter implements, along with the error hierarchy the aggregator
uses to decide whether a failing source is skipped or fatal.
"""

from typing import Protocol, runtime_checkable

import httpx

from marquee.models import AdapterSearchParams, Event, SourceResult


@runtime_checkable
class EventSourceAdapter(Protocol):
    """Protocol for all event source adapters.

    All adapters MUST implement this protocol. The @runtime_checkable
    decorator enables isinstance() checks without explicit inheritance.

    Error Handling Contract:
    - SourceResult with no events: No results found (expected, never raised)
    - AdapterTimeoutError: Network timeouts (unexpected, source skipped)
    - AdapterParseError: Malformed API responses (unexpected, source skipped)
    - AdapterAuthError: Rejected credentials (unexpected, source skipped)
    - AdapterConfigError: Required credential missing (fatal, propagated)

    Adapters must drop records whose venue has no usable coordinates.
    """

    @property
    def source_name(self) -> str:
        """Unique identifier for this source (e.g., 'ticketmaster')."""
        ...

    async def search(self, params: AdapterSearchParams) -> SourceResult:
        """Search this source for events.

        Args:
            params: Location, radius, filters, page and page size.

        Returns:
            SourceResult with canonical events and the upstream total.

        Raises:
            AdapterTimeoutError: If the request times out.
            AdapterParseError: If the response cannot be parsed.
            AdapterAuthError: If authentication fails.
            AdapterConfigError: If a required credential is missing.
        """
        ...

    async def get_by_id(self, source_id: str) -> Event | None:
        """Fetch a single event by its source-local id.

        Returns:
            The mapped Event, or None if not found or not mappable.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the source is reachable and responding."""
        ...

    async def close(self) -> None:
        """Release any network resources held by the adapter."""
        ...


class AdapterError(Exception):
    """Base exception for all adapter errors.

    Attributes:
        source_name: The adapter that raised this error.
        message: Human-readable error description.
    """

    def __init__(self, source_name: str, message: str) -> None:
        self.source_name = source_name
        self.message = message
        super().__init__(f"[{source_name}] {message}")


class AdapterTimeoutError(AdapterError):
    """Raised when an adapter request times out.

    The aggregator treats the source as unavailable for this call.
    """

    def __init__(self, source_name: str, timeout_seconds: float | None = None) -> None:
        msg = "Request timed out"
        if timeout_seconds is not None:
            msg = f"Request timed out after {timeout_seconds}s"
        super().__init__(source_name, msg)
        self.timeout_seconds = timeout_seconds


class AdapterParseError(AdapterError):
    """Raised when an API response cannot be parsed or signals an error.

    This typically indicates an upstream outage or schema change.
    """

    def __init__(self, source_name: str, details: str | None = None) -> None:
        msg = "Failed to parse API response"
        if details:
            msg = f"Failed to parse API response: {details}"
        super().__init__(source_name, msg)
        self.details = details


class AdapterAuthError(AdapterError):
    """Raised when the upstream rejects our credentials.

    Callers should NOT retry without fixing credentials.
    """

    def __init__(self, source_name: str, details: str | None = None) -> None:
        msg = "Authentication failed"
        if details:
            msg = f"Authentication failed: {details}"
        super().__init__(source_name, msg)
        self.details = details


class AdapterConfigError(AdapterError):
    """Raised when a credential the adapter cannot run without is missing.

    Unlike the other adapter errors this one is fatal: the aggregator lets
    it propagate instead of skipping the source.
    """

    def __init__(self, source_name: str, details: str | None = None) -> None:
        msg = "Adapter is not configured"
        if details:
            msg = f"Adapter is not configured: {details}"
        super().__init__(source_name, msg)
        self.details = details


def handle_http_status(source_name: str, response: httpx.Response) -> None:
    """Raise the matching AdapterError for a non-2xx response.

    Args:
        source_name: Adapter raising the error.
        response: The upstream HTTP response.

    Raises:
        AdapterAuthError: On 401 or 403.
        AdapterParseError: On any other non-2xx status.
    """
    if response.is_success:
        return
    status = response.status_code
    if status in (401, 403):
        raise AdapterAuthError(source_name, f"HTTP {status}")
    raise AdapterParseError(source_name, f"HTTP {status}")


__all__ = [
    "EventSourceAdapter",
    "AdapterError",
    "AdapterTimeoutError",
    "AdapterParseError",
    "AdapterAuthError",
    "AdapterConfigError",
    "handle_http_status",
]
