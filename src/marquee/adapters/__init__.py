"""Event source adapters."""

from marquee.adapters.base import (
    AdapterAuthError,
    AdapterConfigError,
    AdapterError,
    AdapterParseError,
    AdapterTimeoutError,
    EventSourceAdapter,
    handle_http_status,
)
from marquee.adapters.seatgeek import SeatGeekAdapter
from marquee.adapters.ticketmaster import TicketmasterAdapter
from marquee.adapters.web import WebSearchAdapter

__all__ = [
    "EventSourceAdapter",
    "AdapterError",
    "AdapterTimeoutError",
    "AdapterParseError",
    "AdapterAuthError",
    "AdapterConfigError",
    "SeatGeekAdapter",
    "TicketmasterAdapter",
    "WebSearchAdapter",
    "handle_http_status",
]
