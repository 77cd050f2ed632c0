"""Marquee: live-event aggregation across ticketing sources."""

__version__ = "0.1.0"
