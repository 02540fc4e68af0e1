"""Utilities module for neo-permissions."""

from .datetime import utc_now, to_utc, optional_utc, earliest, format_utc

__all__ = [
    "utc_now",
    "to_utc",
    "optional_utc",
    "earliest",
    "format_utc",
]
