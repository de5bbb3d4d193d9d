"""Utility functions for Windows artifact rendering."""

from .timestamps import (
    TimestampEncoding,
    TimeZoneConfig,
    to_absolute,
    to_unix_seconds,
    to_zoned,
)
from .hexdump import dump, dump_lines
from .sids import SidResolver, format_sid

__all__ = [
    "TimestampEncoding",
    "TimeZoneConfig",
    "to_absolute",
    "to_unix_seconds",
    "to_zoned",
    "dump",
    "dump_lines",
    "SidResolver",
    "format_sid",
]
