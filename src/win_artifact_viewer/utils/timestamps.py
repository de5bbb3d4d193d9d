"""Timestamp normalization utilities for Windows artifacts.

Windows artifacts use two epoch formats:
- FILETIME: 100-nanosecond ticks since 1601-01-01 00:00:00 UTC
  Used in: USN journal records, NTFS attributes.
- Unix timestamp: seconds since 1970-01-01 00:00:00 UTC (32-bit)
  Used in: legacy .evt event log records.

Both are normalized to an absolute time expressed as FILETIME ticks, an
exact integer, and localized through a single TimeZoneConfig for the run.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Tuple

from dateutil import tz

from ..errors import InvalidArgument

# Seconds between 1601-01-01 and the Unix epoch
UNIX_EPOCH_OFFSET = 11644473600
TICKS_PER_SECOND = 10_000_000

FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

# Keep a day of slack on each side so any UTC offset stays representable
_MIN_MOMENT = datetime(1, 1, 2, tzinfo=timezone.utc)
_MAX_MOMENT = datetime(9999, 12, 30, tzinfo=timezone.utc)
_MIN_TICKS = (_MIN_MOMENT - FILETIME_EPOCH) // timedelta(microseconds=1) * 10
_MAX_TICKS = (_MAX_MOMENT - FILETIME_EPOCH) // timedelta(microseconds=1) * 10


class TimestampEncoding(Enum):
    """Raw timestamp encodings found in artifact records."""
    FILETIME = "filetime"
    UNIX32 = "unix32"


# Offsets directly after a zone abbreviation, ahead of any transition rules
_ZONE_OFFSET = re.compile(r"(?<=[A-Za-z>])([+-]?)(\d{1,2}(?::\d{2})?)")


def _to_posix_offsets(zone: str) -> str:
    """Rewrite hours-east offsets ('EST-5EDT') into POSIX hours-west ('EST+5EDT')."""
    names, sep, rules = zone.partition(",")
    names = _ZONE_OFFSET.sub(lambda m: ("+" if m.group(1) == "-" else "-") + m.group(2), names)
    return names + sep + rules


@dataclass(frozen=True)
class TimeZoneConfig:
    """The timezone every localized date/time is computed in.

    Built once per run from the -z/--timezone option. ``label`` is the
    string the user supplied and is echoed in output.
    """
    label: str
    tzinfo: tzinfo

    @classmethod
    def from_string(cls, zone: str) -> "TimeZoneConfig":
        """Validate a timezone string.

        Accepts GMT/UTC, POSIX-style TZ strings (e.g.
        'EST-5EDT,M4.1.0,M10.1.0' or 'GMT-5') and IANA names (e.g.
        'America/New_York'). Offsets in TZ strings are hours east of UTC,
        so 'EST-5EDT' and 'GMT-5' are both five hours behind UTC and an
        unsigned offset is ahead of it.

        Raises:
            InvalidArgument: if the zone cannot be parsed
        """
        if zone is None or not zone.strip():
            raise InvalidArgument("Invalid time zone string: empty value")

        zone = zone.strip()
        if zone.upper() in ("GMT", "UTC"):
            return cls(zone, tz.UTC)

        zone_info = None
        # Strings with an offset are TZ rules first, so 'GMT-5' is not the
        # inverted Etc/GMT-5 zoneinfo file
        if any(c.isdigit() for c in zone):
            try:
                zone_info = tz.tzstr(_to_posix_offsets(zone), posix_offset=True)
            except ValueError:
                zone_info = None

        if zone_info is None:
            try:
                zone_info = tz.gettz(zone)
            except ValueError as e:
                raise InvalidArgument(f"Invalid time zone string: {zone!r}") from e
        if zone_info is None:
            raise InvalidArgument(f"Invalid time zone string: {zone!r}")

        return cls(zone, zone_info)

    @classmethod
    def utc(cls) -> "TimeZoneConfig":
        return cls("GMT", tz.UTC)


def to_absolute(raw: int, encoding: TimestampEncoding) -> int:
    """Convert a raw artifact timestamp to absolute FILETIME ticks.

    Args:
        raw: Timestamp value as stored in the record
        encoding: Which epoch/resolution the value uses

    Returns:
        100-nanosecond ticks since 1601-01-01 UTC
    """
    if encoding is TimestampEncoding.FILETIME:
        return int(raw)
    if encoding is TimestampEncoding.UNIX32:
        return (int(raw) + UNIX_EPOCH_OFFSET) * TICKS_PER_SECOND
    raise ValueError(f"Unknown timestamp encoding: {encoding!r}")


def to_unix_seconds(absolute: int) -> int:
    """Whole seconds since the Unix epoch, as used by mactime body files."""
    return absolute // TICKS_PER_SECOND - UNIX_EPOCH_OFFSET


def to_datetime(absolute: int) -> datetime:
    """Convert absolute ticks to an aware UTC datetime, clamped to range."""
    ticks = min(max(absolute, _MIN_TICKS), _MAX_TICKS)
    return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)


def to_zoned(absolute: int, zone: TimeZoneConfig) -> Tuple[str, str]:
    """Localize an absolute time and format it as (mm/dd/yyyy, HH:MM:SS).

    Never raises for out-of-range values; they are clamped to the
    representable calendar range first.
    """
    local = to_datetime(absolute).astimezone(zone.tzinfo)
    date_string = f"{local.month:02d}/{local.day:02d}/{local.year:04d}"
    time_string = f"{local.hour:02d}:{local.minute:02d}:{local.second:02d}"
    return date_string, time_string
