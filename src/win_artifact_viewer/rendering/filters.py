"""Inclusive calendar-date filtering of artifact records."""

from dataclasses import dataclass
from typing import Optional

from ..errors import InvalidArgument
from ..utils.timestamps import TimeZoneConfig, to_zoned

DATE_LAYOUT = "mm/dd/yyyy"


def _date_key(value: str) -> str:
    """Reorder mm/dd/yyyy into yyyymmdd so plain string order is date order."""
    return value[6:10] + value[0:2] + value[3:5]


@dataclass(frozen=True)
class DateRangeFilter:
    """Optional start/end dates, both inclusive, in mm/dd/yyyy layout.

    Only the length of each bound is validated. A bound of the right length
    that is not a real date is accepted and compared as-is.
    """
    start: Optional[str] = None
    end: Optional[str] = None

    def __post_init__(self):
        for label, value in (("start", self.start), ("end", self.end)):
            if value is not None and len(value) != len(DATE_LAYOUT):
                raise InvalidArgument(f"Invalid {label} date value: {value!r}")

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None

    def accepts_date(self, date_string: str) -> bool:
        key = _date_key(date_string)
        if self.start is not None and key < _date_key(self.start):
            return False
        if self.end is not None and key > _date_key(self.end):
            return False
        return True

    def accepts(self, record, zone: TimeZoneConfig) -> bool:
        """Check the record's governing timestamp against the range.

        The date is taken in the run's display timezone, so bounds mean
        the same calendar days the output shows.
        """
        if not self.active:
            return True
        date_string, _ = to_zoned(record.absolute_time, zone)
        return self.accepts_date(date_string)
