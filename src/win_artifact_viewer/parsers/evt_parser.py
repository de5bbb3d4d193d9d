"""Legacy Windows Event Log (.evt) parser.

Parses the EVENTLOGRECORD structures used by Windows NT through XP/2003.
Each record starts with its length followed by the 'LfLe' signature. The
file opens with a 0x30-byte header (which also carries the signature) and
may contain an end-of-file cursor record; both are skipped. Records can
wrap around the end of a circular log, so the file is scanned for
signatures rather than walked from the header's start offset.
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

from ..errors import EventLogError
from ..utils.sids import format_sid
from ..utils.timestamps import TimestampEncoding, to_absolute

_LOG = logging.getLogger(__name__)

SIGNATURE = b"LfLe"
HEADER_SIZE = 0x30

# Length, Reserved ('LfLe'), RecordNumber, TimeGenerated, TimeWritten,
# EventID, EventType, NumStrings, EventCategory, ReservedFlags,
# ClosingRecordNumber, StringOffset, UserSidLength, UserSidOffset,
# DataLength, DataOffset
_RECORD = struct.Struct("<4sIIIIHHHHIIIIII")
_RECORD_HEADER_SIZE = 4 + _RECORD.size

EVENT_TYPES = {
    0x0000: "Success",
    0x0001: "Error",
    0x0002: "Warning",
    0x0004: "Information",
    0x0008: "Audit Success",
    0x0010: "Audit Failure",
}


def _read_utf16z(data: bytes, start: int, end: int) -> Tuple[str, int]:
    """Read a NUL-terminated UTF-16LE string.

    Returns:
        (string, offset just past the terminator)
    """
    position = start
    while position + 1 < end:
        if data[position] == 0 and data[position + 1] == 0:
            return data[start:position].decode("utf-16-le", errors="replace"), position + 2
        position += 2
    return data[start:end].decode("utf-16-le", errors="replace"), end


@dataclass(frozen=True)
class EventRecord:
    """A single decoded event log record."""
    offset: int
    length: int
    record_number: int
    time_generated: int
    time_written: int
    event_id: int
    event_type: int
    category: int
    source: str
    computer: str
    sid: str
    strings: tuple
    data: bytes

    timestamp_encoding = TimestampEncoding.UNIX32

    @property
    def absolute_time(self) -> int:
        """Time generated, which governs filtering and timelines."""
        return to_absolute(self.time_generated, self.timestamp_encoding)

    @property
    def absolute_written(self) -> int:
        return to_absolute(self.time_written, self.timestamp_encoding)

    @property
    def type_label(self) -> str:
        return EVENT_TYPES.get(self.event_type, f"Unknown ({self.event_type})")

    @classmethod
    def from_bytes(cls, data: bytes, offset: int) -> "EventRecord":
        """Decode one EVENTLOGRECORD whose bytes start at ``offset``.

        Raises:
            EventLogError: if the record is truncated or inconsistent
        """
        if len(data) < _RECORD_HEADER_SIZE:
            raise EventLogError("Truncated event record header", offset=offset)

        (length,) = struct.unpack_from("<I", data, 0)
        (signature, record_number, time_generated, time_written, event_id,
         event_type, num_strings, category, _flags, _closing,
         string_offset, sid_length, sid_offset, data_length, data_offset) = _RECORD.unpack_from(data, 4)

        if signature != SIGNATURE:
            raise EventLogError("Missing LfLe signature", offset=offset)
        if length > len(data):
            raise EventLogError(f"Event record length {length} exceeds available data", offset=offset)

        source, position = _read_utf16z(data, _RECORD_HEADER_SIZE, length)
        computer, _ = _read_utf16z(data, position, length)

        sid = ""
        if sid_length and sid_offset + sid_length <= length:
            sid = format_sid(data[sid_offset:sid_offset + sid_length])

        strings = []
        position = string_offset
        for _ in range(num_strings):
            if position >= length:
                break
            value, position = _read_utf16z(data, position, length)
            strings.append(value)

        payload = b""
        if data_length and data_offset + data_length <= length:
            payload = bytes(data[data_offset:data_offset + data_length])

        return cls(
            offset=offset,
            length=length,
            record_number=record_number,
            time_generated=time_generated,
            time_written=time_written,
            event_id=event_id & 0xFFFF,
            event_type=event_type,
            category=category,
            source=source,
            computer=computer,
            sid=sid,
            strings=tuple(strings),
            data=payload,
        )


class EventLog:
    """Reader for a legacy .evt event log file."""

    def __init__(self, log_path: str):
        """Initialize with path to the .evt file.

        Args:
            log_path: Path to the event log
        """
        self.path = Path(log_path)
        self._data: Optional[bytes] = None

    def __enter__(self) -> "EventLog":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        # .evt files are capped at a few MB by the OS, read them whole
        if self._data is None:
            with open(self.path, "rb") as f:
                self._data = f.read()

    def close(self) -> None:
        self._data = None

    def records(self) -> Iterator[EventRecord]:
        """Yield event records in file order.

        Raises:
            EventLogError: on a record that cannot be decoded; no further
                records are read from this file afterwards
        """
        self.open()
        data = self._data

        position = data.find(SIGNATURE, 4)
        while position != -1:
            start = position - 4
            (length,) = struct.unpack_from("<I", data, start)

            if length == HEADER_SIZE and start == 0:
                position = data.find(SIGNATURE, start + HEADER_SIZE + 4)
                continue

            if length < _RECORD_HEADER_SIZE:
                # Signature bytes inside a string or payload, not a record
                position = data.find(SIGNATURE, position + 4)
                continue

            if start + length > len(data):
                raise EventLogError(
                    f"Truncated event record at offset {start}",
                    path=str(self.path), offset=start,
                )

            try:
                record = EventRecord.from_bytes(data[start:start + length], start)
            except EventLogError as e:
                e.path = str(self.path)
                e.offset = start
                raise

            yield record
            position = data.find(SIGNATURE, start + length + 4)

        _LOG.debug("Reached end of event log %s", self.path)
