# tests/conftest.py
import struct
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from win_artifact_viewer.parsers.evt_parser import EventRecord
from win_artifact_viewer.parsers.usn_parser import UsnRecord

# 2020-03-15 12:00:00 UTC
MAR15_NOON_UNIX = 1584273600
MAR15_NOON_FILETIME = 132287472000000000
# 2020-03-16 23:30:00 UTC
MAR16_LATE_UNIX = 1584401400
MAR16_LATE_FILETIME = 132288750000000000
# 2020-07-01 12:00:00 UTC
JUL01_NOON_FILETIME = 132380784000000000
# 2021-12-31 23:59:59 UTC
DEC31_2021_FILETIME = 132854687990000000

# S-1-5-21-1-2-3-500
ADMIN_SID = bytes([1, 5, 0, 0, 0, 0, 0, 5]) + struct.pack("<5I", 21, 1, 2, 3, 500)


def _pad(data: bytes, alignment: int) -> bytes:
    return data + b"\x00" * (-len(data) % alignment)


def usn_record_bytes(
    usn: int = 1024,
    timestamp: int = MAR15_NOON_FILETIME,
    filename: str = "report.docx",
    reason: int = 0x80000100,
    source_info: int = 0,
    security_id: int = 263,
    attributes: int = 0x20,
    entry: int = 4242,
    seq: int = 3,
    parent_entry: int = 5,
    parent_seq: int = 5,
) -> bytes:
    """A USN_RECORD_V2 padded to 8 bytes."""
    name = filename.encode("utf-16-le")
    length = 60 + len(name)
    length += -length % 8
    file_ref = (seq << 48) | entry
    parent_ref = (parent_seq << 48) | parent_entry
    body = struct.pack(
        "<IHHQQqQIIIIHH",
        length, 2, 0, file_ref, parent_ref, usn, timestamp,
        reason, source_info, security_id, attributes, len(name), 60,
    )
    return _pad(body + name, 8)


def usn_v3_record_bytes(entry: int = 77, seq: int = 2, filename: str = "v3.txt",
                        timestamp: int = MAR15_NOON_FILETIME) -> bytes:
    name = filename.encode("utf-16-le")
    length = 76 + len(name)
    length += -length % 8
    file_ref = ((seq << 48) | entry).to_bytes(8, "little") + b"\x00" * 8
    parent_ref = ((1 << 48) | 5).to_bytes(8, "little") + b"\x00" * 8
    body = struct.pack(
        "<IHH16s16sqQIIIIHH",
        length, 3, 0, file_ref, parent_ref, 2048, timestamp,
        0x100, 0, 0, 0x20, len(name), 76,
    )
    return _pad(body + name, 8)


def evt_record_bytes(
    record_number: int = 1,
    time_generated: int = MAR15_NOON_UNIX,
    time_written: int = MAR15_NOON_UNIX + 1,
    event_id: int = 528,
    event_type: int = 8,
    category: int = 2,
    source: str = "Security",
    computer: str = "WKSTN01",
    sid: bytes = ADMIN_SID,
    strings: Sequence[str] = ("alice", "WKSTN01"),
    data: bytes = b"",
) -> bytes:
    """An EVENTLOGRECORD with its trailing length copy."""
    variable = _pad((source + "\x00").encode("utf-16-le") + (computer + "\x00").encode("utf-16-le"), 4)
    sid_offset = 56 + len(variable)
    string_offset = sid_offset + len(sid)
    string_bytes = b"".join((s + "\x00").encode("utf-16-le") for s in strings)
    data_offset = string_offset + len(string_bytes)
    tail = _pad(sid + string_bytes + data, 4)
    length = 56 + len(variable) + len(tail) + 4

    header = struct.pack(
        "<I4sIIIIHHHHIIIIII",
        length, b"LfLe", record_number, time_generated, time_written, event_id,
        event_type, len(strings), category, 0, 0,
        string_offset, len(sid), sid_offset if sid else 0, len(data), data_offset,
    )
    return header + variable + tail + struct.pack("<I", length)


def evt_file_bytes(records: List[bytes]) -> bytes:
    body = b"".join(records)
    header = struct.pack(
        "<I4sIIIIIIIIII",
        0x30, b"LfLe", 1, 1, 0x30, 0x30 + len(body), len(records) + 1, 1,
        0x80000, 0, 0x93A80, 0x30,
    )
    cursor = struct.pack("<IIIIIIIIII", 0x28, 0x11111111, 0x22222222, 0x33333333,
                         0x44444444, 0x30, 0x30 + len(body), len(records) + 1, 1, 0x28)
    return header + body + cursor


@pytest.fixture
def make_journal(tmp_path: Path):
    """Write a sparse-looking $J file from record bytes."""
    def _make(name: str, records: List[bytes], leading_zeros: int = 4096,
              trailing: Optional[bytes] = None) -> Path:
        path = tmp_path / name
        payload = b"\x00" * leading_zeros + b"".join(records)
        if trailing:
            payload += trailing
        path.write_bytes(payload)
        return path
    return _make


@pytest.fixture
def make_event_log(tmp_path: Path):
    def _make(name: str, records: List[bytes]) -> Path:
        path = tmp_path / name
        path.write_bytes(evt_file_bytes(records))
        return path
    return _make


def make_usn(**overrides) -> UsnRecord:
    values = dict(
        offset=4096, length=88, major_version=2, minor_version=0,
        mft_entry=4242, mft_seq=3, parent_mft_entry=5, parent_mft_seq=5,
        usn=1024, timestamp=MAR15_NOON_FILETIME, reason=0x80000100,
        source_info=0, security_id=263, file_attributes=0x20,
        filename="report.docx",
    )
    values.update(overrides)
    return UsnRecord(**values)


def make_event(**overrides) -> EventRecord:
    values = dict(
        offset=48, length=140, record_number=1, time_generated=MAR15_NOON_UNIX,
        time_written=MAR16_LATE_UNIX, event_id=528, event_type=8, category=2,
        source="Security", computer="WKSTN01", sid="S-1-5-21-1-2-3-500",
        strings=("alice", "WKSTN01"), data=b"",
    )
    values.update(overrides)
    return EventRecord(**values)
