"""USN change journal parser.

Reads the $Extend\\$UsnJrnl:$J stream extracted from an NTFS volume.
The stream is sparse: long runs of zero bytes precede the live records and
pad records out to cluster boundaries. Records are 8-byte aligned.

Supported record layouts:
- USN_RECORD_V2 (64-bit file references, NTFS)
- USN_RECORD_V3 (128-bit file references, ReFS and newer NTFS)
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Optional

from ..errors import UsnJournalError
from ..utils.timestamps import TimestampEncoding, to_absolute

_LOG = logging.getLogger(__name__)

READ_CHUNK = 65536
MAX_RECORD_LENGTH = 0x10000

# RecordLength, MajorVersion, MinorVersion
_PREAMBLE = struct.Struct("<IHH")
# FileReference, ParentFileReference, Usn, TimeStamp, Reason, SourceInfo,
# SecurityId, FileAttributes, FileNameLength, FileNameOffset
_V2_BODY = struct.Struct("<QQqQIIIIHH")
_V3_BODY = struct.Struct("<16s16sqQIIIIHH")

REASONS = {
    0x00000001: "DATA_OVERWRITE",
    0x00000002: "DATA_EXTEND",
    0x00000004: "DATA_TRUNCATION",
    0x00000010: "NAMED_DATA_OVERWRITE",
    0x00000020: "NAMED_DATA_EXTEND",
    0x00000040: "NAMED_DATA_TRUNCATION",
    0x00000100: "FILE_CREATE",
    0x00000200: "FILE_DELETE",
    0x00000400: "EA_CHANGE",
    0x00000800: "SECURITY_CHANGE",
    0x00001000: "RENAME_OLD_NAME",
    0x00002000: "RENAME_NEW_NAME",
    0x00004000: "INDEXABLE_CHANGE",
    0x00008000: "BASIC_INFO_CHANGE",
    0x00010000: "HARD_LINK_CHANGE",
    0x00020000: "COMPRESSION_CHANGE",
    0x00040000: "ENCRYPTION_CHANGE",
    0x00080000: "OBJECT_ID_CHANGE",
    0x00100000: "REPARSE_POINT_CHANGE",
    0x00200000: "STREAM_CHANGE",
    0x00400000: "TRANSACTED_CHANGE",
    0x00800000: "INTEGRITY_CHANGE",
    0x01000000: "DESIRED_STORAGE_CLASS_CHANGE",
    0x80000000: "CLOSE",
}

SOURCES = {
    0x00000001: "DATA_MANAGEMENT",
    0x00000002: "AUXILIARY_DATA",
    0x00000004: "REPLICATION_MANAGEMENT",
    0x00000008: "CLIENT_REPLICATION_MANAGEMENT",
}

FILE_ATTRIBUTES = {
    0x00000001: "READONLY",
    0x00000002: "HIDDEN",
    0x00000004: "SYSTEM",
    0x00000010: "DIRECTORY",
    0x00000020: "ARCHIVE",
    0x00000040: "DEVICE",
    0x00000080: "NORMAL",
    0x00000100: "TEMPORARY",
    0x00000200: "SPARSE_FILE",
    0x00000400: "REPARSE_POINT",
    0x00000800: "COMPRESSED",
    0x00001000: "OFFLINE",
    0x00002000: "NOT_CONTENT_INDEXED",
    0x00004000: "ENCRYPTED",
    0x00008000: "INTEGRITY_STREAM",
    0x00010000: "VIRTUAL",
    0x00020000: "NO_SCRUB_DATA",
}


def describe_flags(table: Dict[int, str], value: int) -> str:
    """Join the names of the flags set in ``value``.

    Unknown bits are appended as a hex value so nothing is silently lost.
    Returns "NONE" when no bits are set.
    """
    if not value:
        return "NONE"

    names = [name for bit, name in table.items() if value & bit]
    unknown = value & ~sum(table)
    if unknown:
        names.append(f"0x{unknown:08x}")
    return ", ".join(names)


def split_file_reference(reference: int) -> tuple:
    """Split a 64-bit NTFS file reference into (entry, sequence)."""
    return reference & 0xFFFFFFFFFFFF, (reference >> 48) & 0xFFFF


@dataclass(frozen=True)
class UsnRecord:
    """A single decoded USN journal record."""
    offset: int
    length: int
    major_version: int
    minor_version: int
    mft_entry: int
    mft_seq: int
    parent_mft_entry: int
    parent_mft_seq: int
    usn: int
    timestamp: int
    reason: int
    source_info: int
    security_id: int
    file_attributes: int
    filename: str

    timestamp_encoding = TimestampEncoding.FILETIME

    @property
    def absolute_time(self) -> int:
        return to_absolute(self.timestamp, self.timestamp_encoding)

    @property
    def reasons(self) -> str:
        return describe_flags(REASONS, self.reason)

    @property
    def sources(self) -> str:
        return describe_flags(SOURCES, self.source_info)

    @property
    def file_attrs(self) -> str:
        return describe_flags(FILE_ATTRIBUTES, self.file_attributes)

    @property
    def version(self) -> str:
        return f"{self.major_version}.{self.minor_version}"

    @classmethod
    def from_bytes(cls, data: bytes, offset: int) -> "UsnRecord":
        """Decode one record whose bytes start at ``offset`` in the stream.

        Raises:
            UsnJournalError: if the layout is unsupported or truncated
        """
        length, major, minor = _PREAMBLE.unpack_from(data, 0)

        if major == 2:
            body = _V2_BODY
            if len(data) < _PREAMBLE.size + body.size:
                raise UsnJournalError("Truncated USN_RECORD_V2", offset=offset)
            (file_ref, parent_ref, usn, timestamp, reason, source_info,
             security_id, attributes, name_length, name_offset) = body.unpack_from(data, _PREAMBLE.size)
        elif major == 3:
            body = _V3_BODY
            if len(data) < _PREAMBLE.size + body.size:
                raise UsnJournalError("Truncated USN_RECORD_V3", offset=offset)
            (file_ref_raw, parent_ref_raw, usn, timestamp, reason, source_info,
             security_id, attributes, name_length, name_offset) = body.unpack_from(data, _PREAMBLE.size)
            # Only the low 64 bits carry an NTFS-style entry/sequence pair
            file_ref = int.from_bytes(file_ref_raw[:8], "little")
            parent_ref = int.from_bytes(parent_ref_raw[:8], "little")
        else:
            raise UsnJournalError(f"Unsupported USN record version {major}.{minor}", offset=offset)

        if name_offset + name_length > len(data):
            raise UsnJournalError("Filename extends past end of record", offset=offset)

        filename = data[name_offset:name_offset + name_length].decode("utf-16-le", errors="replace")
        entry, seq = split_file_reference(file_ref)
        parent_entry, parent_seq = split_file_reference(parent_ref)

        return cls(
            offset=offset,
            length=length,
            major_version=major,
            minor_version=minor,
            mft_entry=entry,
            mft_seq=seq,
            parent_mft_entry=parent_entry,
            parent_mft_seq=parent_seq,
            usn=usn,
            timestamp=timestamp,
            reason=reason,
            source_info=source_info,
            security_id=security_id,
            file_attributes=attributes,
            filename=filename,
        )


class UsnJournal:
    """Reader for a USN journal ($J) stream."""

    def __init__(self, journal_path: str):
        """Initialize with path to the extracted $J stream.

        Args:
            journal_path: Path to the $UsnJrnl:$J file
        """
        self.path = Path(journal_path)
        self._handle: Optional[BinaryIO] = None

    def __enter__(self) -> "UsnJournal":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if self._handle is None:
            self._handle = open(self.path, "rb")

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _seek_data(self, position: int) -> Optional[int]:
        """Find the 8-byte aligned offset of the next non-zero data.

        Returns:
            Aligned offset, or None at end of stream
        """
        f = self._handle
        f.seek(position)
        while True:
            chunk = f.read(READ_CHUNK)
            if not chunk:
                return None
            stripped = chunk.lstrip(b"\x00")
            if stripped:
                found = position + len(chunk) - len(stripped)
                return found & ~7
            position += len(chunk)

    def records(self) -> Iterator[UsnRecord]:
        """Yield records in stream order.

        Raises:
            UsnJournalError: on a record that cannot be decoded; no further
                records are read from this stream afterwards
        """
        self.open()
        f = self._handle

        offset = self._seek_data(0)
        while offset is not None:
            f.seek(offset)
            preamble = f.read(_PREAMBLE.size)
            if len(preamble) < _PREAMBLE.size:
                break

            length, major, minor = _PREAMBLE.unpack(preamble)
            if length == 0:
                offset = self._seek_data(offset + 8)
                continue

            if length < _PREAMBLE.size + _V2_BODY.size or length > MAX_RECORD_LENGTH:
                raise UsnJournalError(
                    f"Invalid USN record length {length} at offset {offset}",
                    path=str(self.path), offset=offset,
                )

            data = preamble + f.read(length - _PREAMBLE.size)
            if len(data) < length:
                raise UsnJournalError(
                    f"Truncated USN record at offset {offset}",
                    path=str(self.path), offset=offset,
                )

            try:
                record = UsnRecord.from_bytes(data, offset)
            except UsnJournalError as e:
                e.path = str(self.path)
                raise

            yield record
            offset = (offset + length + 7) & ~7

        _LOG.debug("Reached end of USN journal %s", self.path)
