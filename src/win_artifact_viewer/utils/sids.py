"""Windows Security Identifier helpers.

Binary SIDs are formatted in the usual S-R-I-S-S... notation. Resolution
of SIDs to account names uses a mapping supplied by the caller, typically
loaded from a two-column CSV exported from a credential database.
"""

import csv
import logging
import struct
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..errors import InvalidArgument

_LOG = logging.getLogger(__name__)


def format_sid(data: bytes) -> str:
    """Format a binary SID.

    Layout: revision (1 byte), sub-authority count (1 byte), identifier
    authority (6 bytes, big-endian), then 32-bit little-endian
    sub-authorities.

    Returns:
        SID string, or "" when the buffer is too short to hold one
    """
    if len(data) < 8:
        return ""

    revision, count = data[0], data[1]
    authority = int.from_bytes(data[2:8], "big")
    if len(data) < 8 + count * 4:
        return ""

    sub_authorities = struct.unpack_from(f"<{count}I", data, 8)
    return "-".join(["S", str(revision), str(authority)] + [str(s) for s in sub_authorities])


class SidResolver:
    """Maps SID strings to account names."""

    def __init__(self, names: Mapping[str, str]):
        self._names = {sid.upper(): name for sid, name in names.items()}

    def __len__(self) -> int:
        return len(self._names)

    def lookup(self, sid: str) -> Optional[str]:
        if not sid:
            return None
        return self._names.get(sid.upper())

    def resolve(self, sid: str) -> str:
        """Return "name (SID)" when known, otherwise the raw SID."""
        name = self.lookup(sid)
        if name:
            return f"{name} ({sid})"
        return sid

    @classmethod
    def from_csv(cls, path: str) -> "SidResolver":
        """Load a resolver from a CSV file of ``SID,username`` rows.

        A header row is allowed; rows whose first column does not start
        with "S-" are skipped.

        Raises:
            InvalidArgument: if the file cannot be read
        """
        names: Dict[str, str] = {}
        try:
            with open(Path(path), newline="", encoding="utf-8-sig") as f:
                for row in csv.reader(f):
                    if len(row) < 2 or not row[0].strip().upper().startswith("S-"):
                        continue
                    names[row[0].strip()] = row[1].strip()
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidArgument(f"Unable to read SID map {path}: {e}") from e

        _LOG.debug("Loaded %d SID mappings from %s", len(names), path)
        return cls(names)
