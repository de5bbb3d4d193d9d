"""Record rendering for USN journal and event log records.

Three output modes are supported:
- Plain: a multi-line block per record, closed by a separator line
- Delimited: one CSV row per record, preceded once by a timezone line and
  a header row
- Mactime: one SleuthKit TSK 3.x body-file line per record

Artifact layouts decide which fields a record contributes; mode renderers
decide how those fields are framed. Both are picked once per run.
"""

import csv
import io
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ..errors import RenderError
from ..parsers.evt_parser import EventRecord
from ..parsers.usn_parser import UsnRecord
from ..utils.hexdump import dump_lines
from ..utils.sids import SidResolver
from ..utils.timestamps import TimeZoneConfig, to_unix_seconds, to_zoned
from .filters import DateRangeFilter

SEPARATOR = "-" * 100
NEWLINE_TOKEN = "<CRLF>"


class RenderMode(Enum):
    PLAIN = "plain"
    DELIMITED = "delimited"
    MACTIME = "mactime"

    @classmethod
    def from_flags(cls, delimited: bool = False, mactime: bool = False) -> "RenderMode":
        """Mactime wins when both flags are given."""
        if mactime:
            return cls.MACTIME
        if delimited:
            return cls.DELIMITED
        return cls.PLAIN


class FilenamePolicy(Enum):
    AUTO = "auto"
    FORCE_ON = "on"
    FORCE_OFF = "off"

    @classmethod
    def from_flags(cls, with_filename: bool = False, no_filename: bool = False) -> "FilenamePolicy":
        """Forcing the column on wins over suppressing it."""
        if with_filename:
            return cls.FORCE_ON
        if no_filename:
            return cls.FORCE_OFF
        return cls.AUTO


@dataclass(frozen=True)
class DisplayConfig:
    """Read-only display settings built once per run."""
    mode: RenderMode = RenderMode.PLAIN
    filename_policy: FilenamePolicy = FilenamePolicy.AUTO
    date_range: DateRangeFilter = field(default_factory=DateRangeFilter)
    show_strings: bool = True
    sid_resolver: Optional[SidResolver] = None
    timezone: TimeZoneConfig = field(default_factory=TimeZoneConfig.utc)

    def show_filename(self, file_count: int) -> bool:
        if self.filename_policy is FilenamePolicy.FORCE_ON:
            return True
        if self.filename_policy is FilenamePolicy.FORCE_OFF:
            return False
        return file_count > 1


def sanitize(text: str) -> str:
    """Replace embedded line breaks so a value stays on one output line."""
    return text.replace("\r\n", NEWLINE_TOKEN).replace("\r", NEWLINE_TOKEN).replace("\n", NEWLINE_TOKEN)


# =============================================================================
# Artifact layouts
# =============================================================================

class ArtifactLayout:
    """Per-artifact columns and field values."""

    record_type: type = object
    columns: Tuple[str, ...] = ()

    def check(self, record) -> None:
        if not isinstance(record, self.record_type):
            raise RenderError(
                f"{type(self).__name__} cannot render {type(record).__name__}"
            )

    def csv_fields(self, record, config: DisplayConfig) -> List[str]:
        raise NotImplementedError

    def plain_lines(self, record, config: DisplayConfig) -> List[str]:
        raise NotImplementedError

    def mactime_name(self, record) -> str:
        raise NotImplementedError

    def mactime_inode(self, record) -> str:
        raise NotImplementedError


class UsnLayout(ArtifactLayout):
    """USN journal change records."""

    record_type = UsnRecord
    columns = (
        "Inode", "Parent Inode", "USN", "Date", "Time", "Reasons", "Sources",
        "Security ID", "File Attributes", "Filename",
    )

    def csv_fields(self, record: UsnRecord, config: DisplayConfig) -> List[str]:
        date_string, time_string = to_zoned(record.absolute_time, config.timezone)
        return [
            str(record.mft_entry),
            str(record.parent_mft_entry),
            str(record.usn),
            date_string,
            time_string,
            record.reasons,
            record.sources,
            str(record.security_id),
            record.file_attrs,
            sanitize(record.filename),
        ]

    def plain_lines(self, record: UsnRecord, config: DisplayConfig) -> List[str]:
        date_string, time_string = to_zoned(record.absolute_time, config.timezone)
        return [
            f"USN {record.usn} (offset={record.offset}, length={record.length}):",
            f"\tFilename:\t\t{sanitize(record.filename)}",
            f"\tDate:\t\t\t{date_string}\tTime:\t{time_string} ({config.timezone.label})",
            f"\tMFT Entry:\t\t{record.mft_entry}\tSeq:\t\t{record.mft_seq}",
            f"\tParent MFT Entry:\t{record.parent_mft_entry}\tSeq:\t\t{record.parent_mft_seq}",
            f"\tUSN Version:\t\t{record.version}",
            f"\tSecurity ID:\t\t{record.security_id}",
            f"\tReasons:\t\t{record.reasons}",
            f"\tSources:\t{record.sources}",
            f"\tFile Attributes:\t{record.file_attrs}",
        ]

    def mactime_name(self, record: UsnRecord) -> str:
        return f"{sanitize(record.filename)} ({record.reasons})"

    def mactime_inode(self, record: UsnRecord) -> str:
        return f"{record.mft_entry} ({record.mft_seq})"


class EventLogLayout(ArtifactLayout):
    """Legacy event log records."""

    record_type = EventRecord
    columns = (
        "Record", "Offset", "Type", "Date", "Time", "Source", "Category",
        "Event", "SID", "Computer",
    )

    @staticmethod
    def _sid(record: EventRecord, config: DisplayConfig) -> str:
        if config.sid_resolver is not None:
            return config.sid_resolver.resolve(record.sid)
        return record.sid

    def csv_fields(self, record: EventRecord, config: DisplayConfig) -> List[str]:
        date_string, time_string = to_zoned(record.absolute_time, config.timezone)
        fields = [
            str(record.record_number),
            str(record.offset),
            record.type_label,
            date_string,
            time_string,
            sanitize(record.source),
            str(record.category),
            str(record.event_id),
            self._sid(record, config),
            sanitize(record.computer),
        ]
        if config.show_strings:
            fields.extend(sanitize(value) for value in record.strings)
        return fields

    def plain_lines(self, record: EventRecord, config: DisplayConfig) -> List[str]:
        zone = config.timezone
        generated_date, generated_time = to_zoned(record.absolute_time, zone)
        written_date, written_time = to_zoned(record.absolute_written, zone)

        lines = [
            f"Record {record.record_number} (offset={record.offset}, length={record.length}):",
            f"\tSource:\t\t\t{sanitize(record.source)}",
            f"\tComputer:\t\t{sanitize(record.computer)}",
            f"\tEvent ID:\t\t{record.event_id}\tCategory:\t{record.category}",
            f"\tType:\t\t\t{record.type_label}",
            f"\tSID:\t\t\t{self._sid(record, config)}",
            f"\tGenerated:\t\t{generated_date}\tTime:\t{generated_time} ({zone.label})",
            f"\tWritten:\t\t{written_date}\tTime:\t{written_time} ({zone.label})",
        ]

        if config.show_strings and record.strings:
            lines.append("\tStrings:")
            for index, value in enumerate(record.strings):
                lines.append(f"\t\t[{index}] {sanitize(value)}")

        if config.show_strings and record.data:
            lines.append("\tData:")
            lines.extend(f"\t\t{row}" for row in dump_lines(record.data))

        return lines

    def mactime_name(self, record: EventRecord) -> str:
        return f"{sanitize(record.source)}: Event {record.event_id} ({record.type_label})"

    def mactime_inode(self, record: EventRecord) -> str:
        return f"{record.record_number} (0)"


# =============================================================================
# Mode renderers
# =============================================================================

class RecordRenderer:
    """Base renderer; subclasses frame one record in one output mode."""

    def __init__(self, config: DisplayConfig, layout: ArtifactLayout, show_filename: bool):
        self.config = config
        self.layout = layout
        self.show_filename = show_filename

    def header(self) -> List[str]:
        """Lines printed once before any record."""
        return []

    def render(self, record, path: str) -> str:
        """Render one record read from ``path`` as newline-terminated text."""
        self.layout.check(record)
        return self._render(record, path)

    def _render(self, record, path: str) -> str:
        raise NotImplementedError


class PlainRenderer(RecordRenderer):

    def _render(self, record, path: str) -> str:
        lines = self.layout.plain_lines(record, self.config)
        if self.show_filename:
            lines[0] = f"{path} {lines[0]}"
        lines.append(SEPARATOR)
        return "\n".join(lines) + "\n"


class DelimitedRenderer(RecordRenderer):

    def header(self) -> List[str]:
        columns = list(self.layout.columns)
        if self.show_filename:
            columns.insert(0, "File")
        return [f'Time Zone: "{self.config.timezone.label}"', ",".join(columns)]

    def _render(self, record, path: str) -> str:
        fields = self.layout.csv_fields(record, self.config)
        if self.show_filename:
            fields.insert(0, path)

        buffer = io.StringIO()
        csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n").writerow(fields)
        return buffer.getvalue()


class MactimeRenderer(RecordRenderer):
    """TSK 3.x body file:

    MD5|NAME|INODE|PERMS|UID|GID|SIZE|ATIME|MTIME|CTIME|CRTIME

    Records carry a single authoritative timestamp, so it is placed in
    MTIME and the other time slots stay empty.
    """

    def _render(self, record, path: str) -> str:
        name = self.layout.mactime_name(record)
        if self.show_filename:
            name = f"{path} {name}"

        fields = [
            "",                                          # MD5
            name.replace("|", "_"),                      # NAME
            self.layout.mactime_inode(record),           # INODE
            "",                                          # PERMS
            "",                                          # UID
            "",                                          # GID
            "",                                          # SIZE
            "",                                          # ATIME
            str(to_unix_seconds(record.absolute_time)),  # MTIME
            "",                                          # CTIME
            "",                                          # CRTIME
        ]
        return "|".join(fields) + "\n"


_RENDERERS = {
    RenderMode.PLAIN: PlainRenderer,
    RenderMode.DELIMITED: DelimitedRenderer,
    RenderMode.MACTIME: MactimeRenderer,
}


def make_renderer(config: DisplayConfig, layout: ArtifactLayout, file_count: int) -> RecordRenderer:
    """Pick the renderer for this run's mode and input file count."""
    return _RENDERERS[config.mode](config, layout, config.show_filename(file_count))
