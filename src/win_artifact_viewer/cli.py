"""Command-line front ends.

usnjrnl-view renders $UsnJrnl:$J change journals; evt-view renders legacy
.evt event logs. Both share the option set below; evt-view adds options for
embedded strings and SID resolution.
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import DEFAULT_TIMEZONE, LOG_LEVEL
from .errors import InvalidArgument
from .parsers import EventLog, UsnJournal
from .rendering import (
    DateRangeFilter,
    DisplayConfig,
    EventLogLayout,
    FilenamePolicy,
    RenderMode,
    SessionDriver,
    UsnLayout,
)
from .utils.sids import SidResolver
from .utils.timestamps import TimeZoneConfig

TIMEZONE_EXAMPLE = "e.g. 'EST-5EDT,M4.1.0,M10.1.0' or 'GMT-5'"
DATE_EXAMPLE = "e.g., mm/dd/yyyy"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send diagnostics to stderr so stdout only carries rendered records."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    """Options shared by both front ends. -h is --no-filename, not help."""
    parser = argparse.ArgumentParser(prog=prog, description=description, add_help=False)
    parser.add_argument("-d", "--delimited", action="store_true",
                        help="Display in comma-delimited format.")
    parser.add_argument("-m", "--mactime", action="store_true",
                        help="Display in the SleuthKit's mactime format.")
    parser.add_argument("--start-date", metavar="mm/dd/yyyy",
                        help="Only display entries recorded on or after the specified date.")
    parser.add_argument("--end-date", metavar="mm/dd/yyyy",
                        help="Only display entries recorded on or before the specified date.")
    parser.add_argument("-H", "--with-filename", action="store_true",
                        help="Display filename in output. Useful when batch processing multiple files.")
    parser.add_argument("-h", "--no-filename", action="store_true",
                        help="Suppress filename in output.")
    parser.add_argument("-z", "--timezone", metavar="zone", default=DEFAULT_TIMEZONE,
                        help="POSIX timezone string (e.g. 'EST-5EDT,M4.1.0,M10.1.0' or 'GMT-5') "
                             "to be used when displaying data. Defaults to GMT.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}",
                        help="Display version.")
    parser.add_argument("--help", action="help", help="Show this help message and exit.")
    parser.add_argument("files", nargs="*", metavar="filename")
    return parser


def build_display_config(
    parser: argparse.ArgumentParser,
    args: argparse.Namespace,
    file_example: str,
    show_strings: bool = True,
    sid_resolver: Optional[SidResolver] = None,
) -> DisplayConfig:
    """Validate options and freeze them; exits with usage on bad input."""
    try:
        date_range = DateRangeFilter(start=args.start_date, end=args.end_date)
    except InvalidArgument as e:
        parser.error(f"{e} ({DATE_EXAMPLE})")

    try:
        zone = TimeZoneConfig.from_string(args.timezone)
    except InvalidArgument as e:
        parser.error(f"{e} ({TIMEZONE_EXAMPLE})")

    if not args.files:
        parser.error(f"You must specify at least one file (e.g., {file_example})")

    return DisplayConfig(
        mode=RenderMode.from_flags(delimited=args.delimited, mactime=args.mactime),
        filename_policy=FilenamePolicy.from_flags(
            with_filename=args.with_filename, no_filename=args.no_filename
        ),
        date_range=date_range,
        show_strings=show_strings,
        sid_resolver=sid_resolver,
        timezone=zone,
    )


def usnjrnl_view(argv: Optional[List[str]] = None) -> int:
    """Entry point for usnjrnl-view."""
    parser = build_parser("usnjrnl-view", "Display NTFS USN change journal ($UsnJrnl:$J) records.")
    args = parser.parse_args(argv)
    config = build_display_config(parser, args, "$Extend\\$UsnJrnl:$J")

    configure_logging()
    SessionDriver(config, UsnJournal, UsnLayout()).run(args.files)
    return 0


def evt_view(argv: Optional[List[str]] = None) -> int:
    """Entry point for evt-view."""
    parser = build_parser("evt-view", "Display legacy Windows event log (.evt) records.")
    parser.add_argument("-S", "--no-strings", action="store_true",
                        help="Omit embedded strings and binary data.")
    parser.add_argument("--sid-map", metavar="file",
                        help="CSV of SID,username pairs used to resolve record SIDs.")
    args = parser.parse_args(argv)

    sid_resolver = None
    if args.sid_map:
        try:
            sid_resolver = SidResolver.from_csv(args.sid_map)
        except InvalidArgument as e:
            parser.error(f"{e} (e.g., sids.csv)")

    config = build_display_config(
        parser, args, "SecEvent.Evt",
        show_strings=not args.no_strings,
        sid_resolver=sid_resolver,
    )

    configure_logging()
    SessionDriver(config, EventLog, EventLogLayout()).run(args.files)
    return 0


if __name__ == "__main__":
    sys.exit(usnjrnl_view())
