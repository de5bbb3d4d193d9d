"""Record sources for Windows artifacts."""

from .usn_parser import UsnJournal, UsnRecord
from .evt_parser import EventLog, EventRecord

__all__ = [
    "UsnJournal",
    "UsnRecord",
    "EventLog",
    "EventRecord",
]
