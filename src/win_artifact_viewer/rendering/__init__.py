"""Rendering engine: filtering, formatting and the per-run session."""

from .filters import DateRangeFilter
from .renderer import (
    DisplayConfig,
    EventLogLayout,
    FilenamePolicy,
    RenderMode,
    UsnLayout,
    make_renderer,
)
from .session import SessionDriver

__all__ = [
    "DateRangeFilter",
    "DisplayConfig",
    "EventLogLayout",
    "FilenamePolicy",
    "RenderMode",
    "UsnLayout",
    "make_renderer",
    "SessionDriver",
]
