"""Exception hierarchy for win-artifact-viewer."""


class ViewerError(Exception):
    """Base class for all viewer errors."""


class InvalidArgument(ViewerError, ValueError):
    """A configuration value was rejected before any file was opened."""


class RecordSourceError(ViewerError):
    """A record source could not read further records from its file."""

    def __init__(self, message: str, path: str = "", offset: int = -1):
        super().__init__(message)
        self.path = path
        self.offset = offset


class UsnJournalError(RecordSourceError):
    """Raised when a USN journal stream is malformed."""


class EventLogError(RecordSourceError):
    """Raised when an event log stream is malformed."""


class RenderError(ViewerError):
    """A single record could not be rendered."""
