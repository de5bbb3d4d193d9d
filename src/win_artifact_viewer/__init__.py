"""Render NTFS USN journal and Windows event log records as text, CSV or mactime."""

__version__ = "1.0.0"
