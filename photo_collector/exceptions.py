"""
Custom exception hierarchy for the photo collector.

Fatal errors (ConfigError, AlreadyRunningError) stop a run before any work
starts. Everything else is recoverable: it is recorded against the file or
operation it concerns and collected into the run's aggregate error list.
"""
from typing import Optional


class CollectorError(Exception):
    """Base exception for all photo collector errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigError(CollectorError):
    """Raised when settings are unreadable or describe an unusable library."""
    pass


class AlreadyRunningError(CollectorError):
    """Raised when a run is requested while another run is still active."""

    def __init__(self, message: str = "collector is already running"):
        super().__init__(message)


class FileAccessError(CollectorError):
    """Raised when a file cannot be opened, read or stat'ed."""
    pass


class DecodeError(CollectorError):
    """Raised when image data or embedded metadata cannot be decoded."""
    pass


class EncodeError(CollectorError):
    """Raised when a thumbnail cannot be produced or written."""
    pass


class UnsupportedFormatError(EncodeError):
    """Raised when a thumbnail is requested for an unrecognized extension."""
    pass


class StorageError(CollectorError):
    """Raised when a catalog read, write or delete fails."""
    pass
