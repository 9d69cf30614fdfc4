"""Custom exceptions for the file tracker package."""


class TrackerError(Exception):
    """Base exception for all tracker errors."""
    pass


class PathError(TrackerError):
    """The requested root cannot be tracked."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class RootNotFoundError(PathError):
    """Specified root folder does not exist."""
    pass


class RootNotADirectoryError(PathError):
    """Specified root exists but is not a directory."""
    pass


class ScanError(TrackerError):
    """Directory tree could not be read completely."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class PersistenceError(TrackerError):
    """Tracker state could not be written to or read from durable storage."""
    pass
