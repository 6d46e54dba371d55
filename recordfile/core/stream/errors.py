"""Exceptions raised by record streams."""


class RecordFileError(Exception):
    """Base class for record stream errors."""
    pass


class OpenError(RecordFileError):
    """Raised when a record source cannot be opened or decoded as requested."""
    pass


class RecordIOError(RecordFileError):
    """Raised when the underlying source fails after it was opened."""
    pass


class UsageError(RecordFileError):
    """Raised when a stream is used in the wrong state or with bad arguments."""
    pass
