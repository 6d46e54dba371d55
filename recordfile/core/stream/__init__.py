"""
Record-addressable streams.

This package provides:
- RecordStream for seeking and reading line sources by record number
- Openers for plain, compressed and archived sources
- The exceptions raised by both
"""

from recordfile.core.stream.errors import (
    OpenError,
    RecordFileError,
    RecordIOError,
    UsageError,
)
from recordfile.core.stream.record_stream import (
    RecordStream,
    RecordStreamConfig,
    StreamState,
    Whence,
)
from recordfile.core.stream.sources import SourceFormat, detect_format, open_source

__all__ = [
    "OpenError",
    "RecordFileError",
    "RecordIOError",
    "UsageError",
    "RecordStream",
    "RecordStreamConfig",
    "StreamState",
    "Whence",
    "SourceFormat",
    "detect_format",
    "open_source",
]
