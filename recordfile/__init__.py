"""
recordfile - read line-oriented files by record number.

This package turns any seekable line source into numbered records with:
- Seeking by absolute, relative or from-the-end record number
- A lazily built index of record offsets so repeated seeks stay cheap
- Pushback of text ahead of the source
- Cooperative interruption of long scans
- Transparent reading of gzip, bzip2, xz, zip and tar sources
"""

__version__ = "0.1.0"

from recordfile.core.index import IndexRecovery, OffsetIndex
from recordfile.core.stream import (
    OpenError,
    RecordFileError,
    RecordIOError,
    RecordStream,
    RecordStreamConfig,
    StreamState,
    UsageError,
    Whence,
)

__all__ = [
    "IndexRecovery",
    "OffsetIndex",
    "OpenError",
    "RecordFileError",
    "RecordIOError",
    "RecordStream",
    "RecordStreamConfig",
    "StreamState",
    "UsageError",
    "Whence",
]
