"""
Record offset indexing.

This package provides the sparse record-number to byte-offset index used by
record streams, and tools to check and rebuild it.
"""

from recordfile.core.index.offset_index import UNKNOWN_OFFSET, IndexEntry, OffsetIndex
from recordfile.core.index.recovery import IndexRecovery

__all__ = ["UNKNOWN_OFFSET", "IndexEntry", "OffsetIndex", "IndexRecovery"]
