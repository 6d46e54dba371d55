"""
Offset index mapping record numbers to byte offsets.

Entry n holds the byte offset just past record n, which is also where
record n + 1 begins. Entry 0 is a fixed sentinel at offset 0, the start of
the stream. The index is filled lazily as records are read, so it usually
covers a dense prefix of the file and is empty beyond the frontier.
"""

from bisect import bisect_left, bisect_right
from typing import Dict, List, Optional, Tuple

from recordfile.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_OFFSET = -1


class IndexEntry:
    """
    A single entry in the offset index.

    Maps a record number to the byte offset at which that record ends.
    """

    def __init__(self, record: int, offset: int):
        """
        Create an index entry.

        Args:
            record: Record number (0 for the start-of-stream sentinel)
            offset: Byte offset just past the record

        Raises:
            ValueError: If values are negative
        """
        if record < 0:
            raise ValueError(f"Record number must be non-negative: {record}")
        if offset < 0:
            raise ValueError(f"Offset must be non-negative: {offset}")

        self.record = record
        self.offset = offset

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexEntry):
            return NotImplemented
        return self.record == other.record and self.offset == other.offset

    def __repr__(self) -> str:
        return f"IndexEntry(record={self.record}, offset={self.offset})"


class OffsetIndex:
    """
    Sparse in-memory index of record boundaries.

    Membership and lookups by record number are dictionary operations; the
    nearest-entry searches use binary search over the known record numbers,
    which are kept sorted alongside their offsets.

    The index is an acceleration structure, not a ledger: an entry that
    breaks offset ordering is logged and stored anyway.
    """

    def __init__(self):
        """Initialize an index holding only the start-of-stream sentinel."""
        self._offsets: Dict[int, int] = {}
        self._records: List[int] = []
        self._positions: List[int] = []
        self.clear()

    def clear(self) -> None:
        """Drop every entry except the start-of-stream sentinel."""
        self._offsets = {0: 0}
        self._records = [0]
        self._positions = [0]

    def has(self, record: int) -> bool:
        """
        Check whether the end offset of a record is known.

        Args:
            record: Record number

        Returns:
            True if the record has an entry
        """
        return record in self._offsets

    def set(self, record: int, offset: int) -> None:
        """
        Record that record ends (and record + 1 begins) at offset.

        Args:
            record: Record number, 1 or greater
            offset: Byte offset just past the record

        Raises:
            ValueError: If record is below 1 or offset is negative
        """
        if record < 1:
            raise ValueError(f"Record number must be at least 1: {record}")
        if offset < 0:
            raise ValueError(f"Offset must be non-negative: {offset}")

        lower_record, lower_offset = self.nearest_known_at_or_before(record - 1)
        if offset <= lower_offset:
            logger.warning(
                "Offset index conflict",
                record=record,
                offset=offset,
                lower_record=lower_record,
                lower_offset=lower_offset,
            )

        if record in self._offsets:
            if self._offsets[record] != offset:
                logger.warning(
                    "Overwriting offset index entry",
                    record=record,
                    old_offset=self._offsets[record],
                    new_offset=offset,
                )
            slot = bisect_left(self._records, record)
            self._positions[slot] = offset
        elif record > self._records[-1]:
            self._records.append(record)
            self._positions.append(offset)
        else:
            slot = bisect_left(self._records, record)
            self._records.insert(slot, record)
            self._positions.insert(slot, offset)

        self._offsets[record] = offset

    def offset_of(self, record: int) -> int:
        """
        Get the cached end offset of a record.

        Args:
            record: Record number

        Returns:
            Byte offset, or UNKNOWN_OFFSET if the record has no entry
        """
        return self._offsets.get(record, UNKNOWN_OFFSET)

    def highest_known_record(self) -> int:
        """Get the frontier: the highest record number with an entry."""
        return self._records[-1]

    def nearest_known_at_or_before(self, record: int) -> Tuple[int, int]:
        """
        Find the greatest known record <= record.

        Seeking to its offset and reading forward is the cheapest way to
        reach a record that has no entry of its own.

        Args:
            record: Target record number

        Returns:
            Tuple of (record, offset); (0, 0) if nothing qualifies
        """
        slot = bisect_right(self._records, record) - 1
        if slot < 0:
            return 0, 0
        return self._records[slot], self._positions[slot]

    def nearest_known_at_or_before_offset(self, offset: int) -> Tuple[int, int]:
        """
        Find the greatest known boundary at or before a byte offset.

        Args:
            offset: Byte offset

        Returns:
            Tuple of (record, offset); (0, 0) if nothing qualifies
        """
        slot = bisect_right(self._positions, offset) - 1
        if slot < 0:
            return 0, 0
        return self._records[slot], self._positions[slot]

    def record_containing(self, offset: int) -> Optional[int]:
        """
        Find the cached record whose bytes include offset.

        Record r spans [offset_of(r - 1), offset_of(r)); both boundaries
        must be known for the answer to be certain.

        Args:
            offset: Byte offset

        Returns:
            Record number, or None if the cache cannot tell
        """
        if offset < 0:
            return None

        slot = bisect_right(self._positions, offset)
        if slot == 0 or slot >= len(self._records):
            return None

        record = self._records[slot]
        if self._records[slot - 1] != record - 1:
            return None
        return record

    def distance(self, first: int, second: Optional[int] = None) -> int:
        """
        Get the number of bytes between two record boundaries.

        Args:
            first: Lower record number
            second: Higher record number (default: first + 1)

        Returns:
            Byte distance, or -1 if either boundary is unknown or out of order
        """
        if second is None:
            second = first + 1
        if second < first or not self.has(first) or not self.has(second):
            return -1
        return self._offsets[second] - self._offsets[first]

    def longest_record(self) -> Tuple[int, int]:
        """
        Find the longest record whose two boundaries are both cached.

        Returns:
            Tuple of (length in bytes, record number); (0, 0) if none
        """
        longest = (0, 0)
        for slot in range(1, len(self._records)):
            record = self._records[slot]
            if self._records[slot - 1] != record - 1:
                continue
            length = self._positions[slot] - self._positions[slot - 1]
            if length > longest[0]:
                longest = (length, record)
        return longest

    def entries(self) -> List[IndexEntry]:
        """Get all entries, including the sentinel, in record order."""
        return [
            IndexEntry(record, position)
            for record, position in zip(self._records, self._positions)
        ]

    def entries_count(self) -> int:
        """Get number of entries beyond the sentinel."""
        return len(self._records) - 1

    def __repr__(self) -> str:
        return (
            f"OffsetIndex(entries={self.entries_count()}, "
            f"frontier={self.highest_known_record()})"
        )
