"""
Index consistency checks and rebuild utilities.

Detects gaps and ordering conflicts in an offset index and rebuilds it by
rescanning the stream it belongs to.
"""

from typing import TYPE_CHECKING, Optional

from recordfile.core.index.offset_index import UNKNOWN_OFFSET, OffsetIndex
from recordfile.utils.logging import get_logger

if TYPE_CHECKING:
    from recordfile.core.stream.record_stream import RecordStream

logger = get_logger(__name__)


class IndexRecovery:
    """Utilities for index checking and rebuild operations."""

    @staticmethod
    def check_index(index: OffsetIndex) -> int:
        """
        Count problems in an index.

        A gap is a record below the frontier with no entry; a conflict is an
        entry whose offset does not exceed the previous known entry's.

        Args:
            index: Index to check

        Returns:
            Number of gaps plus conflicts
        """
        problems = 0
        previous_offset = index.offset_of(0)

        for record in range(1, index.highest_known_record() + 1):
            offset = index.offset_of(record)

            if offset == UNKNOWN_OFFSET:
                logger.warning("Offset index gap", record=record)
                problems += 1
                continue

            if offset <= previous_offset:
                logger.warning(
                    "Offset index conflict",
                    record=record,
                    offset=offset,
                    previous_offset=previous_offset,
                )
                problems += 1
            previous_offset = offset

        return problems

    @staticmethod
    def validate_index(stream: "RecordStream", sample: int = 10) -> bool:
        """
        Check that cached offsets still match the stream's contents.

        Re-reads up to sample cached records through the stream and compares
        the offset after each with the cached one. The stream position and
        any pending buffered text are restored afterwards.

        Args:
            stream: Open record stream
            sample: Number of records to re-read

        Returns:
            True if every sampled record ends where the index says
        """
        index = stream.index
        frontier = index.highest_known_record()
        valid = True

        with stream.preserve_position():
            for record in range(1, min(sample, frontier) + 1):
                expected = index.offset_of(record)
                if expected == UNKNOWN_OFFSET or not index.has(record - 1):
                    continue

                if not stream.seek_to_record(record) or stream.read_record() is None:
                    logger.error("Indexed record no longer readable", record=record)
                    valid = False
                    break

                actual = index.offset_of(record)
                if actual != expected:
                    logger.error(
                        "Offset mismatch in index",
                        record=record,
                        expected=expected,
                        actual=actual,
                    )
                    valid = False
                    break

        if valid:
            logger.info("Index validation passed", records_checked=min(sample, frontier))
        return valid

    @staticmethod
    def rebuild_index(stream: "RecordStream") -> Optional[int]:
        """
        Rebuild a stream's index by rescanning it from the start.

        The stream is left positioned on its first record.

        Args:
            stream: Open record stream

        Returns:
            Number of records indexed, or None if the scan was interrupted
        """
        logger.info("Rebuilding offset index", path=str(stream.path) if stream.path else None)

        stream.invalidate_index()
        last = stream.go_to_last_record()
        stream.seek_to_record(1)

        logger.info("Index rebuild complete", records=last)

        return last

    @staticmethod
    def recover_or_rebuild(stream: "RecordStream", sample: int = 10) -> Optional[int]:
        """
        Keep the index if it checks out, rebuild it otherwise.

        Args:
            stream: Open record stream
            sample: Number of records to re-read during validation

        Returns:
            Frontier record number of the resulting index, or None if a
            rebuild was interrupted
        """
        if IndexRecovery.check_index(stream.index) == 0 and IndexRecovery.validate_index(stream, sample):
            logger.info("Recovered existing index", records=stream.index.highest_known_record())
            return stream.index.highest_known_record()

        logger.warning("Index check failed, rebuilding")
        return IndexRecovery.rebuild_index(stream)
