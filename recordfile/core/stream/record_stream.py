"""
Record-addressable view over a line-oriented source.

A RecordStream numbers the lines of its source from 1 and lets callers seek
and read by record number. The byte offset after every record read is kept
in an OffsetIndex, so a seek only has to scan the part of the source that
has not been visited yet:
- Known records are reached with a single seek
- Unknown records are reached by reading forward from the nearest known one
- Scans can be interrupted between records by a caller-supplied predicate
"""

import codecs
import io
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Iterator, List, Optional, Tuple, Union

from recordfile.core.index.offset_index import UNKNOWN_OFFSET, OffsetIndex
from recordfile.core.stream.errors import OpenError, RecordIOError, UsageError
from recordfile.core.stream.sources import SOURCE_ERRORS, open_source
from recordfile.utils.config import Config
from recordfile.utils.logging import get_logger

logger = get_logger(__name__)

InterruptCallback = Callable[[], bool]


class Whence(Enum):
    """How seek_to_record interprets its record number."""
    ABSOLUTE = 0
    FORWARD = 1
    FROM_END = 2


class StreamState(Enum):
    """Lifecycle states of a record stream."""
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class RecordStreamConfig:
    """
    Configuration for record streams.

    Attributes:
        encoding: Character encoding of the source
        decode_errors: Codec error handler (strict, replace, ...)
        pending_buffer_limit: Maximum characters held in the pending buffer
    """
    encoding: str = "utf-8"
    decode_errors: str = "strict"
    pending_buffer_limit: int = 1048576

    @classmethod
    def from_config(cls, config: Config) -> "RecordStreamConfig":
        """
        Build stream configuration from the layered application config.

        Args:
            config: Application configuration

        Returns:
            RecordStreamConfig with any missing keys left at their defaults
        """
        defaults = cls()
        return cls(
            encoding=config.get("stream.encoding", defaults.encoding),
            decode_errors=config.get("stream.decode_errors", defaults.decode_errors),
            pending_buffer_limit=int(
                config.get("stream.pending_buffer_limit", defaults.pending_buffer_limit)
            ),
        )


@dataclass
class _SavedPosition:
    source_offset: int
    next_record: int
    pending: List[str]
    current_record: Optional[str]


def check_encoding(encoding: str) -> str:
    """
    Validate that an encoding can be read line by line.

    Lines are split on the byte 0x0A before decoding, so the codec must
    encode a newline as exactly that byte.

    Args:
        encoding: Codec name

    Returns:
        Canonical codec name

    Raises:
        OpenError: If the codec is unknown or not line-splittable
    """
    try:
        info = codecs.lookup(encoding)
    except LookupError as e:
        raise OpenError(f"Unsupported encoding: {encoding}") from e

    try:
        newline = codecs.encode("\n", info.name)
    except (UnicodeError, TypeError) as e:
        raise OpenError(f"Encoding cannot encode text: {encoding}") from e

    if newline != b"\n":
        raise OpenError(f"Encoding does not use single-byte newlines: {encoding}")

    return info.name


def strip_terminator(line: str) -> str:
    """Remove one trailing \\n or \\r\\n from a line."""
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


class RecordStream:
    """
    Numbered-record reader over a seekable line source.

    Record numbers start at 1. "Next record" is the number that read_record
    will return next; tell_record is the number it returned last.

    Example:
        with RecordStream("/tmp/data.csv") as stream:
            if stream.seek_to_record(239):
                print(stream.read_record())

    Attributes:
        config: Stream configuration
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        encoding: Optional[str] = None,
        config: Optional[RecordStreamConfig] = None,
        interrupt_callback: Optional[InterruptCallback] = None,
    ):
        """
        Create a record stream, optionally opening a path right away.

        Args:
            path: Source to open (left unopened if None)
            encoding: Encoding for the source (overrides config)
            config: Stream configuration
            interrupt_callback: Predicate polled between records during scans

        Raises:
            OpenError: If path is given and cannot be opened
        """
        self.config = config or RecordStreamConfig()

        self._state = StreamState.UNOPENED
        self._stalled = False
        self._source: Optional[Any] = None
        self._owns_source = False
        self._path: Optional[Path] = None
        self._encoding = self.config.encoding

        self._index = OffsetIndex()
        self._pending: Deque[str] = deque()
        self._pending_size = 0
        self._next_record = 1
        self._current_record: Optional[str] = None
        self._interrupt_callback = interrupt_callback

        if path is not None:
            self.open(path, encoding)

    @classmethod
    def from_text(cls, text: str, **kwargs) -> "RecordStream":
        """
        Create a stream over an in-memory string.

        Offsets are character positions in the string.
        """
        stream = cls(**kwargs)
        stream.attach(io.StringIO(text), owns=True)
        return stream

    # Lifecycle

    def open(self, path: Union[str, Path], encoding: Optional[str] = None) -> None:
        """
        Open a path, replacing any source that is currently attached.

        Args:
            path: File to read (plain, compressed or archive)
            encoding: Character encoding (default: configured encoding)

        Raises:
            OpenError: If the path or encoding is unusable
        """
        self.close()

        encoding = check_encoding(encoding or self.config.encoding)
        path = Path(path)

        try:
            handle = open_source(path)
        except OpenError as e:
            logger.warning("Failed to open record source", path=str(path), error=str(e))
            raise

        self._bind(handle, owns=True, path=path, encoding=encoding)

    def attach(self, handle: Any, encoding: Optional[str] = None, owns: bool = False) -> None:
        """
        Read from an already open handle.

        The handle must provide readline, seek and tell. It may return
        bytes (decoded with the stream's encoding) or str.

        Args:
            handle: Open handle
            encoding: Encoding for byte handles (default: configured encoding)
            owns: Close the handle when the stream is closed

        Raises:
            UsageError: If the handle lacks a required method
            OpenError: If the encoding is unusable or the handle cannot rewind
        """
        missing = [name for name in ("readline", "seek", "tell") if not hasattr(handle, name)]
        if missing:
            raise UsageError(f"Handle is missing required methods: {', '.join(missing)}")

        self.close()

        encoding = check_encoding(encoding or self.config.encoding)
        self._bind(handle, owns=owns, path=None, encoding=encoding)

    def _bind(self, handle: Any, owns: bool, path: Optional[Path], encoding: str) -> None:
        try:
            handle.seek(0)
        except SOURCE_ERRORS as e:
            if owns:
                handle.close()
            raise OpenError(f"Source cannot be rewound: {e}") from e

        self._source = handle
        self._owns_source = owns
        self._path = path
        self._encoding = encoding
        self._reset_position()
        self._state = StreamState.OPEN
        self._stalled = False

        logger.info(
            "Opened record stream",
            path=str(path) if path else None,
            encoding=encoding,
            owns_source=owns,
        )

    def close(self) -> None:
        """Release the source and clear buffers and index. Safe to call repeatedly."""
        if self._state is not StreamState.OPEN:
            return

        source, owns = self._source, self._owns_source
        frontier = self._index.highest_known_record()

        self._source = None
        self._owns_source = False
        self._reset_position()
        self._state = StreamState.CLOSED
        self._stalled = False

        logger.info(
            "Closed record stream",
            path=str(self._path) if self._path else None,
            records_indexed=frontier,
        )

        if source is not None and owns:
            source.close()

    def _reset_position(self) -> None:
        self._index.clear()
        self._pending.clear()
        self._pending_size = 0
        self._next_record = 1
        self._current_record = None

    def invalidate_index(self) -> None:
        """
        Forget every cached offset and rewind to the first record.

        Use after the source was modified behind the stream's back.
        """
        self._require_open()

        self._source_seek(0)
        self._reset_position()

        logger.info("Invalidated offset index", path=str(self._path) if self._path else None)

    def set_encoding(self, encoding: str) -> None:
        """
        Change the encoding used for lines read from now on.

        Raises:
            UsageError: If the stream is not open or the encoding is unusable
        """
        self._require_open()
        try:
            self._encoding = check_encoding(encoding)
        except OpenError as e:
            raise UsageError(str(e)) from e
        logger.debug("Set input encoding", encoding=self._encoding)

    def set_interrupt_callback(self, callback: Optional[InterruptCallback]) -> None:
        """
        Set the predicate polled after each record during long scans.

        A true result stops the scan where it is.
        """
        self._interrupt_callback = callback

    def _require_open(self) -> None:
        if self._state is not StreamState.OPEN:
            raise UsageError(f"Record stream is {self._state.value}")
        if self._stalled:
            raise RecordIOError("Record stream stalled after an I/O failure; close and reopen it")

    def _interrupted(self) -> bool:
        return bool(self._interrupt_callback and self._interrupt_callback())

    # Source access

    def _fail(self, operation: str, error: Exception) -> RecordIOError:
        self._stalled = True
        logger.error(
            "Record source failure",
            operation=operation,
            path=str(self._path) if self._path else None,
            next_record=self._next_record,
            error=str(error),
        )
        return RecordIOError(f"{operation} failed: {error}")

    def _source_seek(self, offset: int) -> None:
        try:
            self._source.seek(offset)
        except SOURCE_ERRORS as e:
            raise self._fail("seek", e) from e

    def _source_tell(self) -> int:
        try:
            return self._source.tell()
        except SOURCE_ERRORS as e:
            raise self._fail("tell", e) from e

    def _read_source_line(self) -> Optional[str]:
        if self._source is None:
            return None

        try:
            raw = self._source.readline()
        except SOURCE_ERRORS as e:
            raise self._fail("readline", e) from e

        if not raw:
            return None
        if isinstance(raw, str):
            return raw

        try:
            return raw.decode(self._encoding, self.config.decode_errors)
        except UnicodeDecodeError as e:
            raise self._fail("decode", e) from e

    def _read_line(self) -> Tuple[Optional[str], bool]:
        """Read one line, pending buffer first; also report whether the buffer supplied any of it."""
        parts: List[str] = []

        while self._pending:
            chunk = self._pending.popleft()
            self._pending_size -= len(chunk)

            newline = chunk.find("\n")
            if newline >= 0:
                rest = chunk[newline + 1:]
                if rest:
                    self._pending.appendleft(rest)
                    self._pending_size += len(rest)
                parts.append(chunk[:newline + 1])
                return "".join(parts), True

            parts.append(chunk)

        from_buffer = bool(parts)
        line = self._read_source_line()
        if line is not None:
            parts.append(line)

        if not parts:
            return None, False
        return "".join(parts), from_buffer

    # Pending buffer

    def push_buffered_text(self, text: str) -> None:
        """
        Put text in front of everything not yet read.

        Buffered text does not move the source, so records read from it are
        counted but their offsets are not cached.

        Raises:
            UsageError: If the stream is not open or the buffer would overflow
        """
        self._require_open()
        self._check_pending_room(text)
        self._pending.appendleft(text)
        self._pending_size += len(text)

    def queue_buffered_text(self, text: str) -> None:
        """
        Append text to the pending buffer, behind earlier buffered text.

        Raises:
            UsageError: If the stream is not open or the buffer would overflow
        """
        self._require_open()
        self._check_pending_room(text)
        self._pending.append(text)
        self._pending_size += len(text)

    def _check_pending_room(self, text: str) -> None:
        if self._pending_size + len(text) > self.config.pending_buffer_limit:
            raise UsageError(
                f"Pending buffer limit exceeded: {self._pending_size + len(text)} > "
                f"{self.config.pending_buffer_limit} characters"
            )

    # Reading

    def read_physical_line(self) -> Optional[str]:
        """
        Read the next line, terminator included, without record bookkeeping.

        Returns:
            Line text, or None at end of stream
        """
        self._require_open()
        line, _ = self._read_line()
        return line

    def read_record(self) -> Optional[str]:
        """
        Read the record at the current position and advance past it.

        The offset after the record is cached under the record's number
        before the record is returned.

        Returns:
            Record text without its terminator, or None at end of stream

        Raises:
            UsageError: If the stream is not open
            RecordIOError: If the source fails
        """
        self._require_open()

        line, from_buffer = self._read_line()
        if line is None:
            self._current_record = None
            return None

        record_number = self._next_record
        self._next_record += 1

        if from_buffer:
            logger.debug("Read record from pending buffer", record=record_number)
        else:
            self._index.set(record_number, self._source_tell())

        self._current_record = strip_terminator(line)
        return self._current_record

    def read_nth_record(self, record: int) -> Optional[str]:
        """
        Seek to a record and read it.

        Returns:
            Record text, or None if it does not exist or the scan was interrupted
        """
        if not self.seek_to_record(record):
            return None
        return self.read_record()

    def read_real_record(self, comment_prefix: str = "#") -> Optional[str]:
        """
        Read the next record that is neither blank nor a comment.

        Args:
            comment_prefix: Records starting with this are skipped

        Returns:
            Record text, or None at end of stream
        """
        while True:
            record = self.read_record()
            if record is None:
                return None
            if not record.strip():
                continue
            if comment_prefix and record.startswith(comment_prefix):
                continue
            return record

    def records_in_range(self, first: int, last: int) -> List[str]:
        """
        Read records first through last inclusive.

        The bounds may be given in either order. Reading stops early at the
        end of the stream, and the stream is left after the last record read.

        Returns:
            Record texts in ascending record order

        Raises:
            UsageError: If a bound is below 1
        """
        first, last = min(first, last), max(first, last)
        if first < 1:
            raise UsageError(f"Record numbers start at 1: {first}")

        if not self.seek_to_record(first):
            return []

        records = []
        for _ in range(last - first + 1):
            record = self.read_record()
            if record is None:
                break
            records.append(record)
        return records

    def __iter__(self) -> Iterator[str]:
        """Yield the remaining records from the current position."""
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record

    # Navigation

    def seek_to_record(self, record: int, whence: Union[Whence, int] = Whence.ABSOLUTE) -> bool:
        """
        Position the stream so that read_record returns the given record.

        Args:
            record: Record number, or a count for FORWARD and FROM_END
            whence: ABSOLUTE, FORWARD (relative to the next record) or
                FROM_END (1 is the last record, 0 the end of the stream)

        Returns:
            True if positioned; False if the record lies beyond the end
            (position unchanged) or the scan was interrupted (position left
            where the scan stopped)

        Raises:
            UsageError: If the stream is not open or an absolute record is below 1
            RecordIOError: If the source fails
        """
        self._require_open()
        whence = Whence(whence)

        current = self._current_record
        try:
            return self._seek(record, whence)
        finally:
            self._current_record = current

    def _seek(self, record: int, whence: Whence) -> bool:
        if whence is Whence.ABSOLUTE:
            if record < 1:
                raise UsageError(f"Record numbers start at 1: {record}")
            target = record
        elif whence is Whence.FORWARD:
            target = self._next_record + record
        else:
            saved = self._save_position()
            last = self.go_to_last_record()
            if last is None:
                return False
            target = last + 1 - record
            if not 1 <= target <= last + 1:
                self._restore_position(saved)
                logger.debug("Seek target outside stream", record=record, whence=whence.name)
                return False

        if target < 1:
            logger.debug("Seek target before first record", record=record, whence=whence.name)
            return False

        return self._goto_record(target)

    def go_to_last_record(self) -> Optional[int]:
        """
        Scan to the end and position the stream on the last record.

        Every offset on the way is cached, so afterwards the whole source is
        indexed.

        Returns:
            Number of the last record (0 for an empty source), or None if
            the scan was interrupted
        """
        self._require_open()

        current = self._current_record
        try:
            self._position_at(self._index.highest_known_record())
            while self.read_record() is not None:
                if self._interrupted():
                    logger.info("Scan to last record interrupted", record=self.tell_record())
                    return None

            last = self._index.highest_known_record()
            if last == 0:
                self._position_at(0)
            elif not self._goto_record(last):
                return None
        finally:
            self._current_record = current

        logger.debug("Positioned at last record", record=last)

        return last

    def _position_at(self, boundary: int) -> None:
        """Seek to a cached boundary so that record boundary + 1 is read next."""
        self._source_seek(self._index.offset_of(boundary))
        self._next_record = boundary + 1
        self._pending.clear()
        self._pending_size = 0

    @contextmanager
    def preserve_position(self) -> Iterator["RecordStream"]:
        """
        Context manager that puts the stream back where it was on exit.

        The record position, pending buffer and current record text are all
        restored. A stream that stalled inside the block is left stalled.
        """
        self._require_open()
        saved = self._save_position()
        try:
            yield self
        finally:
            if self._state is StreamState.OPEN and not self._stalled:
                self._restore_position(saved)

    def _save_position(self) -> _SavedPosition:
        return _SavedPosition(
            source_offset=self._source_tell(),
            next_record=self._next_record,
            pending=list(self._pending),
            current_record=self._current_record,
        )

    def _restore_position(self, saved: _SavedPosition) -> None:
        self._source_seek(saved.source_offset)
        self._next_record = saved.next_record
        self._pending = deque(saved.pending)
        self._pending_size = sum(len(chunk) for chunk in saved.pending)
        self._current_record = saved.current_record

    def _goto_record(self, record: int) -> bool:
        boundary = record - 1

        if self._index.has(boundary):
            self._position_at(boundary)
            logger.debug(
                "Seek to cached record",
                record=record,
                offset=self._index.offset_of(boundary),
            )
            return True

        saved = self._save_position()
        known, offset = self._index.nearest_known_at_or_before(boundary)
        self._position_at(known)

        logger.debug("Scanning for record", record=record, from_record=known + 1, offset=offset)

        while self._next_record < record:
            if self.read_record() is None:
                self._restore_position(saved)
                logger.debug(
                    "Record not found",
                    record=record,
                    last_record=self._index.highest_known_record(),
                )
                return False
            if self._next_record < record and self._interrupted():
                logger.info(
                    "Record scan interrupted",
                    record=record,
                    reached=self.tell_record(),
                )
                return False

        return True

    # Queries

    def tell_record(self) -> int:
        """Get the number of the record read last (0 before the first read)."""
        self._require_open()
        return self._next_record - 1

    def byte_offset_of_record(self, record: int) -> int:
        """
        Get the cached byte offset at which a record starts.

        Never reads the source.

        Returns:
            Byte offset, or UNKNOWN_OFFSET if the record has not been reached

        Raises:
            UsageError: If the stream is not open or record is below 1
        """
        self._require_open()
        if record < 1:
            raise UsageError(f"Record numbers start at 1: {record}")
        return self._index.offset_of(record - 1)

    def record_number_at_offset(self, offset: int) -> Optional[int]:
        """
        Find the record that starts at or contains a byte offset.

        Offsets past the cached range are found by scanning forward from the
        frontier, caching as it goes. The stream position is restored.

        Args:
            offset: Byte offset in the source

        Returns:
            Record number, or None if the offset is negative, at or past the
            end of the source, or the scan was interrupted
        """
        self._require_open()
        if offset < 0:
            return None

        found = self._index.record_containing(offset)
        if found is not None:
            return found

        saved = self._save_position()
        known, _ = self._index.nearest_known_at_or_before_offset(offset)
        self._position_at(known)

        try:
            while True:
                if self.read_record() is None:
                    return None
                record = self._next_record - 1
                end = self._index.offset_of(record)
                if end != UNKNOWN_OFFSET and end > offset:
                    return record
                if self._interrupted():
                    logger.info("Offset lookup interrupted", offset=offset, reached=record)
                    return None
        finally:
            if not self._stalled:
                self._restore_position(saved)

    # Properties

    @property
    def path(self) -> Optional[Path]:
        """Path of the current source, if it was opened by path."""
        return self._path

    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def stalled(self) -> bool:
        return self._stalled

    @property
    def next_record_number(self) -> int:
        """Number of the record read_record will return next."""
        return self._next_record

    @property
    def current_record_text(self) -> Optional[str]:
        """
        Text of the record read last (None after reaching the end).

        Seeks leave it unchanged, even when they scan records on the way.
        """
        return self._current_record

    @property
    def index(self) -> OffsetIndex:
        return self._index

    def __enter__(self) -> "RecordStream":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return (
            f"RecordStream(path={str(self._path) if self._path else None!r}, "
            f"state={self._state.value}, next_record={self._next_record})"
        )
