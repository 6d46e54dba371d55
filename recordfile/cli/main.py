#!/usr/bin/env python3
"""
Command-line entry point for displaying records of a file.

Usage:
    # Records 100-109
    recordfile data.csv --start 100

    # Last 5 records, numbered
    recordfile data.csv.gz --start 5 --count 5 --from-end --number
"""

import argparse
import signal
import sys
from typing import List, Optional, TextIO

from recordfile.core.stream.errors import OpenError, RecordIOError, UsageError
from recordfile.core.stream.record_stream import RecordStream, RecordStreamConfig, Whence
from recordfile.utils.config import Config
from recordfile.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_OPEN_FAILED = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Display records of a line-oriented file by record number'
    )

    parser.add_argument(
        'path',
        help='File to read (plain, .gz, .bz2, .xz, .zip or .tar)'
    )

    parser.add_argument(
        '--start',
        type=int,
        default=1,
        help='First record to display (default: 1)'
    )

    parser.add_argument(
        '--count',
        type=int,
        default=None,
        help='Number of records to display (default: cli.count from config, 10)'
    )

    parser.add_argument(
        '--from-end',
        action='store_true',
        help='Count --start back from the last record (1 = last record)'
    )

    parser.add_argument(
        '--number',
        action='store_true',
        help='Prefix each record with its record number and a tab'
    )

    parser.add_argument(
        '--encoding',
        type=str,
        default=None,
        help='Character encoding of the file (default: stream.encoding from config)'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: logging.level from config)'
    )

    parser.add_argument(
        '--log-format',
        type=str,
        default=None,
        choices=['json', 'console'],
        help='Log output format (default: logging.format from config)'
    )

    return parser.parse_args(argv)


class ScanInterrupter:
    """Turns Ctrl-C into a request to stop the current record scan."""

    def __init__(self):
        self.requested = False
        self._previous = None

    def __call__(self) -> bool:
        return self.requested

    def _handle(self, signum, frame) -> None:
        if self.requested:
            raise KeyboardInterrupt
        self.requested = True

    def __enter__(self) -> "ScanInterrupter":
        self._previous = signal.signal(signal.SIGINT, self._handle)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        signal.signal(signal.SIGINT, self._previous)


def display_records(
    stream: RecordStream,
    start: int,
    count: int,
    from_end: bool = False,
    number: bool = False,
    out: Optional[TextIO] = None,
) -> int:
    """
    Write count records starting at start to out (default: stdout).

    Returns:
        Exit code
    """
    out = out or sys.stdout
    whence = Whence.FROM_END if from_end else Whence.ABSOLUTE

    if not stream.seek_to_record(start, whence):
        logger.error("Record not found", record=start, from_end=from_end)
        print(f"recordfile: record {start} not found", file=sys.stderr)
        return EXIT_NOT_FOUND

    shown = 0
    while shown < count:
        record = stream.read_record()
        if record is None:
            break
        if number:
            out.write(f"{stream.tell_record()}\t{record}\n")
        else:
            out.write(f"{record}\n")
        shown += 1

    logger.debug("Displayed records", first=stream.tell_record() - shown + 1, shown=shown)

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = Config(args.config)

    configure_logging(
        log_level=args.log_level or config.get("logging.level", "WARNING"),
        log_format=args.log_format or config.get("logging.format", "console"),
        log_output="stderr",
    )

    stream_config = RecordStreamConfig.from_config(config)
    if args.encoding:
        stream_config.encoding = args.encoding

    count = args.count if args.count is not None else int(config.get("cli.count", 10))

    try:
        stream = RecordStream(args.path, config=stream_config)
    except OpenError as e:
        logger.error("Cannot open input", path=args.path, error=str(e))
        print(f"recordfile: {e}", file=sys.stderr)
        return EXIT_OPEN_FAILED

    with stream, ScanInterrupter() as interrupter:
        stream.set_interrupt_callback(interrupter)
        try:
            return display_records(
                stream,
                start=args.start,
                count=count,
                from_end=args.from_end,
                number=args.number,
            )
        except (RecordIOError, UsageError) as e:
            logger.error("Failed to read records", path=args.path, error=str(e))
            print(f"recordfile: {e}", file=sys.stderr)
            return EXIT_NOT_FOUND


if __name__ == '__main__':
    sys.exit(main())
