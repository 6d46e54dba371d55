#!/usr/bin/env python3
"""
Simple demo of record-number navigation.

This writes a small CSV file, then jumps around in it by record number
and shows how the offset index fills in as the file is visited.
"""

import tempfile
from pathlib import Path

from recordfile import IndexRecovery, RecordStream, Whence


def main():
    print("=" * 60)
    print("recordfile - Simple Navigation Demo")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "cities.csv"
        rows = ["id,city,population"] + [
            f"{i},city-{i},{1000 * i}" for i in range(1, 1001)
        ]
        path.write_text("\n".join(rows) + "\n", encoding="utf-8")

        print(f"\n[1] Wrote {len(rows)} records to {path.name}")

        with RecordStream(path) as stream:
            print("\n[2] Reading record 500...")
            print(f"  {stream.read_nth_record(500)}")
            print(f"  Records indexed so far: {stream.index.highest_known_record()}")

            print("\n[3] Reading record 250 (cached, single seek)...")
            print(f"  {stream.read_nth_record(250)}")
            print(f"  Record 250 starts at byte {stream.byte_offset_of_record(250)}")

            print("\n[4] Last 3 records...")
            stream.seek_to_record(3, Whence.FROM_END)
            for record in stream.records_in_range(stream.next_record_number, stream.next_record_number + 2):
                print(f"  {record}")
            print(f"  Records indexed so far: {stream.index.highest_known_record()}")

            print("\n[5] Which record holds byte 12345?")
            print(f"  Record {stream.record_number_at_offset(12345)}")

            length, record = stream.index.longest_record()
            print(f"\n[6] Longest record: #{record} ({length} bytes)")

            problems = IndexRecovery.check_index(stream.index)
            print(f"\n[7] Index check: {problems} problem(s)")

    print("\n" + "=" * 60)
    print("Demo complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
