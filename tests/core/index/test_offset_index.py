"""Tests for offset index."""

import pytest

from recordfile.core.index.offset_index import UNKNOWN_OFFSET, IndexEntry, OffsetIndex


class TestIndexEntry:
    """Test IndexEntry structure."""

    def test_create_entry(self):
        """Test creating an index entry."""
        entry = IndexEntry(record=3, offset=42)

        assert entry.record == 3
        assert entry.offset == 42

    def test_entries_compare_by_value(self):
        """Test that equal entries compare equal."""
        assert IndexEntry(1, 2) == IndexEntry(1, 2)
        assert IndexEntry(1, 2) != IndexEntry(1, 3)

    def test_negative_record_raises_error(self):
        """Test that negative record raises error."""
        with pytest.raises(ValueError, match="Record number must be non-negative"):
            IndexEntry(record=-1, offset=0)

    def test_negative_offset_raises_error(self):
        """Test that negative offset raises error."""
        with pytest.raises(ValueError, match="Offset must be non-negative"):
            IndexEntry(record=0, offset=-1)


class TestOffsetIndex:
    """Test OffsetIndex class."""

    @pytest.fixture
    def dense_index(self):
        """Index for the records of 'a\\nbb\\nccc\\n'."""
        index = OffsetIndex()
        index.set(1, 2)
        index.set(2, 5)
        index.set(3, 9)
        return index

    def test_new_index_has_only_sentinel(self):
        """Test that a new index knows only the start of the stream."""
        index = OffsetIndex()

        assert index.has(0)
        assert index.offset_of(0) == 0
        assert not index.has(1)
        assert index.offset_of(1) == UNKNOWN_OFFSET
        assert index.highest_known_record() == 0
        assert index.entries_count() == 0

    def test_set_and_lookup(self, dense_index):
        """Test storing and reading back entries."""
        assert dense_index.has(2)
        assert dense_index.offset_of(2) == 5
        assert dense_index.highest_known_record() == 3
        assert dense_index.entries_count() == 3

    def test_set_rejects_sentinel(self):
        """Test that the sentinel cannot be overwritten."""
        index = OffsetIndex()

        with pytest.raises(ValueError, match="at least 1"):
            index.set(0, 10)

    def test_set_rejects_negative_offset(self):
        """Test that negative offsets are rejected."""
        index = OffsetIndex()

        with pytest.raises(ValueError, match="non-negative"):
            index.set(1, -5)

    def test_conflicting_offset_is_stored(self, dense_index):
        """Test that an out-of-order offset overwrites rather than raising."""
        dense_index.set(4, 3)

        assert dense_index.offset_of(4) == 3
        assert dense_index.highest_known_record() == 4

    def test_overwrite_existing_entry(self, dense_index):
        """Test overwriting an entry keeps lookups consistent."""
        dense_index.set(2, 6)

        assert dense_index.offset_of(2) == 6
        assert dense_index.nearest_known_at_or_before(2) == (2, 6)
        assert dense_index.entries_count() == 3

    def test_clear_resets_to_sentinel(self, dense_index):
        """Test that clear drops everything but the sentinel."""
        dense_index.clear()

        assert dense_index.highest_known_record() == 0
        assert not dense_index.has(1)
        assert dense_index.entries() == [IndexEntry(0, 0)]

    def test_nearest_known_exact(self, dense_index):
        """Test nearest lookup on a known record."""
        assert dense_index.nearest_known_at_or_before(2) == (2, 5)

    def test_nearest_known_beyond_frontier(self, dense_index):
        """Test nearest lookup past the frontier returns the frontier."""
        assert dense_index.nearest_known_at_or_before(100) == (3, 9)

    def test_nearest_known_in_gap(self):
        """Test nearest lookup inside a gap of a sparse index."""
        index = OffsetIndex()
        index.set(2, 10)
        index.set(7, 40)

        assert index.nearest_known_at_or_before(6) == (2, 10)
        assert index.nearest_known_at_or_before(1) == (0, 0)

    def test_nearest_known_negative(self, dense_index):
        """Test that negative record numbers fall back to the start."""
        assert dense_index.nearest_known_at_or_before(-3) == (0, 0)

    def test_sparse_insert_keeps_order(self):
        """Test inserting below the frontier keeps entries sorted."""
        index = OffsetIndex()
        index.set(5, 50)
        index.set(2, 20)

        assert [entry.record for entry in index.entries()] == [0, 2, 5]
        assert index.highest_known_record() == 5

    def test_nearest_by_offset(self, dense_index):
        """Test finding the boundary at or before a byte offset."""
        assert dense_index.nearest_known_at_or_before_offset(0) == (0, 0)
        assert dense_index.nearest_known_at_or_before_offset(6) == (2, 5)
        assert dense_index.nearest_known_at_or_before_offset(100) == (3, 9)

    def test_record_containing(self, dense_index):
        """Test mapping offsets to the records that hold them."""
        assert dense_index.record_containing(0) == 1
        assert dense_index.record_containing(1) == 1
        assert dense_index.record_containing(2) == 2
        assert dense_index.record_containing(8) == 3

    def test_record_containing_beyond_cache(self, dense_index):
        """Test that offsets past the frontier are unknown."""
        assert dense_index.record_containing(9) is None
        assert dense_index.record_containing(-1) is None

    def test_record_containing_needs_both_boundaries(self):
        """Test that a gap before the record makes the answer unknown."""
        index = OffsetIndex()
        index.set(3, 30)

        assert index.record_containing(10) is None

    def test_distance(self, dense_index):
        """Test byte distance between boundaries."""
        assert dense_index.distance(1) == 3
        assert dense_index.distance(0, 3) == 9
        assert dense_index.distance(3, 1) == -1
        assert dense_index.distance(3) == -1

    def test_longest_record(self, dense_index):
        """Test finding the longest cached record."""
        assert dense_index.longest_record() == (4, 3)

    def test_longest_record_empty(self):
        """Test longest record of an empty index."""
        assert OffsetIndex().longest_record() == (0, 0)

    def test_offsets_monotonic_after_sequential_sets(self):
        """Test that sequential discovery yields strictly increasing offsets."""
        index = OffsetIndex()
        offset = 0
        for record in range(1, 50):
            offset += record % 7 + 1
            index.set(record, offset)

        offsets = [entry.offset for entry in index.entries()]
        assert offsets == sorted(set(offsets))
