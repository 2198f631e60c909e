"""Property-based tests for the delivery splitter."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from linkedin_engine.delivery import DEFAULT_CHUNK_SIZE, split_cycle, split_page
from linkedin_engine.models import (
    DeliveryChunk,
    FetchCycleResult,
    OffsetCursor,
    TimeWindowCursor,
)

pages = st.lists(st.integers(), max_size=260)
chunk_sizes = st.integers(min_value=1, max_value=60)
cursors = st.one_of(
    st.builds(OffsetCursor, start=st.integers(min_value=0, max_value=10_000)),
    st.builds(
        TimeWindowCursor,
        created_before=st.integers(min_value=0, max_value=2**42),
        created_after=st.one_of(st.none(), st.integers(min_value=0, max_value=2**42)),
    ),
)


class TestSplitPreservesItems:
    @given(items=pages, chunk_size=chunk_sizes, terminal=st.booleans())
    def test_concatenation_reproduces_page(self, items, chunk_size, terminal):
        chunks = split_page(items, chunk_size, terminal=terminal, next_cursor=OffsetCursor(5))

        assert [item for chunk in chunks for item in chunk.items] == items

    @given(items=pages, chunk_size=chunk_sizes)
    def test_chunks_are_full_except_last(self, items, chunk_size):
        chunks = split_page(items, chunk_size)

        assert all(len(chunk.items) == chunk_size for chunk in chunks[:-1])
        assert 0 < len(chunks[-1].items) <= chunk_size or not items
        expected = max(1, -(-len(items) // chunk_size))
        assert len(chunks) == expected


class TestCompletionAnnotations:
    @given(items=pages, chunk_size=chunk_sizes)
    def test_terminal_page_completes_on_last_chunk_only(self, items, chunk_size):
        chunks = split_page(items, chunk_size, terminal=True)

        assert chunks[-1].fetch_completed is True
        assert all(not chunk.fetch_completed for chunk in chunks[:-1])
        assert all(chunk.resume_cursor is None for chunk in chunks)

    @given(items=pages.filter(bool), chunk_size=chunk_sizes, cursor=cursors)
    def test_non_terminal_page_carries_cursor_on_last_chunk_only(
        self, items, chunk_size, cursor
    ):
        chunks = split_page(items, chunk_size, terminal=False, next_cursor=cursor)

        assert chunks[-1].resume_cursor == cursor
        assert all(chunk.resume_cursor is None for chunk in chunks[:-1])
        assert all(not chunk.fetch_completed for chunk in chunks)

    @given(items=pages, chunk_size=chunk_sizes, terminal=st.booleans())
    def test_error_travels_on_last_chunk(self, items, chunk_size, terminal):
        chunks = split_page(items, chunk_size, terminal=terminal, error="boom")

        assert chunks[-1].error == "boom"
        assert all(chunk.error is None for chunk in chunks[:-1])


class TestEdgeCases:
    def test_empty_page_yields_single_terminal_chunk(self):
        chunks = split_page([])

        assert chunks == [DeliveryChunk(items=[], fetch_completed=True)]

    def test_hundred_items_give_four_chunks_of_default_size(self):
        cursor = OffsetCursor(start=100)
        chunks = split_page(list(range(100)), terminal=False, next_cursor=cursor)

        assert DEFAULT_CHUNK_SIZE == 25
        assert [len(chunk.items) for chunk in chunks] == [25, 25, 25, 25]
        assert [chunk.resume_cursor for chunk in chunks] == [None, None, None, cursor]

    def test_exact_multiple_has_no_trailing_empty_chunk(self):
        chunks = split_page(list(range(50)), chunk_size=25)

        assert len(chunks) == 2
        assert chunks[-1].fetch_completed

    @pytest.mark.parametrize("chunk_size", [0, -1])
    def test_invalid_chunk_size(self, chunk_size):
        with pytest.raises(ValueError):
            split_page([1, 2, 3], chunk_size=chunk_size)

    def test_completed_chunk_cannot_carry_cursor(self):
        with pytest.raises(ValueError):
            DeliveryChunk(items=[], fetch_completed=True, resume_cursor=OffsetCursor(1))


class TestSplitCycle:
    def test_non_terminal_cycle(self):
        cursor = TimeWindowCursor(created_before=1000)
        result = FetchCycleResult(
            items=list(range(30)), fetch_completed=False, next_cursor=cursor, fetch_at_once=30
        )

        chunks = split_cycle(result, chunk_size=20)

        assert [len(c.items) for c in chunks] == [20, 10]
        assert chunks[-1].resume_cursor == cursor
        assert not chunks[-1].fetch_completed

    def test_failed_cycle_yields_terminal_error_chunk(self):
        result = FetchCycleResult(items=[], fetch_completed=True, error="Network error")

        chunks = split_cycle(result)

        assert len(chunks) == 1
        assert chunks[0].fetch_completed
        assert chunks[0].items == []
        assert chunks[0].error == "Network error"
