"""Tests for the pagination engine and its per-resource strategies."""

import asyncio

import pytest
from hypothesis import given
from hypothesis import strategies as st

from linkedin_engine.config import PaginationConfig
from linkedin_engine.delivery import split_cycle
from linkedin_engine.errors import APIError, AuthError
from linkedin_engine.models import (
    ALL,
    OffsetCursor,
    PageRequest,
    ResourceKind,
    TimeWindowCursor,
)
from linkedin_engine.pagination import (
    OffsetPagination,
    TimeWindowPagination,
    run_fetch_cycle,
    strategy_for,
)
from mock_remote import (
    FakeRemoteSource,
    api_params,
    make_connections,
    make_conversations,
    make_messages,
)


def connections_request(start=0, limit=100, target=ALL) -> PageRequest:
    return PageRequest(
        resource_kind=ResourceKind.CONNECTIONS,
        cursor=OffsetCursor(start=start),
        limit=limit,
        target_total=target,
    )


def conversations_request(created_before=None, created_after=None) -> PageRequest:
    return PageRequest(
        resource_kind=ResourceKind.CONVERSATIONS,
        cursor=TimeWindowCursor(created_before=created_before, created_after=created_after),
        limit=20,
    )


class TestStrategies:
    def test_strategy_for_each_kind(self):
        assert isinstance(strategy_for(ResourceKind.CONNECTIONS), OffsetPagination)
        assert isinstance(strategy_for(ResourceKind.INVITATIONS), OffsetPagination)
        assert isinstance(strategy_for(ResourceKind.CONVERSATIONS), TimeWindowPagination)
        assert isinstance(strategy_for(ResourceKind.MESSAGES), TimeWindowPagination)

    def test_batch_caps_follow_config(self):
        config = PaginationConfig(connection_batch=40, message_batch=10)

        assert strategy_for(ResourceKind.CONNECTIONS, config).max_batch == 40
        assert strategy_for(ResourceKind.INVITATIONS, config).max_batch == 100
        assert strategy_for(ResourceKind.MESSAGES, config).max_batch == 10

    @given(limit=st.integers(min_value=-10, max_value=1000))
    def test_page_size_is_clamped(self, limit):
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        assert 1 <= strategy.page_size(limit) <= 100

    def test_max_batch_must_be_positive(self):
        with pytest.raises(ValueError):
            OffsetPagination(ResourceKind.CONNECTIONS, 0)

    def test_offset_next_cursor(self):
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        assert strategy.next_cursor([], OffsetCursor(200), 100) == OffsetCursor(300)

    def test_time_window_next_cursor_uses_oldest_timestamp(self):
        strategy = strategy_for(ResourceKind.MESSAGES)
        items = make_messages([900, 500, 700])

        cursor = strategy.next_cursor(items, TimeWindowCursor(created_after=100), 3)

        assert cursor == TimeWindowCursor(created_before=500, created_after=100)

    def test_time_window_without_timestamps_cannot_advance(self):
        strategy = strategy_for(ResourceKind.CONVERSATIONS)
        items = make_conversations([])

        assert strategy.next_cursor(items, TimeWindowCursor(), 20) is None


class TestOffsetCycles:
    @pytest.mark.asyncio
    async def test_full_page_is_not_terminal(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [make_connections(100)]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(source, strategy, connections_request(), api_params())

        assert not result.fetch_completed
        assert result.next_cursor == OffsetCursor(start=100)
        assert len(result.items) == 100
        assert source.fetch_calls[0].limit == 100

        chunks = split_cycle(result)
        assert [len(c.items) for c in chunks] == [25, 25, 25, 25]
        assert [c.resume_cursor for c in chunks] == [None, None, None, OffsetCursor(100)]
        assert not any(c.fetch_completed for c in chunks)

    @pytest.mark.asyncio
    async def test_empty_page_is_terminal(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [[]]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(
            source, strategy, connections_request(start=100), api_params()
        )

        assert result.fetch_completed
        assert result.next_cursor is None
        chunks = split_cycle(result)
        assert len(chunks) == 1
        assert chunks[0].items == []
        assert chunks[0].fetch_completed
        assert chunks[0].resume_cursor is None

    @pytest.mark.asyncio
    async def test_partial_page_is_terminal(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [make_connections(42)]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(source, strategy, connections_request(), api_params())

        assert result.fetch_completed
        assert len(result.items) == 42

    @pytest.mark.asyncio
    async def test_target_smaller_than_page_clamps_request_and_terminates(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [make_connections(30)]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(
            source, strategy, connections_request(target=30), api_params()
        )

        assert source.fetch_calls[0].limit == 30
        assert result.fetch_at_once == 30
        assert result.fetch_completed
        assert result.next_cursor is None

    @pytest.mark.asyncio
    async def test_reaching_target_with_full_page_terminates(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [make_connections(100)]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(
            source,
            strategy,
            connections_request(start=100, target=200),
            api_params(),
            already_fetched=100,
        )

        assert result.fetch_completed
        assert len(result.items) == 100

    @pytest.mark.asyncio
    async def test_target_already_reached_makes_no_call(self):
        source = FakeRemoteSource()
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(
            source, strategy, connections_request(target=50), api_params(), already_fetched=50
        )

        assert result.fetch_completed
        assert result.items == []
        assert source.fetch_calls == []

    @pytest.mark.asyncio
    async def test_limit_above_cap_is_clamped(self):
        source = FakeRemoteSource(pages={ResourceKind.CONNECTIONS: [make_connections(100)]})
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(
            source, strategy, connections_request(limit=500), api_params()
        )

        assert source.fetch_calls[0].limit == 100
        assert result.next_cursor == OffsetCursor(100)

    @pytest.mark.asyncio
    async def test_three_cycles_end_with_extra_empty_cycle(self):
        """A stream of exactly two full pages ends with one empty cycle."""
        source = FakeRemoteSource(
            pages={
                ResourceKind.CONNECTIONS: [
                    make_connections(100),
                    make_connections(100, offset=100),
                    [],
                ]
            }
        )
        strategy = strategy_for(ResourceKind.CONNECTIONS)
        cursor = OffsetCursor(0)
        collected = []

        for _ in range(3):
            request = connections_request(start=cursor.start)
            result = await run_fetch_cycle(
                source, strategy, request, api_params(), already_fetched=len(collected)
            )
            collected.extend(result.items)
            if result.fetch_completed:
                break
            cursor = result.next_cursor

        assert result.fetch_completed
        assert len(collected) == 200
        assert [call.cursor.start for call in source.fetch_calls] == [0, 100, 200]


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, message",
        [
            (APIError("HTTP error 500", status_code=500), "HTTP error 500"),
            (AuthError("LinkedIn session is no longer valid"), "LinkedIn session is no longer valid"),
            (RuntimeError("socket closed"), "socket closed"),
        ],
    )
    async def test_remote_failure_completes_with_no_items(self, error, message):
        source = FakeRemoteSource(fail_with=error)
        strategy = strategy_for(ResourceKind.CONNECTIONS)

        result = await run_fetch_cycle(source, strategy, connections_request(), api_params())

        assert result.fetch_completed
        assert result.failed
        assert result.items == []
        assert result.error == message
        assert len(source.fetch_calls) == 1

    @pytest.mark.asyncio
    async def test_cursor_type_must_match_resource(self):
        strategy = strategy_for(ResourceKind.CONNECTIONS)
        request = PageRequest(
            resource_kind=ResourceKind.CONNECTIONS, cursor=TimeWindowCursor(), limit=100
        )

        with pytest.raises(TypeError):
            await run_fetch_cycle(FakeRemoteSource(), strategy, request, api_params())


class TestTimeWindowCycles:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("created_before, created_after", [(1000, 1000), (999, 1000)])
    async def test_exhausted_window_makes_no_remote_call(self, created_before, created_after):
        source = FakeRemoteSource(
            pages={ResourceKind.CONVERSATIONS: [make_conversations(list(range(20)))]}
        )
        strategy = strategy_for(ResourceKind.CONVERSATIONS)

        result = await run_fetch_cycle(
            source,
            strategy,
            conversations_request(created_before, created_after),
            api_params(),
        )

        assert source.fetch_calls == []
        assert result.fetch_completed
        assert result.items == []

    @pytest.mark.asyncio
    async def test_full_page_moves_window_to_oldest_activity(self):
        timestamps = [5000 - 100 * i for i in range(20)]
        source = FakeRemoteSource(
            pages={ResourceKind.CONVERSATIONS: [make_conversations(timestamps)]}
        )
        strategy = strategy_for(ResourceKind.CONVERSATIONS)

        result = await run_fetch_cycle(
            source, strategy, conversations_request(created_after=10), api_params()
        )

        assert not result.fetch_completed
        assert result.next_cursor == TimeWindowCursor(created_before=3100, created_after=10)
        assert source.fetch_calls[0].limit == 20

    @pytest.mark.asyncio
    async def test_window_passing_lower_bound_halts_next_cycle(self):
        timestamps = [900 - 10 * i for i in range(20)]
        source = FakeRemoteSource(
            pages={ResourceKind.CONVERSATIONS: [make_conversations(timestamps)]}
        )
        strategy = strategy_for(ResourceKind.CONVERSATIONS)

        first = await run_fetch_cycle(
            source, strategy, conversations_request(created_after=850), api_params()
        )
        assert not first.fetch_completed
        assert first.next_cursor.is_exhausted

        second = await run_fetch_cycle(
            source,
            strategy,
            PageRequest(
                resource_kind=ResourceKind.CONVERSATIONS,
                cursor=first.next_cursor,
                limit=20,
            ),
            api_params(),
        )

        assert second.fetch_completed
        assert second.items == []
        assert len(source.fetch_calls) == 1

    @pytest.mark.asyncio
    async def test_non_advancing_window_is_terminal(self):
        source = FakeRemoteSource(
            pages={ResourceKind.MESSAGES: [make_messages([2000] * 20)]}
        )
        strategy = strategy_for(ResourceKind.MESSAGES)
        request = PageRequest(
            resource_kind=ResourceKind.MESSAGES,
            cursor=TimeWindowCursor(created_before=2000),
            limit=20,
            scope={"conversation_urn": "urn:li:fs_conversation:2-abc"},
        )

        result = await run_fetch_cycle(source, strategy, request, api_params())

        assert result.fetch_completed
        assert len(result.items) == 20
        assert source.fetch_calls[0].scope == {"conversation_urn": "urn:li:fs_conversation:2-abc"}

    @given(
        pages=st.lists(
            st.lists(st.integers(min_value=1, max_value=10**9), min_size=20, max_size=20),
            min_size=1,
            max_size=5,
        )
    )
    def test_created_before_strictly_decreases(self, pages):
        """Consecutive successful cycles move created_before backwards or stop."""
        source = FakeRemoteSource(
            pages={ResourceKind.MESSAGES: [make_messages(page) for page in pages]}
        )
        strategy = strategy_for(ResourceKind.MESSAGES)

        async def drive():
            cursor = TimeWindowCursor()
            seen = []
            for _ in range(len(pages)):
                result = await run_fetch_cycle(
                    source,
                    strategy,
                    PageRequest(resource_kind=ResourceKind.MESSAGES, cursor=cursor, limit=20),
                    api_params(),
                )
                if result.fetch_completed:
                    break
                seen.append(result.next_cursor.created_before)
                cursor = result.next_cursor
            return seen

        seen = asyncio.run(drive())

        assert all(later < earlier for earlier, later in zip(seen, seen[1:]))
