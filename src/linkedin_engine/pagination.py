"""Pagination engine for the remote list resources.

Connections and invitations are paged by offset. Conversations and messages
are paged backwards in time: every full page moves ``created_before`` to the
oldest timestamp seen, until the window passes ``created_after``.

The remote API never reports a reliable total, so page length is the only
completion signal. A full page always means "maybe more"; a stream whose
size is an exact multiple of the page size therefore ends with one extra,
empty cycle. Consumers rely on that pattern.

One call to :func:`run_fetch_cycle` performs at most one remote request and
returns the cursor to resume from. It keeps no state between calls and never
schedules its own continuation.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .config import PaginationConfig
from .interfaces import RemoteSource
from .logging_config import get_logger, log_error_with_details
from .models import (
    ALL,
    ApiParams,
    FetchCursor,
    FetchCycleResult,
    OffsetCursor,
    PageRequest,
    ResourceKind,
    TargetTotal,
    TimeWindowCursor,
)

logger = get_logger(__name__)


class PaginationStrategy(ABC):
    """How one resource kind computes page sizes, completion and cursors."""

    cursor_type: type = OffsetCursor

    def __init__(self, resource_kind: ResourceKind, max_batch: int):
        if max_batch < 1:
            raise ValueError(f"max_batch must be positive, got {max_batch}")
        self.resource_kind = resource_kind
        self.max_batch = max_batch

    def page_size(self, limit: int) -> int:
        """Clamp a requested limit to the resource maximum."""
        return max(1, min(limit, self.max_batch))

    def fetch_at_once(
        self, page_size: int, target_total: TargetTotal, already_fetched: int
    ) -> int:
        """Number of items to ask for in this cycle."""
        if target_total == ALL:
            return page_size
        return min(page_size, target_total - already_fetched)

    def check_cursor(self, cursor: FetchCursor) -> None:
        if not isinstance(cursor, self.cursor_type):
            raise TypeError(
                f"{self.resource_kind.value} expects {self.cursor_type.__name__}, "
                f"got {type(cursor).__name__}"
            )

    def should_halt(self, cursor: FetchCursor) -> bool:
        """Whether the cursor is already past the end of the stream."""
        return False

    def has_more(
        self,
        items: list[Any],
        fetch_at_once: int,
        page_size: int,
        accumulated: int,
        target_total: TargetTotal,
    ) -> bool:
        """Heuristic: only a full, unclamped page can be followed by more data."""
        if not items or len(items) < fetch_at_once:
            return False
        if fetch_at_once < page_size:
            return False
        if target_total != ALL and accumulated >= target_total:
            return False
        return True

    @abstractmethod
    def initial_cursor(self) -> FetchCursor:
        ...

    @abstractmethod
    def next_cursor(
        self, items: list[Any], cursor: FetchCursor, fetch_at_once: int
    ) -> Optional[FetchCursor]:
        """Cursor for the following cycle, or None when the stream cannot advance."""


class OffsetPagination(PaginationStrategy):
    """Offset based paging (connections, invitations)."""

    cursor_type = OffsetCursor

    def initial_cursor(self) -> OffsetCursor:
        return OffsetCursor(start=0)

    def next_cursor(
        self, items: list[Any], cursor: OffsetCursor, fetch_at_once: int
    ) -> OffsetCursor:
        return OffsetCursor(start=cursor.start + fetch_at_once)


class TimeWindowPagination(PaginationStrategy):
    """Backwards time-window paging (conversations, messages)."""

    cursor_type = TimeWindowCursor

    def __init__(
        self,
        resource_kind: ResourceKind,
        max_batch: int,
        timestamp_of: Callable[[Any], Optional[int]],
    ):
        super().__init__(resource_kind, max_batch)
        self.timestamp_of = timestamp_of

    def initial_cursor(self) -> TimeWindowCursor:
        return TimeWindowCursor()

    def should_halt(self, cursor: TimeWindowCursor) -> bool:
        return cursor.is_exhausted

    def next_cursor(
        self, items: list[Any], cursor: TimeWindowCursor, fetch_at_once: int
    ) -> Optional[TimeWindowCursor]:
        timestamps = [ts for ts in map(self.timestamp_of, items) if ts is not None]
        if not timestamps:
            return None
        oldest = min(timestamps)
        # created_before must strictly decrease between cycles
        if cursor.created_before is not None and oldest >= cursor.created_before:
            return None
        return TimeWindowCursor(created_before=oldest, created_after=cursor.created_after)


def _conversation_timestamp(item: Any) -> Optional[int]:
    return getattr(item, "last_activity_at", None)


def _message_timestamp(item: Any) -> Optional[int]:
    return getattr(item, "created_at", None)


def strategy_for(
    resource_kind: ResourceKind, config: Optional[PaginationConfig] = None
) -> PaginationStrategy:
    """Build the pagination strategy of a resource kind."""
    config = config or PaginationConfig()
    if resource_kind == ResourceKind.CONNECTIONS:
        return OffsetPagination(resource_kind, config.connection_batch)
    if resource_kind == ResourceKind.INVITATIONS:
        return OffsetPagination(resource_kind, config.invitation_batch)
    if resource_kind == ResourceKind.CONVERSATIONS:
        return TimeWindowPagination(
            resource_kind, config.message_batch, _conversation_timestamp
        )
    if resource_kind == ResourceKind.MESSAGES:
        return TimeWindowPagination(
            resource_kind, config.message_batch, _message_timestamp
        )
    raise ValueError(f"Unsupported resource kind: {resource_kind}")


async def run_fetch_cycle(
    source: RemoteSource,
    strategy: PaginationStrategy,
    request: PageRequest,
    params: ApiParams,
    already_fetched: int = 0,
) -> FetchCycleResult:
    """Fetch one page and decide whether the stream continues.

    Args:
        source: Remote source to fetch from
        strategy: Pagination strategy matching ``request.resource_kind``
        request: Cursor, limit and target for this cycle
        params: Credentials for the remote call
        already_fetched: Items the caller has accumulated so far against
            ``request.target_total``

    Returns:
        FetchCycleResult. Remote failures are returned as a completed result
        with no items and ``error`` set; they are never retried here.
    """
    kind = request.resource_kind.value
    cursor = request.cursor
    strategy.check_cursor(cursor)

    if strategy.should_halt(cursor):
        logger.info(
            "%s - %s - window exhausted (created_before=%s <= created_after=%s), fetch completed",
            params.log_context,
            kind,
            getattr(cursor, "created_before", None),
            getattr(cursor, "created_after", None),
        )
        return FetchCycleResult(items=[], fetch_completed=True)

    page_size = strategy.page_size(request.limit)
    fetch_at_once = strategy.fetch_at_once(
        page_size, request.target_total, already_fetched
    )
    if fetch_at_once <= 0:
        logger.info("%s - %s - target already reached", params.log_context, kind)
        return FetchCycleResult(items=[], fetch_completed=True)

    logger.debug(
        "%s - %s - fetching %d items from %s", params.log_context, kind, fetch_at_once, cursor
    )
    try:
        items = list(
            await source.fetch_page(
                request.resource_kind, params, cursor, fetch_at_once, request.scope
            )
        )
    except Exception as e:
        log_error_with_details(
            logger, e, context={"resource_kind": kind, "cursor": str(cursor)}
        )
        logger.error("%s - %s - Got error %s - Ending fetching", params.log_context, kind, e)
        return FetchCycleResult(
            items=[],
            fetch_completed=True,
            fetch_at_once=fetch_at_once,
            error=getattr(e, "message", None) or str(e),
        )

    accumulated = already_fetched + len(items)
    logger.info("%s - %s - fetched %d items", params.log_context, kind, len(items))

    if not strategy.has_more(
        items, fetch_at_once, page_size, accumulated, request.target_total
    ):
        logger.info("%s - %s - list fetch completed", params.log_context, kind)
        return FetchCycleResult(
            items=items, fetch_completed=True, fetch_at_once=fetch_at_once
        )

    next_cursor = strategy.next_cursor(items, cursor, fetch_at_once)
    if next_cursor is None:
        logger.warning(
            "%s - %s - cursor did not advance past %s, stopping", params.log_context, kind, cursor
        )
        return FetchCycleResult(
            items=items, fetch_completed=True, fetch_at_once=fetch_at_once
        )

    return FetchCycleResult(
        items=items,
        fetch_completed=False,
        next_cursor=next_cursor,
        fetch_at_once=fetch_at_once,
    )
