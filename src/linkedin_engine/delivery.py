"""Split fetched pages into fixed-size delivery chunks."""

from typing import Any, Optional

from .models import DeliveryChunk, FetchCursor, FetchCycleResult

DEFAULT_CHUNK_SIZE = 25


def split_page(
    items: list[Any],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    terminal: bool = True,
    next_cursor: Optional[FetchCursor] = None,
    error: Optional[str] = None,
) -> list[DeliveryChunk]:
    """Split a page into ordered chunks annotated with completion state.

    Only the last chunk carries the outcome of the page: ``fetch_completed``
    for a terminal page, ``resume_cursor`` for a non-terminal one. An empty
    page still produces one chunk so the consumer always sees the end.

    Args:
        items: Page items in remote order
        chunk_size: Maximum items per chunk
        terminal: Whether the page ended the stream
        next_cursor: Cursor to resume from when the page is not terminal
        error: Failure message carried by the final chunk

    Returns:
        List of DeliveryChunk
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    total = len(items)
    if total == 0:
        return [
            DeliveryChunk(
                items=[],
                fetch_completed=terminal,
                resume_cursor=None if terminal else next_cursor,
                error=error,
            )
        ]

    chunks = []
    for start in range(0, total, chunk_size):
        is_last = start + chunk_size >= total
        if terminal:
            chunk = DeliveryChunk(
                items=items[start : start + chunk_size],
                fetch_completed=is_last,
                resume_cursor=None,
            )
        else:
            chunk = DeliveryChunk(
                items=items[start : start + chunk_size],
                fetch_completed=False,
                resume_cursor=next_cursor if is_last else None,
            )
        if is_last:
            chunk.error = error
        chunks.append(chunk)
    return chunks


def split_cycle(
    result: FetchCycleResult, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> list[DeliveryChunk]:
    """Split the page of a fetch cycle."""
    return split_page(
        result.items,
        chunk_size=chunk_size,
        terminal=result.fetch_completed,
        next_cursor=result.next_cursor,
        error=result.error,
    )
