"""
Bounded Concurrency Utilities

Runs independent coroutines in sequential groups of at most `concurrency`
calls, and follows continuation cursors for paginated batch endpoints.

Usage:
    from utils.pool import bounded_gather, chunked, fetch_all_pages

    responses = await bounded_gather(department_ids, fetch_department, 20)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 20

logger = logging.getLogger(__name__)

PageFetcher = Callable[[Sequence[T], Optional[str]], Awaitable[tuple[list[R], Optional[str]]]]


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Yield consecutive slices of `items` holding at most `size` elements.

    Raises:
        ValueError: If size is smaller than 1
    """
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")

    for start in range(0, len(items), size):
        yield list(items[start:start + size])


async def bounded_gather(
    items: Sequence[T],
    func: Callable[[T], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """
    Map `func` over `items` with at most `concurrency` calls in flight.

    Items are split into consecutive groups of `concurrency`. The calls of a
    group run concurrently and the next group starts only once every call of
    the current group has settled. Results are returned in input order.

    Args:
        items: Inputs to map over
        func: Coroutine function applied to each input
        concurrency: Maximum group size

    Returns:
        One result per input, output[i] belonging to items[i]

    Raises:
        ValueError: If concurrency is smaller than 1
        Exception: The first failure (in input order) of the failing group;
            no partial results are returned and later groups never start
    """
    results: list[R] = []
    groups = list(chunked(items, concurrency))

    for index, group in enumerate(groups, 1):
        outcomes = await asyncio.gather(
            *(func(item) for item in group),
            return_exceptions=True,
        )

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.debug(
                    "Concurrency group failed: group=%d/%d, size=%d",
                    index, len(groups), len(group),
                )
                raise outcome

        results.extend(outcomes)

    return results


async def fetch_all_pages(
    fetch_page: PageFetcher,
    keys: Sequence[T],
    cursor: Optional[str] = None,
) -> list[R]:
    """
    Fetch every page of a cursor-paginated batch call.

    The same `keys` are sent with each follow-up cursor until a response
    comes back without one. Pages are concatenated in arrival order.

    Args:
        fetch_page: Coroutine function taking (keys, cursor) and returning
            (items, next_cursor)
        keys: Batch of input keys; an empty batch issues no call at all
        cursor: Cursor to resume from

    Returns:
        Items from all pages
    """
    if not keys:
        return []

    items: list[R] = []
    pages = 0

    while True:
        page_items, cursor = await fetch_page(keys, cursor)
        items.extend(page_items)
        pages += 1
        if not cursor:
            break

    logger.debug("Fetched %d items over %d pages for %d keys", len(items), pages, len(keys))
    return items
