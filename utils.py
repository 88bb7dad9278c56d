#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
General utilities for tubecache.

Includes the page-token paginator, the id batcher used for videos.list
lookups, and the performance timer wrapped around upstream calls.
"""

import time
from contextlib import contextmanager
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from config import config
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

T = TypeVar("T")

# A page fetcher receives the continuation token ("" for the first page) and
# returns the page's items plus the next token ("" when there are no more pages).
PageFetcher = Callable[[str], Awaitable[Tuple[List[T], str]]]


# --- Pagination ---

async def paginate(fetch_page: PageFetcher, max_pages: Optional[int] = None,
                   operation_name: str = "paginate") -> List[T]:
    """Follow continuation tokens and accumulate every page's items in order.

    Pages are requested one at a time; page N+1 is only requested once page N
    has been received. Iteration stops when a page returns an empty token or
    when `max_pages` pages have been fetched (`None` means no cap).

    Any exception raised by `fetch_page` propagates immediately and the items
    accumulated so far are discarded.

    Args:
        fetch_page: Coroutine function taking the current page token.
        max_pages: Maximum number of pages to fetch, or None for no cap.
        operation_name: Label used in log messages.

    Returns:
        list: Items from all fetched pages, in page order.
    """
    items: List[T] = []
    page_token = ""
    pages_fetched = 0

    while max_pages is None or pages_fetched < max_pages:
        page_items, next_token = await fetch_page(page_token)
        pages_fetched += 1
        items.extend(page_items)

        logger.debug(
            f"'{operation_name}' page {pages_fetched} returned {len(page_items)} item(s)",
            operation=operation_name, page=pages_fetched, total_items=len(items)
        )

        if not next_token:
            break
        page_token = next_token

    return items


# --- Batching ---

def batch_ids(ids: Sequence[str], batch_size: Optional[int] = None) -> List[str]:
    """Split ids into consecutive comma-joined chunks of at most `batch_size`.

    Order is preserved and no id is dropped or duplicated. An empty input
    yields no chunks; the last chunk may be shorter than `batch_size`.

    Args:
        ids: Video ids to look up.
        batch_size: Chunk size, defaults to config.BATCH_SIZE (50).

    Returns:
        list: One comma-separated string per chunk.
    """
    size = batch_size if batch_size is not None else config.BATCH_SIZE
    if size <= 0:
        raise ValueError("batch_size must be greater than 0")
    return [",".join(ids[i:i + size]) for i in range(0, len(ids), size)]


def calculate_num_pages(num_items: int, page_size: Optional[int] = None) -> int:
    """Number of pages of `page_size` items needed to cover `num_items` (ceiling)."""
    size = page_size if page_size is not None else config.PLAYLIST_PAGE_SIZE
    if num_items <= 0:
        return 0
    return -(-num_items // size)


# --- Performance Timer ---

@contextmanager
def performance_timer(operation_name: str, threshold_ms: float = 500.0):
    """Context manager for timing operations with threshold-based logging.

    Logs at WARNING when the block takes more than ten times `threshold_ms`,
    at INFO above `threshold_ms`, otherwise at DEBUG.

    Args:
        operation_name: A descriptive name for the operation being timed.
        threshold_ms: Threshold in milliseconds.
    """
    start_time = time.monotonic()
    try:
        yield
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        log_data = {
            "operation": operation_name,
            "duration_ms": round(duration_ms, 2),
            "threshold_ms": threshold_ms
        }

        if duration_ms > threshold_ms * 10:
            logger.warning(f"SLOW OPERATION: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        elif duration_ms > threshold_ms:
            logger.info(f"Performance watch: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        else:
            logger.debug(f"Performance: '{operation_name}' completed in {duration_ms:.2f}ms", **log_data)
