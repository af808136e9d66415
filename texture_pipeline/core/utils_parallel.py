"""Row-partitioned execution helpers for the filtering stages."""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, Iterator, List, Optional, Tuple

from .errors import PipelineCancelled

LOGGER = logging.getLogger("texture_pipeline.parallel")

DEFAULT_CHUNK_ROWS = 64

RowRange = Tuple[int, int]


def create_thread_pool(max_workers: Optional[int] = None) -> concurrent.futures.ThreadPoolExecutor:
    """Create a thread pool executor with sane defaults."""

    return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="texture-rows")


def iter_row_ranges(rows: int, chunk_rows: int = DEFAULT_CHUNK_ROWS) -> Iterator[RowRange]:
    """Yield contiguous, disjoint ``(start, stop)`` ranges covering ``rows``."""

    step = max(1, int(chunk_rows))
    for start in range(0, rows, step):
        yield start, min(rows, start + step)


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelled("Texture generation cancelled")


def run_row_chunks(
    function: Callable[[int, int], None],
    rows: int,
    *,
    max_workers: Optional[int] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """Run ``function(start, stop)`` over every row range and wait for all of them.

    Each call must write only to its own rows of a preallocated output. The
    function returns once every chunk has finished, so callers can treat the
    return as a barrier between passes. The first worker exception is
    re-raised after the remaining futures are cancelled.
    """

    ranges: List[RowRange] = list(iter_row_ranges(rows, chunk_rows))
    if not ranges:
        return
    check_cancelled(cancel_event)

    if max_workers is None or max_workers <= 1 or len(ranges) == 1:
        for start, stop in ranges:
            check_cancelled(cancel_event)
            function(start, stop)
        return

    def _guarded(bounds: RowRange) -> None:
        check_cancelled(cancel_event)
        function(*bounds)

    LOGGER.debug("Dispatching %d row chunks to %d workers", len(ranges), max_workers)
    with create_thread_pool(max_workers=max_workers) as executor:
        futures = [executor.submit(_guarded, bounds) for bounds in ranges]
        try:
            for future in concurrent.futures.as_completed(futures):
                future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
