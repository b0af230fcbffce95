"""Worker pool, per-worker denormal handling and timing helpers."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import daz

logger = logging.getLogger(__name__)

WorkerFunc = Callable[[int, int], None]


@contextmanager
def timed(message: str) -> Iterator[None]:
    """Log *message* on entry and the elapsed wall time on exit."""
    start = time.perf_counter()
    logger.info("%s...", message)
    yield
    logger.info("%s: %.3fs", message, time.perf_counter() - start)


@contextmanager
def float_scope() -> Iterator[None]:
    """Flush-to-zero and denormals-are-zero for one worker's scan.

    The MXCSR flags are per thread, so each worker enters the scope itself
    at task start.  Flags that were off on entry are switched off again on
    exit.
    """
    had_ftz, had_daz = daz.get_ftz(), daz.get_daz()
    daz.set_ftz()
    daz.set_daz()
    try:
        yield
    finally:
        if not had_daz:
            daz.unset_daz()
        if not had_ftz:
            daz.unset_ftz()


def default_workers() -> int:
    return os.cpu_count() or 1


def run_workers(worker_func: WorkerFunc, num_workers: Optional[int] = None) -> None:
    """Call ``worker_func(i, n)`` for ``i`` in ``range(n)`` on a thread pool.

    Blocks until every worker has finished; the first worker exception (in
    worker order) is re-raised.
    """
    if num_workers is None:
        num_workers = default_workers()
    if num_workers < 1:
        raise ValueError(f"num_workers must be at least 1, got {num_workers}")

    with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="sdf-worker") as pool:
        futures = [pool.submit(worker_func, i, num_workers) for i in range(num_workers)]
        for future in futures:
            future.result()
