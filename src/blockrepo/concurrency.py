from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextvars import copy_context
from typing import Any, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_indexed_tasks_fail_fast(
    tasks: list[tuple[int, Callable[[], Any]]],
    *,
    max_workers: int,
) -> list[tuple[int, Any]]:
    """Run tasks on a bounded pool and return ``(index, result)`` sorted by index.

    Each task runs in a copy of the caller's context. The first exception
    cancels every task that has not started and is re-raised.
    """
    if not tasks:
        return []
    if max_workers <= 1 or len(tasks) == 1:
        return sorted(((index, task()) for index, task in tasks), key=lambda r: r[0])

    with ThreadPoolExecutor(max_workers=min(max_workers, len(tasks))) as executor:
        futures = {
            executor.submit(copy_context().run, task): index for index, task in tasks
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in done:
            error = future.exception()
            if error is not None:
                for other in pending:
                    other.cancel()
                raise error
        results = {futures[future]: future.result() for future in futures}

    return sorted(results.items())


def map_bounded(
    func: Callable[[T], R], items: Iterable[T], *, max_workers: int
) -> list[R]:
    """Apply ``func`` to every item on a bounded pool, keeping input order."""
    tasks = [
        (index, (lambda item=item: func(item))) for index, item in enumerate(items)
    ]
    return [result for _, result in run_indexed_tasks_fail_fast(tasks, max_workers=max_workers)]
