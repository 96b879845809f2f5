"""
Fan-out helper for the pairwise stages.

Pairwise correlation and lead-lag analysis are independent per pair. With
more than one worker the pairs are spread across a thread pool; results are
merged only after every pair has completed and always come back in input
order, so the worker count never changes the output.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def map_pairs(fn: Callable[[T], R], items: Iterable[T], max_workers: int = 1) -> list[R]:
    """Apply ``fn`` to every item, optionally in parallel, preserving order."""
    items = list(items)
    if max_workers <= 1 or len(items) < 2:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="covnet-pair") as pool:
        return list(pool.map(fn, items))
