"""
Bounded-concurrency fan-out with corresponding results.

Each task fills one slot; results come back in submission order regardless of
completion order, and a failed task leaves an error in its slot instead of
aborting the others.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence

from scoring.utils import default_pool_size


class SlotResult:
    """Outcome of one fan-out task: either a value or the exception it raised."""

    __slots__ = ('value', 'error')

    def __init__(self, value: Any = None, error: Optional[BaseException] = None):
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self):
        return f"SlotResult(error={self.error!r})" if self.error else f"SlotResult({self.value!r})"


def run_corresponding(tasks: Sequence[Callable[[], Any]], pool_size: Optional[int] = None) -> List[SlotResult]:
    """Run zero-argument callables with at most ``pool_size`` in flight.

    Returns one SlotResult per task, positionally aligned with ``tasks``.
    """
    if not tasks:
        return []
    workers = min(pool_size or default_pool_size(), len(tasks))
    results: List[SlotResult] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(task) for task in tasks]
        for fut in futures:
            try:
                results.append(SlotResult(value=fut.result()))
            except Exception as ex:
                results.append(SlotResult(error=ex))
    return results
