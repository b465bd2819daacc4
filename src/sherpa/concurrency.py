from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from sherpa.exceptions import OperationCancelledError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

T = TypeVar("T")
R = TypeVar("R")

_POLL_SECONDS = 0.05


def check_cancelled(cancel: threading.Event | None) -> None:
    """Raise OperationCancelledError once `cancel` is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError


class PermitPool:
    """Counting semaphore whose acquisition observes a cancellation event.

    Use it as ``with pool.permit(): ...`` so the permit is released whether the
    body returns or raises. Exceptions raised by the body are left untouched,
    frozen SherpaError instances included.
    """

    def __init__(self, limit: int, cancel: threading.Event | None = None) -> None:
        if limit <= 0:
            msg = f"permit pool size must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)
        self._cancel = cancel

    def permit(self) -> PermitPool:
        return self

    def __enter__(self) -> None:
        while not self._semaphore.acquire(timeout=_POLL_SECONDS):
            check_cancelled(self._cancel)
        try:
            check_cancelled(self._cancel)
        except OperationCancelledError:
            self._semaphore.release()
            raise

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._semaphore.release()


def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], R],
    *,
    limit: int,
    cancel: threading.Event | None = None,
) -> list[R]:
    """Run `worker` over `items` with at most `limit` calls in flight.

    Results are returned in input order regardless of completion order. A worker
    exception propagates once every task has settled; sibling tasks are not
    cancelled by it. Tasks waiting for a permit when `cancel` is set raise
    OperationCancelledError. If the waiting thread is interrupted, `cancel` is
    set before re-raising so pending work stops.

    Args:
        items (Sequence[T]): the work items.
        worker (Callable[[T], R]): function applied to each item.
        limit (int): maximum concurrent calls; values below 1 are treated as 1.
        cancel (threading.Event | None): shared cancellation signal.

    Returns:
        list[R]: one result per item, positionally aligned with `items`.
    """
    if not items:
        return []
    limit = max(1, min(limit, len(items)))
    pool = PermitPool(limit, cancel)

    def guarded(item: T) -> R:
        with pool.permit():
            return worker(item)

    executor = ThreadPoolExecutor(max_workers=limit, thread_name_prefix="sherpa")
    try:
        futures = [executor.submit(guarded, item) for item in items]
        results = [f.result() for f in futures]
    except Exception:
        executor.shutdown(wait=True)
        raise
    except BaseException:
        if cancel is not None:
            cancel.set()
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return results
