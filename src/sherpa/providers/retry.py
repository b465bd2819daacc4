from __future__ import annotations

import time
from typing import TYPE_CHECKING, TypeVar

from sherpa.concurrency import check_cancelled
from sherpa.exceptions import OperationCancelledError, RateLimitError, TransientNetworkError
from sherpa.logging import get_logger

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

    import structlog

T = TypeVar("T")

RETRYABLE_ERRORS = (RateLimitError, TransientNetworkError)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Seconds to wait before `attempt` (0-based); quadratic in the attempt number."""
    return base_delay * attempt * attempt


def with_retry(
    fn: Callable[[], T],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    cancel: threading.Event | None = None,
    logger: structlog.BoundLogger | None = None,
) -> T:
    """Call `fn`, retrying rate-limit and transient network failures.

    Other errors surface at once. Between attempts the call sleeps on `cancel`,
    so a cancelled run stops waiting immediately.

    Args:
        fn (Callable[[], T]): the operation.
        max_retries (int): retries after the first attempt.
        base_delay (float): seconds multiplied by the squared attempt number.
        cancel (threading.Event | None): shared cancellation signal.
        logger (structlog.BoundLogger | None): where retries are reported.

    Raises:
        OperationCancelledError: when `cancel` is set before or between attempts.

    Returns:
        T: whatever `fn` returns.
    """
    log = logger or get_logger(component="retry")
    attempt = 0
    while True:
        check_cancelled(cancel)
        try:
            return fn()
        except RETRYABLE_ERRORS as e:
            if attempt >= max_retries:
                log.warning("max retries exceeded", attempts=attempt + 1, error=str(e))
                raise
            attempt += 1
            delay = backoff_delay(attempt, base_delay)
            log.debug("retrying", attempt=attempt, delay=delay, error=str(e))
        if cancel is not None and cancel.wait(delay):
            raise OperationCancelledError
        if cancel is None and delay > 0:
            time.sleep(delay)
