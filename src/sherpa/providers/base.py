"""Capability shared by all repository backends."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sherpa.concurrency import run_bounded
from sherpa.exceptions import (
    BinaryFileError,
    MemoryLimitExceededError,
    OperationCancelledError,
    SherpaError,
    TooManyFilesError,
)
from sherpa.file_manipulation import is_binary_content
from sherpa.models import FileInfo
from sherpa.providers.retry import with_retry

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Sequence

    import structlog

    from sherpa.models import Repository, ResourceLimits, TreeEntry

DEFAULT_FILE_CONCURRENCY = 20


@runtime_checkable
class Provider(Protocol):
    """Read-only access to one hosting backend.

    Implementations are selected by platform and hold their own client state.
    Uses structural subtyping - no inheritance required.
    """

    def get_repository(self, repo_id: str) -> Repository:
        """Return repository metadata, or raise RepositoryNotFoundError."""
        ...

    def get_repository_tree(self, repo_id: str, branch: str = "") -> list[TreeEntry]:
        """Return the full recursive listing for `branch` (default branch if empty)."""
        ...

    def get_file_content(self, repo_id: str, path: str, branch: str = "") -> str:
        """Return the text of one file.

        Raises FileNotFoundInRepositoryError, BinaryFileError or InvalidPathError.
        """
        ...

    def get_file_info(self, repo_id: str, path: str, branch: str = "") -> FileInfo:
        """Return content and classification of one path; per-file problems go in `error`."""
        ...

    def get_multiple_files(
        self,
        repo_id: str,
        paths: Sequence[str],
        branch: str,
        max_concurrency: int,
        limits: ResourceLimits,
    ) -> list[FileInfo]:
        """Fetch many paths concurrently; the result is aligned with `paths`."""
        ...

    def test_connection(self) -> None:
        """Check credentials and reachability, or raise AuthenticationError."""
        ...


def check_resource_limits(count: int, limits: ResourceLimits) -> None:
    """Reject a batch before any fetch when it exceeds the configured ceilings.

    Raises:
        TooManyFilesError: when `count` is above `limits.max_files`.
        MemoryLimitExceededError: when the per-file estimate times `count` is
            above `limits.max_total_memory`.
    """
    if count > limits.max_files:
        raise TooManyFilesError(requested=count, limit=limits.max_files)
    estimated = count * limits.max_memory_per_file
    if estimated > limits.max_total_memory:
        raise MemoryLimitExceededError(
            requested=count,
            estimated_bytes=estimated,
            limit_bytes=limits.max_total_memory,
        )


def fetch_files(
    fetch_one: Callable[[str], FileInfo],
    paths: Sequence[str],
    *,
    max_concurrency: int,
    limits: ResourceLimits,
    cancel: threading.Event | None = None,
    logger: structlog.BoundLogger | None = None,
) -> list[FileInfo]:
    """Fan `fetch_one` out over `paths` with bounded concurrency.

    Resource limits are checked first. An exception escaping `fetch_one` is
    recorded on that path's FileInfo; cancellation is not, and aborts the batch.

    Args:
        fetch_one (Callable[[str], FileInfo]): fetches a single path.
        paths (Sequence[str]): repository-relative paths.
        max_concurrency (int): concurrent fetches; non-positive means the default.
        limits (ResourceLimits): ceilings for the whole batch.
        cancel (threading.Event | None): shared cancellation signal.
        logger (structlog.BoundLogger | None): receives one debug line per batch.

    Returns:
        list[FileInfo]: one entry per path, in input order.
    """
    check_resource_limits(len(paths), limits)
    if max_concurrency <= 0:
        max_concurrency = DEFAULT_FILE_CONCURRENCY
    if logger is not None:
        logger.debug("fetching files", file_count=len(paths), max_concurrency=max_concurrency)

    def guarded(path: str) -> FileInfo:
        try:
            return fetch_one(path)
        except OperationCancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            return FileInfo.failed(path, e)

    return run_bounded(list(paths), guarded, limit=max_concurrency, cancel=cancel)


def call_with_retry(
    fn: Callable[[], Any],
    translate: Callable[[Exception], Exception],
    *,
    max_retries: int,
    base_delay: float,
    cancel: threading.Event | None,
    logger: structlog.BoundLogger,
) -> Any:  # noqa: ANN401
    """Run one client call under `with_retry`.

    Client exceptions go through `translate` first, so the ones it maps to
    RateLimitError or TransientNetworkError are retried. Untranslated client
    errors and SherpaError instances surface unchanged.
    """

    def attempt() -> Any:  # noqa: ANN401
        try:
            return fn()
        except SherpaError:
            raise
        except Exception as e:
            translated = translate(e)
            if translated is e:
                raise
            raise translated from e

    return with_retry(attempt, max_retries=max_retries, base_delay=base_delay, cancel=cancel, logger=logger)


def decode_text(path: str, data: bytes) -> str:
    """Decode file bytes as UTF-8, or raise BinaryFileError for binary content."""
    if is_binary_content(data):
        raise BinaryFileError(path=path)
    return data.decode("utf-8", errors="replace")


def file_info_from_bytes(path: str, data: bytes) -> FileInfo:
    name = posixpath.basename(path)
    if is_binary_content(data):
        return FileInfo(path=path, name=name, size=len(data), is_binary=True)
    return FileInfo(
        path=path,
        name=name,
        size=len(data),
        content=data.decode("utf-8", errors="replace"),
        is_text=True,
    )


def read_file_info(read: Callable[[], bytes], path: str, logger: structlog.BoundLogger) -> FileInfo:
    """Classify the bytes returned by `read`; a failed read is recorded, not raised.

    Cancellation still propagates so the surrounding batch stops.
    """
    try:
        data = read()
    except OperationCancelledError:
        raise
    except Exception as e:  # noqa: BLE001
        logger.debug("file fetch failed", path=path, error=str(e))
        return FileInfo.failed(path, e)
    return file_info_from_bytes(path, data)
