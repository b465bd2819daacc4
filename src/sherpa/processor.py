from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sherpa.concurrency import check_cancelled
from sherpa.exceptions import (
    MemoryLimitExceededError,
    OperationCancelledError,
    RepositoryNotFoundError,
    TooManyFilesError,
    TreeFetchError,
)
from sherpa.file_manipulation import format_bytes
from sherpa.filters import PatternMatcher, filter_entries
from sherpa.logging import get_logger
from sherpa.models import FileInfo, ProcessingResult
from sherpa.providers.base import DEFAULT_FILE_CONCURRENCY

if TYPE_CHECKING:
    import threading

    import structlog

    from sherpa.config import ProcessingConfig
    from sherpa.providers.base import Provider


class RepoProcessor:
    """Turn one repository into a ProcessingResult through a Provider.

    Metadata and tree failures abort the repository. File failures are
    collected in `errors`; oversized and binary files are dropped without
    being counted as errors.
    """

    def __init__(
        self,
        provider: Provider,
        config: ProcessingConfig,
        *,
        cancel: threading.Event | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.cancel = cancel
        self.logger = logger or get_logger(component="processor")
        self.max_file_size = config.max_file_size_bytes
        self.matcher = PatternMatcher(config.ignore, config.include_only)

    def process_repository(self, repo_id: str, branch: str = "") -> ProcessingResult:
        """Fetch, filter and classify every file of one repository.

        Args:
            repo_id (str): identifier understood by the provider.
            branch (str): branch to read; the backend default when empty.

        Raises:
            RepositoryNotFoundError: when metadata cannot be fetched.
            TreeFetchError: when the tree listing cannot be fetched.
            TooManyFilesError: when the filtered file count is above the limit.
            MemoryLimitExceededError: when the batch memory estimate is too high.
            OperationCancelledError: when the run is cancelled.

        Returns:
            ProcessingResult: surviving files, directory placeholders, totals and errors.
        """
        log = self.logger.bind(repository=repo_id, branch=branch)
        log.info("starting repository processing")
        processed_at = datetime.now(UTC)
        started = time.monotonic()

        check_cancelled(self.cancel)
        try:
            repository = self.provider.get_repository(repo_id)
        except OperationCancelledError:
            raise
        except RepositoryNotFoundError as e:
            log.error("failed to get repository info", error=str(e))
            raise
        except Exception as e:
            log.error("failed to get repository info", error=str(e))
            raise RepositoryNotFoundError(repository=repo_id, message=str(e)) from e

        check_cancelled(self.cancel)
        try:
            tree = self.provider.get_repository_tree(repo_id, branch)
        except OperationCancelledError:
            raise
        except TreeFetchError as e:
            log.error("failed to get repository tree", error=str(e))
            raise
        except Exception as e:
            log.error("failed to get repository tree", error=str(e))
            raise TreeFetchError(repository=repo_id, message=str(e)) from e

        kept = filter_entries(tree, self.matcher)
        log.debug("entries filtered", original=len(tree), kept=len(kept))

        file_entries = [e for e in kept if not e.is_dir]
        dir_entries = [e for e in kept if e.is_dir]
        max_concurrency = self.config.max_concurrency
        if max_concurrency <= 0:
            max_concurrency = DEFAULT_FILE_CONCURRENCY
        log.debug(
            "fetching files",
            file_count=len(file_entries),
            directory_count=len(dir_entries),
            max_concurrency=max_concurrency,
        )

        try:
            fetched = self.provider.get_multiple_files(
                repo_id,
                [e.path for e in file_entries],
                branch,
                max_concurrency,
                self.config.resource_limits(),
            )
        except (TooManyFilesError, MemoryLimitExceededError) as e:
            log.error("failed to fetch files", error=str(e))
            raise

        files: list[FileInfo] = []
        errors: list[Exception] = []
        total_size = 0
        for info in fetched:
            if self.max_file_size is not None and info.size > self.max_file_size:
                log.debug("skipping file because it is too large", file=info.path, size=info.size)
                continue
            if self.config.skip_binary and info.is_binary:
                log.debug("skipping binary file", file=info.path)
                continue
            if info.error is not None:
                log.debug("skipping file because it has an error", file=info.path, error=str(info.error))
                errors.append(info.error)
                continue
            files.append(info)
            total_size += info.size
        total_files = len(files)

        files.extend(FileInfo.directory(e.path, e.name) for e in dir_entries)

        duration = timedelta(seconds=time.monotonic() - started)
        result = ProcessingResult(
            repository=repository,
            files=files,
            total_files=total_files,
            total_size=total_size,
            processed_at=processed_at,
            duration=duration,
            errors=errors,
        )
        log.info(
            "repository processing completed",
            total_files=total_files,
            total_size=format_bytes(total_size),
            duration_ms=round(duration.total_seconds() * 1000),
            error_count=len(errors),
        )
        log.debug("processing stats", **get_processing_stats(result))
        return result


def get_processing_stats(result: ProcessingResult) -> dict[str, Any]:
    """Summarize a ProcessingResult as a flat dict, suitable for logging.

    Args:
        result (ProcessingResult): the processed repository.

    Returns:
        dict[str, Any]: totals, human-readable sizes, error count and the
            number of text, binary and directory entries.
    """
    stats: dict[str, Any] = {
        "total_files": result.total_files,
        "total_size": result.total_size,
        "total_size_human": format_bytes(result.total_size),
        "processing_duration": str(result.duration),
        "errors_count": len(result.errors),
        "avg_file_size": 0,
    }
    if result.total_files > 0:
        avg = result.total_size // result.total_files
        stats["avg_file_size"] = avg
        stats["avg_file_size_human"] = format_bytes(avg)

    stats["text_files"] = sum(1 for f in result.files if f.is_text)
    stats["binary_files"] = sum(1 for f in result.files if f.is_binary)
    stats["directories"] = sum(1 for f in result.files if f.is_dir)
    return stats
