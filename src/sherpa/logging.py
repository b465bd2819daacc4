from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_CONFIGURED: tuple[str, int] | None = None


def setup_logging(filename: str | Path | None = None, level: int = logging.INFO) -> structlog.BoundLogger:
    """Set up structured logging for sherpa.

    Calling it again with another file or level reconfigures the pipeline; calling
    it with the setup already in place is a no-op.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum stdlib log level to emit.

    Returns:
        A structlog logger instance configured for sherpa.
    """
    global _CONFIGURED  # noqa: PLW0603
    wanted = (str(filename or ""), level)
    if _CONFIGURED != wanted:
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format="%(message)s",
            force=True,
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _CONFIGURED = wanted

    return structlog.get_logger("sherpa")


def level_for(*, verbose: bool, quiet: bool) -> int:
    """Map the CLI verbosity flags to a log level. Quiet wins over verbose."""
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.INFO


def get_logger(**initial_values: Any) -> structlog.BoundLogger:  # noqa: ANN401
    """Return a sherpa logger bound to `initial_values`, for injection into components."""
    return structlog.get_logger("sherpa", **initial_values)


logger = setup_logging()
