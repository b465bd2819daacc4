"""Repository backends and the factory that selects one per platform."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sherpa.exceptions import ProviderError
from sherpa.models import Platform
from sherpa.providers.base import Provider, check_resource_limits, fetch_files
from sherpa.providers.github import GitHubProvider
from sherpa.providers.gitlab import GitLabProvider
from sherpa.providers.local import LocalProvider
from sherpa.providers.retry import with_retry

if TYPE_CHECKING:
    import threading
    from pathlib import Path

    import structlog

    from sherpa.config import SherpaConfig

__all__ = [
    "GitHubProvider",
    "GitLabProvider",
    "LocalProvider",
    "Provider",
    "check_resource_limits",
    "create_provider",
    "fetch_files",
    "with_retry",
]


def create_provider(
    platform: Platform,
    config: SherpaConfig,
    token: str | None = None,
    base_path: str | Path | None = None,
    *,
    cancel: threading.Event | None = None,
    logger: structlog.BoundLogger | None = None,
) -> Provider:
    """Build the backend for `platform`.

    Args:
        platform (Platform): which backend to build.
        config (SherpaConfig): supplies the base URLs of remote backends.
        token (str | None): access token for remote backends.
        base_path (str | Path | None): folder served by the local backend.
        cancel (threading.Event | None): shared cancellation signal.
        logger (structlog.BoundLogger | None): logger handed to the backend.

    Raises:
        ProviderError: when the backend cannot be constructed.

    Returns:
        Provider: the backend.
    """
    if platform == Platform.GITHUB:
        return GitHubProvider(token or "", config.github.base_url, cancel=cancel, logger=logger)
    if platform == Platform.GITLAB:
        return GitLabProvider(token or "", config.gitlab.base_url, cancel=cancel, logger=logger)
    if platform == Platform.LOCAL:
        if base_path is None:
            raise ProviderError(platform=platform, message="local platform requires a folder path")
        return LocalProvider(base_path, cancel=cancel, logger=logger)
    raise ProviderError(platform=str(platform), message=f"unsupported platform: {platform}")
