"""Turn user-supplied repository identifiers into RepositoryInfo records.

Accepted forms, optionally followed by ``#branch``:

* local folders (``/abs``, ``./rel``, ``../rel``, ``~/x``, ``C:\\x`` or any existing directory)
* HTTP(S) URLs of GitHub and GitLab, including self-hosted instances
* SSH remotes (``git@host:owner/repo.git``)
* ``owner/repo`` shorthand and bare project names
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from urllib.parse import urlsplit

from sherpa.exceptions import RepositoryParseError
from sherpa.models import Platform, RepositoryInfo

GITHUB_HOSTS = frozenset({"github.com", "www.github.com"})
GITLAB_HOSTS = frozenset({"gitlab.com", "www.gitlab.com"})

_SSH_RE = re.compile(r"^git@([^:]+):(.+)\.git$")
_DRIVE_RE = re.compile(r"^[A-Za-z]:.")
REMOTE_PLATFORMS = (Platform.GITHUB, Platform.GITLAB)


def _strip_git(value: str) -> str:
    return value.removesuffix(".git")


def is_local_path(value: str) -> bool:
    """Whether `value` looks like a folder on this machine rather than a remote identifier."""
    if value.startswith(("/", "./", "../", "~")) or _DRIVE_RE.match(value):
        return True
    return Path(value).is_dir()


def _parse_local(value: str, branch: str) -> RepositoryInfo:
    path = Path(value).expanduser()
    if not path.is_dir():
        raise RepositoryParseError(value=value, message="local path does not exist or is not a directory")
    absolute = os.path.abspath(path)  # noqa: PTH100
    return RepositoryInfo(
        platform=Platform.LOCAL,
        owner="local",
        name=os.path.basename(absolute),  # noqa: PTH119
        full_name=absolute,
        url=f"file://{absolute}",
        branch=branch,
    )


def _parse_github_url(parts: list[str], original: str, branch: str) -> RepositoryInfo:
    if len(parts) < 2:  # noqa: PLR2004
        raise RepositoryParseError(value=original, message="invalid GitHub URL format")
    owner, repo = parts[0], _strip_git(parts[1])
    return RepositoryInfo(
        platform=Platform.GITHUB,
        owner=owner,
        name=repo,
        full_name=f"{owner}/{repo}",
        url=original,
        branch=branch,
    )


def _parse_gitlab_url(parts: list[str], original: str, branch: str) -> RepositoryInfo:
    # "/-/" separates the project path from GitLab's own routes (tree, blob, ...).
    if "-" in parts:
        parts = parts[: parts.index("-")]
    if len(parts) < 2:  # noqa: PLR2004
        raise RepositoryParseError(value=original, message="invalid GitLab URL format")
    full_path = _strip_git("/".join(parts))
    return RepositoryInfo(
        platform=Platform.GITLAB,
        owner=parts[0],
        name=full_path.rsplit("/", 1)[-1],
        full_name=full_path,
        url=original,
        branch=branch,
    )


def _parse_http(value: str, branch: str) -> RepositoryInfo:
    url = urlsplit(value)
    host = (url.hostname or "").lower()
    parts = [p for p in url.path.strip("/").split("/") if p]
    if host in GITHUB_HOSTS:
        return _parse_github_url(parts, value, branch)
    if host in GITLAB_HOSTS:
        return _parse_gitlab_url(parts, value, branch)
    if "/tree/" in url.path or "/blob/" in url.path:
        return _parse_github_url(parts, value, branch)
    return _parse_gitlab_url(parts, value, branch)


def _parse_ssh(value: str, branch: str) -> RepositoryInfo:
    match = _SSH_RE.match(value)
    if match is None:
        raise RepositoryParseError(value=value, message="invalid SSH URL format")
    host, path = match.groups()
    platform = Platform.GITHUB if host == "github.com" else Platform.GITLAB
    segments = path.split("/")
    return RepositoryInfo(
        platform=platform,
        owner=segments[0],
        name=segments[-1],
        full_name=path,
        url=value,
        branch=branch,
    )


def parse_repository(value: str, default_platform: Platform | None = None) -> RepositoryInfo:
    """Parse one repository identifier.

    Args:
        value (str): what the user typed.
        default_platform (Platform | None): platform for ``owner/repo`` (GitHub
            when unset) and bare names (GitLab when unset).

    Raises:
        RepositoryParseError: when the identifier is malformed or a local
            folder does not exist.

    Returns:
        RepositoryInfo: the parsed identifier.
    """
    value = value.strip()
    branch = ""
    if "#" in value:
        pieces = value.split("#")
        if len(pieces) == 2:  # noqa: PLR2004
            value, branch = pieces

    if not value:
        raise RepositoryParseError(value=value, message="empty repository identifier")
    if is_local_path(value):
        return _parse_local(value, branch)
    if value.startswith(("http://", "https://")):
        return _parse_http(value, branch)
    if value.startswith("git@"):
        return _parse_ssh(value, branch)

    if "/" in value and " " not in value:
        segments = value.split("/")
        if len(segments) == 2:  # noqa: PLR2004
            return RepositoryInfo(
                platform=default_platform or Platform.GITHUB,
                owner=segments[0],
                name=segments[1],
                full_name=value,
                branch=branch,
            )

    return RepositoryInfo(
        platform=default_platform or Platform.GITLAB,
        name=value,
        full_name=value,
        branch=branch,
    )


def resolve_default_platform(value: str | None) -> Platform | None:
    """Validate the ``--default-platform`` option; only remote platforms are allowed."""
    if not value:
        return None
    try:
        platform = Platform(value.lower())
    except ValueError:
        platform = None
    if platform not in REMOTE_PLATFORMS:
        raise RepositoryParseError(value=value, message="default platform must be 'github' or 'gitlab'")
    return platform


def group_by_platform(
    values: list[str],
    default_platform: str | None = None,
) -> dict[Platform, list[RepositoryInfo]]:
    """Parse every identifier and group the results by platform.

    Platforms appear in the order they are first seen and repositories keep
    their input order within a platform.

    Raises:
        RepositoryParseError: on the first identifier that cannot be parsed, or
            when `default_platform` is not a remote platform.
    """
    platform = resolve_default_platform(default_platform)
    grouped: dict[Platform, list[RepositoryInfo]] = {}
    for value in values:
        info = parse_repository(value, platform)
        grouped.setdefault(info.platform, []).append(info)
    return grouped
