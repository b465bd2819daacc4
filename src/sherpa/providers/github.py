from __future__ import annotations

import base64
import threading
from typing import TYPE_CHECKING, Any

from github import (
    Auth,
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from sherpa.exceptions import (
    AuthenticationError,
    FileFetchError,
    FileNotFoundInRepositoryError,
    OperationCancelledError,
    ProviderError,
    RateLimitError,
    RepositoryNotFoundError,
    RepositoryParseError,
    TransientNetworkError,
    TreeFetchError,
)
from sherpa.logging import get_logger
from sherpa.models import EntryType, Platform, Repository, TreeEntry
from sherpa.providers.base import call_with_retry, decode_text, fetch_files, read_file_info

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import structlog
    from github.Repository import Repository as GithubRepository

    from sherpa.models import FileInfo, ResourceLimits

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30
HTTP_FORBIDDEN = 403
HTTP_SERVER_ERROR = 500


def translate_error(error: Exception) -> Exception:
    """Map a PyGithub or transport failure onto the retry classes where it applies."""
    if isinstance(error, RateLimitExceededException):
        return RateLimitError(message=str(error))
    if isinstance(error, GithubException):
        if error.status == HTTP_FORBIDDEN and "rate limit" in str(error).lower():
            return RateLimitError(message=str(error))
        if error.status is not None and error.status >= HTTP_SERVER_ERROR:
            return TransientNetworkError(message=str(error))
        return error
    if isinstance(error, OSError):
        return TransientNetworkError(message=str(error))
    return error


def split_repo_id(repo_id: str) -> tuple[str, str]:
    """Split ``owner/repo``; GitHub identifiers have exactly two segments."""
    parts = repo_id.split("/")
    if len(parts) != 2 or not all(parts):  # noqa: PLR2004
        raise RepositoryParseError(value=repo_id, message="invalid GitHub repository path format, expected 'owner/repo'")
    return parts[0], parts[1]


class GitHubProvider:
    """GitHub backend built on PyGithub.

    Every API call goes through `with_retry`, so rate-limit responses and server
    errors back off before surfacing. Repository handles are cached per
    identifier for the lifetime of the provider.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: Github | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        cancel: threading.Event | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not token and client is None:
            raise ProviderError(platform=Platform.GITHUB, message="GitHub token is required")
        self.base_url = base_url or DEFAULT_BASE_URL
        self.client = client or Github(
            auth=Auth.Token(token),
            base_url=self.base_url,
            timeout=timeout,
            retry=None,
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.cancel = cancel
        self.logger = logger or get_logger(component="github", base_url=self.base_url)
        self._repos: dict[str, GithubRepository] = {}
        self._lock = threading.Lock()

    def _call(self, fn: Callable[[], Any]) -> Any:  # noqa: ANN401
        return call_with_retry(
            fn,
            translate_error,
            max_retries=self.max_retries,
            base_delay=self.retry_delay,
            cancel=self.cancel,
            logger=self.logger,
        )

    def _repo(self, repo_id: str) -> GithubRepository:
        with self._lock:
            cached = self._repos.get(repo_id)
        if cached is not None:
            return cached
        owner, name = split_repo_id(repo_id)
        repo = self._call(lambda: self.client.get_repo(f"{owner}/{name}"))
        with self._lock:
            self._repos.setdefault(repo_id, repo)
        return repo

    def get_repository(self, repo_id: str) -> Repository:
        self.logger.debug("fetching repository", repository=repo_id)
        try:
            repo = self._repo(repo_id)
        except OperationCancelledError:
            raise
        except Exception as e:
            self.logger.error("failed to fetch repository", repository=repo_id, error=str(e))
            raise RepositoryNotFoundError(repository=repo_id, message=str(e)) from e
        owner, _ = split_repo_id(repo_id)
        return Repository(
            id=repo.id,
            name=repo.name,
            path=repo.name,
            path_with_namespace=repo.full_name,
            web_url=repo.html_url or "",
            description=repo.description or "",
            platform=Platform.GITHUB,
            owner=owner,
            default_branch=repo.default_branch or "",
        )

    def get_repository_tree(self, repo_id: str, branch: str = "") -> list[TreeEntry]:
        """List every blob and tree of `branch` in one recursive call.

        Args:
            repo_id (str): ``owner/repo``.
            branch (str): branch, tag or commit; the default branch when empty.

        Raises:
            TreeFetchError: when the listing cannot be obtained.

        Returns:
            list[TreeEntry]: entries in the order GitHub returns them.
        """
        try:
            repo = self._repo(repo_id)
            ref = branch or repo.default_branch or "main"
            tree = self._call(lambda: repo.get_git_tree(ref, recursive=True))
        except OperationCancelledError:
            raise
        except Exception as e:
            self.logger.error("failed to fetch repository tree", repository=repo_id, branch=branch, error=str(e))
            raise TreeFetchError(repository=repo_id, message=str(e)) from e

        entries = [
            TreeEntry(
                id=element.sha,
                name=element.path.rsplit("/", 1)[-1],
                type=EntryType(element.type),
                path=element.path,
                mode=element.mode or "",
            )
            for element in tree.tree
            if element.type in {EntryType.BLOB, EntryType.TREE}
        ]
        self.logger.debug("fetched repository tree", repository=repo_id, branch=ref, entries=len(entries))
        return entries

    def _read_bytes(self, repo_id: str, path: str, branch: str) -> bytes:
        repo = self._repo(repo_id)
        kwargs = {"ref": branch} if branch else {}
        try:
            contents = self._call(lambda: repo.get_contents(path, **kwargs))
        except UnknownObjectException as e:
            raise FileNotFoundInRepositoryError(path=path) from e
        except GithubException as e:
            raise FileFetchError(path=path, message=str(e)) from e

        if isinstance(contents, list):
            raise FileFetchError(path=path, message="path is a directory")
        if contents.encoding == "base64":
            return contents.decoded_content
        # The contents API leaves large files unencoded; the blob API serves them.
        blob = self._call(lambda: repo.get_git_blob(contents.sha))
        return base64.b64decode(blob.content)

    def get_file_content(self, repo_id: str, path: str, branch: str = "") -> str:
        return decode_text(path, self._read_bytes(repo_id, path, branch))

    def get_file_info(self, repo_id: str, path: str, branch: str = "") -> FileInfo:
        return read_file_info(
            lambda: self._read_bytes(repo_id, path, branch),
            path,
            self.logger.bind(repository=repo_id),
        )

    def get_multiple_files(
        self,
        repo_id: str,
        paths: Sequence[str],
        branch: str,
        max_concurrency: int,
        limits: ResourceLimits,
    ) -> list[FileInfo]:
        return fetch_files(
            lambda p: self.get_file_info(repo_id, p, branch),
            paths,
            max_concurrency=max_concurrency,
            limits=limits,
            cancel=self.cancel,
            logger=self.logger.bind(repository=repo_id),
        )

    def test_connection(self) -> None:
        try:
            login = self._call(lambda: self.client.get_user().login)
        except OperationCancelledError:
            raise
        except BadCredentialsException as e:
            raise AuthenticationError(platform=Platform.GITHUB, message="bad credentials") from e
        except Exception as e:
            raise AuthenticationError(platform=Platform.GITHUB, message=str(e)) from e
        self.logger.debug("github connection ok", username=login)
