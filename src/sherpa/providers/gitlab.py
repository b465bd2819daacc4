from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import gitlab
from gitlab.exceptions import GitlabAuthenticationError, GitlabError, GitlabGetError

from sherpa.exceptions import (
    AuthenticationError,
    FileFetchError,
    FileNotFoundInRepositoryError,
    OperationCancelledError,
    ProviderError,
    RateLimitError,
    RepositoryNotFoundError,
    TransientNetworkError,
    TreeFetchError,
)
from sherpa.logging import get_logger
from sherpa.models import EntryType, Platform, Repository, TreeEntry
from sherpa.providers.base import call_with_retry, decode_text, fetch_files, read_file_info

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import structlog
    from gitlab.v4.objects import Project

    from sherpa.models import FileInfo, ResourceLimits

DEFAULT_BASE_URL = "https://gitlab.com"
DEFAULT_TIMEOUT = 30
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


def translate_error(error: Exception) -> Exception:
    """Map a python-gitlab or transport failure onto the retry classes where it applies."""
    if isinstance(error, GitlabError):
        code = error.response_code or 0
        if code == HTTP_TOO_MANY_REQUESTS:
            return RateLimitError(message=str(error))
        if code >= HTTP_SERVER_ERROR:
            return TransientNetworkError(message=str(error))
        return error
    if isinstance(error, OSError):
        return TransientNetworkError(message=str(error))
    return error


class GitLabProvider:
    """GitLab backend built on python-gitlab.

    Projects are addressed by their full namespaced path (``group/sub/project``)
    or numeric id. The default branch of each project is looked up once and
    reused for file reads that do not name a branch.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: gitlab.Gitlab | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        cancel: threading.Event | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not token and client is None:
            raise ProviderError(platform=Platform.GITLAB, message="GitLab token is required")
        self.base_url = base_url or DEFAULT_BASE_URL
        self.client = client or gitlab.Gitlab(self.base_url, private_token=token, timeout=timeout)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.cancel = cancel
        self.logger = logger or get_logger(component="gitlab", base_url=self.base_url)
        self._projects: dict[str, Project] = {}
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

    def _project(self, repo_id: str) -> Project:
        with self._lock:
            cached = self._projects.get(repo_id)
        if cached is not None:
            return cached
        project = self._call(lambda: self.client.projects.get(repo_id))
        with self._lock:
            self._projects.setdefault(repo_id, project)
        return project

    def get_repository(self, repo_id: str) -> Repository:
        self.logger.debug("fetching project", repository=repo_id)
        try:
            project = self._project(repo_id)
        except OperationCancelledError:
            raise
        except Exception as e:
            self.logger.error("failed to fetch project", repository=repo_id, error=str(e))
            raise RepositoryNotFoundError(repository=repo_id, message=str(e)) from e
        namespace = getattr(project, "namespace", None) or {}
        return Repository(
            id=project.id,
            name=project.name,
            path=project.path,
            path_with_namespace=project.path_with_namespace,
            web_url=project.web_url or "",
            description=project.description or "",
            platform=Platform.GITLAB,
            owner=namespace.get("full_path", "") if isinstance(namespace, dict) else "",
            default_branch=getattr(project, "default_branch", None) or "",
        )

    def get_repository_tree(self, repo_id: str, branch: str = "") -> list[TreeEntry]:
        """List the whole project tree, following pagination to the end.

        Raises:
            TreeFetchError: when the listing cannot be obtained.
        """
        options: dict[str, Any] = {"recursive": True, "get_all": True}
        if branch:
            options["ref"] = branch
        try:
            project = self._project(repo_id)
            items = self._call(lambda: project.repository_tree(**options))
        except OperationCancelledError:
            raise
        except Exception as e:
            self.logger.error("failed to fetch repository tree", repository=repo_id, branch=branch, error=str(e))
            raise TreeFetchError(repository=repo_id, message=str(e)) from e

        entries = [
            TreeEntry(
                id=item["id"],
                name=item["name"],
                type=EntryType(item["type"]),
                path=item["path"],
                mode=item.get("mode", ""),
            )
            for item in items
            if item.get("type") in {EntryType.BLOB, EntryType.TREE}
        ]
        self.logger.debug("fetched repository tree", repository=repo_id, branch=branch, entries=len(entries))
        return entries

    def _ref(self, project: Project, branch: str) -> str:
        return branch or getattr(project, "default_branch", None) or "main"

    def _read_bytes(self, repo_id: str, path: str, branch: str) -> bytes:
        project = self._project(repo_id)
        ref = self._ref(project, branch)
        try:
            handle = self._call(lambda: project.files.get(file_path=path, ref=ref))
        except GitlabGetError as e:
            if e.response_code == HTTP_NOT_FOUND:
                raise FileNotFoundInRepositoryError(path=path) from e
            raise FileFetchError(path=path, message=str(e)) from e
        except GitlabError as e:
            raise FileFetchError(path=path, message=str(e)) from e
        return handle.decode()

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
            self._call(self.client.auth)
        except OperationCancelledError:
            raise
        except GitlabAuthenticationError as e:
            raise AuthenticationError(platform=Platform.GITLAB, message="invalid token") from e
        except Exception as e:
            raise AuthenticationError(platform=Platform.GITLAB, message=str(e)) from e
        user = getattr(self.client, "user", None)
        self.logger.debug("gitlab connection ok", username=getattr(user, "username", ""))
