from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from sherpa.exceptions import (
    AuthenticationError,
    BinaryFileError,
    FileFetchError,
    FileNotFoundInRepositoryError,
    InvalidPathError,
    ProviderError,
)
from sherpa.file_manipulation import is_binary_file
from sherpa.logging import get_logger
from sherpa.models import EntryType, FileInfo, Platform, Repository, TreeEntry
from sherpa.providers.base import fetch_files

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence

    import structlog

    from sherpa.models import ResourceLimits

DIR_MODE = "040000"
FILE_MODE = "100644"


class LocalProvider:
    """Serve a folder on disk as a repository.

    All paths are resolved against `base_path`; anything that would leave it is
    rejected before the filesystem is touched. `repo_id` and `branch` are accepted
    for interface compatibility and otherwise ignored.
    """

    def __init__(
        self,
        base_path: str | Path,
        *,
        cancel: threading.Event | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        path = Path(base_path).expanduser()
        if not path.exists():
            raise ProviderError(platform=Platform.LOCAL, message=f"invalid path {base_path}: does not exist")
        if not path.is_dir():
            raise ProviderError(platform=Platform.LOCAL, message=f"path {base_path} is not a directory")
        self.base_path = os.path.abspath(path)  # noqa: PTH100
        self.cancel = cancel
        self.logger = logger or get_logger(component="local", base_path=self.base_path)

    def get_repository(self, repo_id: str = "") -> Repository:  # noqa: ARG002
        name = os.path.basename(self.base_path)  # noqa: PTH119
        return Repository(
            id=name,
            name=name,
            path=self.base_path,
            path_with_namespace=self.base_path,
            web_url=f"file://{self.base_path}",
            description=f"Local folder: {self.base_path}",
            platform=Platform.LOCAL,
            owner="local",
        )

    def get_repository_tree(self, repo_id: str = "", branch: str = "") -> list[TreeEntry]:  # noqa: ARG002
        """Walk the folder and list every file and directory, skipping symlinks.

        Directories that cannot be read are skipped. Entries come out in sorted
        walk order with slash-separated paths relative to the folder.
        """
        entries: list[TreeEntry] = []
        for root, dirs, files in os.walk(self.base_path):
            dirs.sort()
            kept_dirs = []
            for name in dirs:
                full = os.path.join(root, name)  # noqa: PTH118
                if os.path.islink(full):  # noqa: PTH114
                    continue
                kept_dirs.append(name)
                entries.append(self._entry(full, name, EntryType.TREE))
            dirs[:] = kept_dirs
            for name in sorted(files):
                full = os.path.join(root, name)  # noqa: PTH118
                if os.path.islink(full):  # noqa: PTH114
                    continue
                entries.append(self._entry(full, name, EntryType.BLOB))
        self.logger.debug("local tree listed", entries=len(entries))
        return entries

    def _entry(self, full: str, name: str, kind: EntryType) -> TreeEntry:
        rel = Path(os.path.relpath(full, self.base_path)).as_posix()
        return TreeEntry(
            id=rel,
            name=name,
            type=kind,
            path=rel,
            mode=DIR_MODE if kind == EntryType.TREE else FILE_MODE,
        )

    def sanitize_path(self, path: str) -> str:
        """Resolve a repository path to an absolute path strictly inside the folder.

        Args:
            path (str): repository-relative path, as found in the tree listing.

        Raises:
            InvalidPathError: for absolute paths, parent traversal, or anything
                resolving outside the folder.

        Returns:
            str: the absolute filesystem path.
        """
        clean = os.path.normpath(path)
        if os.path.isabs(clean) or clean.startswith(".."):  # noqa: PTH117
            raise InvalidPathError(path=path)
        full = os.path.abspath(os.path.join(self.base_path, clean))  # noqa: PTH100, PTH118
        if not full.startswith(self.base_path + os.sep):
            raise InvalidPathError(path=path, message="path outside base directory")
        return full

    def get_file_content(self, repo_id: str, path: str, branch: str = "") -> str:  # noqa: ARG002
        full = Path(self.sanitize_path(path))
        if not full.exists():
            raise FileNotFoundInRepositoryError(path=path)
        if full.is_dir():
            raise InvalidPathError(path=path, message="path is a directory")
        if is_binary_file(full):
            raise BinaryFileError(path=path)
        return full.read_bytes().decode("utf-8", errors="replace")

    def get_file_info(self, repo_id: str, path: str, branch: str = "") -> FileInfo:  # noqa: ARG002
        """Describe one path; every per-file problem is recorded on the result."""
        try:
            full = Path(self.sanitize_path(path))
        except InvalidPathError as e:
            return FileInfo.failed(path, e)

        try:
            st = full.stat()
        except OSError:
            return FileInfo.failed(path, FileNotFoundInRepositoryError(path=path))

        if full.is_dir():
            return FileInfo.directory(path, full.name)
        if is_binary_file(full):
            return FileInfo(path=path, name=full.name, size=st.st_size, is_binary=True)

        try:
            content = full.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            return FileInfo(path=path, name=full.name, size=st.st_size, error=FileFetchError(path=path, message=str(e)))
        return FileInfo(path=path, name=full.name, size=st.st_size, content=content, is_text=True)

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
        )

    def test_connection(self) -> None:
        try:
            os.listdir(self.base_path)  # noqa: PTH208
        except OSError as e:
            raise AuthenticationError(
                platform=Platform.LOCAL,
                message=f"cannot access local folder: {e}",
            ) from e
