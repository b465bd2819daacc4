from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Platform(StrEnum):
    """Hosting platform a repository lives on."""

    GITHUB = auto()
    GITLAB = auto()
    LOCAL = auto()


class EntryType(StrEnum):
    """Kind of entry in a repository tree listing, using git's object names."""

    BLOB = auto()
    TREE = auto()


class RepositoryInfo(BaseModel):
    """Repository identifier parsed from user input.

    Attributes:
        platform: Platform the repository is hosted on.
        owner: Owner, group or namespace (``"local"`` for folders).
        name: Repository or folder name.
        full_name: Identifier handed to the provider (``owner/repo``, a GitLab
            project path, or an absolute folder path).
        url: Original URL when one was given.
        branch: Target branch; empty means the default branch.
    """

    model_config = ConfigDict(frozen=True)

    platform: Platform
    owner: str = ""
    name: str
    full_name: str
    url: str = ""
    branch: str = ""


class Repository(BaseModel):
    """Repository metadata as reported by a provider."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    name: str
    path: str = ""
    path_with_namespace: str = ""
    web_url: str = ""
    description: str = ""
    platform: Platform
    owner: str = ""
    default_branch: str = ""


class TreeEntry(BaseModel):
    """One file or directory from a repository tree listing."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Content address or relative path")
    name: str
    type: EntryType
    path: str = Field(..., description="Slash-separated path relative to the repository root")
    mode: str = ""

    @property
    def is_dir(self) -> bool:
        return self.type == EntryType.TREE


class FileInfo(BaseModel):
    """Outcome of fetching one path: content and classification, or an error."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str
    name: str
    size: int = Field(default=0, ge=0)
    content: str = ""
    is_text: bool = False
    is_binary: bool = False
    is_dir: bool = False
    error: Exception | None = None

    @classmethod
    def failed(cls, path: str, error: Exception) -> FileInfo:
        """Build the FileInfo recorded for a path that could not be fetched."""
        return cls(path=path, name=Path(path).name, error=error)

    @classmethod
    def directory(cls, path: str, name: str = "") -> FileInfo:
        """Build the zero-size placeholder used to keep directories in the tree."""
        return cls(path=path, name=name or Path(path).name, is_dir=True)


class ResourceLimits(BaseModel):
    """Upper bounds enforced on a single multi-file fetch."""

    model_config = ConfigDict(frozen=True)

    max_files: int = Field(..., gt=0)
    max_memory_per_file: int = Field(..., gt=0)
    max_total_memory: int = Field(..., gt=0)


class ProcessingResult(BaseModel):
    """Everything one processing pass produced for a repository.

    Attributes:
        repository: Metadata of the processed repository.
        files: Surviving files followed by synthetic directory entries.
        total_files: Number of surviving files; directories are not counted.
        total_size: Sum of the sizes of surviving files, in bytes.
        processed_at: When processing started (UTC).
        duration: Wall-clock time spent processing.
        errors: One entry per file that failed to fetch.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    repository: Repository
    files: list[FileInfo] = Field(default_factory=list)
    total_files: int = 0
    total_size: int = 0
    processed_at: datetime
    duration: timedelta = timedelta(0)
    errors: list[Exception] = Field(default_factory=list)


class TreeNode(BaseModel):
    """Node of the rendered project tree."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    size: int = 0
    is_dir: bool = False
    children: list[TreeNode] = Field(default_factory=list)


class LLMsDocument(BaseModel):
    """Renderable document built from a ProcessingResult."""

    model_config = ConfigDict(frozen=True)

    repository: Repository
    generated_at: datetime
    total_files: int
    total_size: int
    project_tree: list[TreeNode]
    file_contents: list[FileInfo]


class OutcomeStatus(StrEnum):
    """Final state of one repository in a run."""

    SUCCEEDED = auto()
    FAILED = auto()
    SKIPPED = auto()
    DRY_RUN = auto()


class DryRunEstimate(BaseModel):
    """Synthetic figures reported for a repository in dry-run mode."""

    model_config = ConfigDict(frozen=True)

    estimated_files: int
    estimated_size: str


class RepositoryOutcome(BaseModel):
    """Structured report of what happened to one repository."""

    model_config = ConfigDict(frozen=True)

    repository: RepositoryInfo
    status: OutcomeStatus
    error: str = ""
    total_files: int = 0
    total_size: int = 0
    duration: timedelta = timedelta(0)
    output_dir: Path | None = None
    output_files: list[Path] = Field(default_factory=list)
    file_errors: list[str] = Field(default_factory=list)
    estimate: DryRunEstimate | None = None

    @computed_field
    @property
    def ok(self) -> bool:
        """Whether the repository completed without a fatal error."""
        return self.status in {OutcomeStatus.SUCCEEDED, OutcomeStatus.DRY_RUN}


class PlatformReport(BaseModel):
    """Outcomes for all repositories of one platform."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    error: str = ""
    outcomes: list[RepositoryOutcome] = Field(default_factory=list)


class RunReport(BaseModel):
    """Outcome of a whole run, grouped by platform in input order."""

    model_config = ConfigDict(frozen=True)

    platforms: list[PlatformReport] = Field(default_factory=list)

    @property
    def outcomes(self) -> list[RepositoryOutcome]:
        return [o for p in self.platforms for o in p.outcomes]

    @property
    def failed(self) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded(self) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if o.ok]
