from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sherpa.exceptions import ConfigValidationError
from sherpa.file_manipulation import parse_size
from sherpa.filters import parse_patterns
from sherpa.logging import get_logger
from sherpa.models import ResourceLimits

if TYPE_CHECKING:
    from sherpa.settings import Settings

GITHUB_BASE_URLS = frozenset({"https://api.github.com", "https://github.com"})

DEFAULT_IGNORE = [
    ".git/",
    "node_modules/",
    "vendor/",
    "*.log",
    "*.tmp",
    ".DS_Store",
]

DEFAULT_MAX_CONCURRENCY = 20
DEFAULT_MAX_FILES = 1000
DEFAULT_MAX_MEMORY_PER_FILE = 5 * 1024 * 1024
DEFAULT_MAX_TOTAL_MEMORY = 5 * 1024 * 1024 * 1024

logger = get_logger(component="config")


class GitLabConfig(BaseModel):
    """Connection settings for GitLab."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://gitlab.com"
    token_env: str = "GITLAB_TOKEN"


class GitHubConfig(BaseModel):
    """Connection settings for GitHub."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.github.com"
    token_env: str = "GITHUB_TOKEN"


class ProcessingConfig(BaseModel):
    """Filtering and resource settings applied to every repository.

    Attributes:
        ignore: Patterns of paths to leave out.
        include_only: When non-empty, only paths matching one of these are kept.
        max_file_size: Human size string (``"1MB"``); larger files are dropped.
            Empty disables the check.
        skip_binary: Drop files classified as binary.
        max_concurrency: Maximum concurrent file fetches per repository.
        max_memory_per_file: Per-file memory estimate used by the batch ceiling.
        max_total_memory: Memory ceiling for one batch of file fetches.
        max_files: Maximum number of files fetched per repository.
    """

    model_config = ConfigDict(frozen=True)

    ignore: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE))
    include_only: list[str] = Field(default_factory=list)
    max_file_size: str = "1MB"
    skip_binary: bool = True
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_memory_per_file: int = DEFAULT_MAX_MEMORY_PER_FILE
    max_total_memory: int = DEFAULT_MAX_TOTAL_MEMORY
    max_files: int = DEFAULT_MAX_FILES

    @property
    def max_file_size_bytes(self) -> int | None:
        """Parsed `max_file_size`, or None when the check is disabled."""
        if not self.max_file_size:
            return None
        return parse_size(self.max_file_size)

    def resource_limits(self) -> ResourceLimits:
        return ResourceLimits(
            max_files=self.max_files,
            max_memory_per_file=self.max_memory_per_file,
            max_total_memory=self.max_total_memory,
        )


class OutputConfig(BaseModel):
    """Where generated documents are written."""

    model_config = ConfigDict(frozen=True)

    directory: Path = Path("./sherpa-output")
    organize_by_date: bool = False


class CacheConfig(BaseModel):
    """Cache settings. Accepted for compatibility; no cache is kept between runs."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    directory: Path = Path("./.sherpa-cache")
    ttl: timedelta = timedelta(0)


class SherpaConfig(BaseModel):
    """Full configuration, as loaded from YAML and overridden by CLI options."""

    model_config = ConfigDict(frozen=True)

    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file: str | Path | None = None) -> SherpaConfig:
    """Load the configuration, layering an optional YAML file over the defaults.

    Mappings merge key by key; lists and scalars from the file replace the
    default value. A path that does not exist yields the defaults.

    Args:
        config_file (str | Path | None): path to a YAML configuration file.

    Raises:
        ConfigValidationError: if the file cannot be read, is not valid YAML,
            or does not describe a valid configuration.

    Returns:
        SherpaConfig: the merged configuration.
    """
    if not config_file:
        return SherpaConfig()

    path = Path(config_file)
    if not path.exists():
        logger.debug("config file not found, using defaults", path=str(path))
        return SherpaConfig()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigValidationError(message=f"failed to read config file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigValidationError(message=f"failed to parse config file: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigValidationError(message="config file must contain a mapping")

    defaults = SherpaConfig().model_dump()
    try:
        config = SherpaConfig.model_validate(_deep_merge(defaults, raw))
    except ValidationError as e:
        raise ConfigValidationError(message=str(e)) from e

    logger.debug("config loaded", path=str(path))
    return config


def override_with_settings(config: SherpaConfig, settings: Settings) -> SherpaConfig:
    """Return a copy of `config` with the values given on the command line applied.

    A base URL is routed to GitHub when it is one of the public GitHub
    endpoints, otherwise to GitLab.

    Args:
        config (SherpaConfig): the loaded configuration.
        settings (Settings): validated command-line options.

    Returns:
        SherpaConfig: the configuration with overrides applied.
    """
    gitlab = config.gitlab
    github = config.github
    if settings.base_url:
        if settings.base_url in GITHUB_BASE_URLS:
            github = github.model_copy(update={"base_url": settings.base_url})
        else:
            gitlab = gitlab.model_copy(update={"base_url": settings.base_url})

    output = config.output
    if settings.output:
        output = output.model_copy(update={"directory": Path(settings.output)})

    processing_updates: dict[str, Any] = {}
    if settings.ignore:
        processing_updates["ignore"] = parse_patterns(settings.ignore)
    if settings.include_only:
        processing_updates["include_only"] = parse_patterns(settings.include_only)
    for field in ("max_files_concurrency", "max_memory_per_file", "max_total_memory", "max_files"):
        value = getattr(settings, field)
        if value is not None:
            target = "max_concurrency" if field == "max_files_concurrency" else field
            processing_updates[target] = value
    processing = config.processing.model_copy(update=processing_updates)

    return config.model_copy(
        update={"gitlab": gitlab, "github": github, "output": output, "processing": processing},
    )


def validate_config(config: SherpaConfig) -> None:
    """Fail fast on limits that would make processing impossible.

    Raises:
        ConfigValidationError: on a non-positive limit or an unparseable size.
    """
    processing = config.processing
    for field in ("max_concurrency", "max_files", "max_memory_per_file", "max_total_memory"):
        if getattr(processing, field) <= 0:
            raise ConfigValidationError(message=f"{field} must be greater than 0")

    if processing.max_file_size:
        try:
            parse_size(processing.max_file_size)
        except ValueError as e:
            raise ConfigValidationError(message=f"invalid max_file_size: {e}") from e
