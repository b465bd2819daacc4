from __future__ import annotations

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_FILE = find_dotenv(usecwd=True)


class Settings(BaseModel):
    """Command-line options for sherpa."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repositories: list[str] = Field(default_factory=list, description="Repositories to process.")
    token: str = Field(default="", description="Personal access token.")
    base_url: str = Field(default="", description="Base URL for self-hosted instances.")
    output: str | None = Field(default=None, description="Output directory.")
    ignore: str = Field(default="", description="Comma-separated ignore patterns.")
    include_only: str = Field(default="", description="Comma-separated include patterns.")
    config_file: str = Field(default="", description="Configuration file path.")
    default_platform: str = Field(default="", description="Platform for owner/repo and bare names.")

    verbose: bool = Field(default=False, description="Verbose output.")
    quiet: bool = Field(default=False, description="Suppress progress output.")
    dry_run: bool = Field(default=False, description="Preview without API calls or files.")
    log_file: str = Field(default="", description="Log file path.")

    max_repos_concurrency: int = Field(
        default=5,
        description="Repositories processed concurrently.",
    )
    max_files_concurrency: int | None = Field(
        default=None,
        description="Files fetched concurrently per repository.",
    )
    max_memory_per_file: int | None = Field(
        default=None,
        description="Per-file memory estimate in bytes.",
    )
    max_total_memory: int | None = Field(
        default=None,
        description="Memory ceiling per repository in bytes.",
    )
    max_files: int | None = Field(default=None, description="Maximum files per repository.")
