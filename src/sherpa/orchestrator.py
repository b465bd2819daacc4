from __future__ import annotations

import os
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sherpa.concurrency import check_cancelled, run_bounded
from sherpa.dry_run import simulate
from sherpa.exceptions import (
    OutputDirectoryError,
    OutputWriteError,
    ProviderError,
    SherpaError,
    TokenNotFoundError,
)
from sherpa.file_manipulation import format_bytes, sanitize_repo_name, write_text_file
from sherpa.logging import get_logger
from sherpa.models import OutcomeStatus, Platform, PlatformReport, RepositoryOutcome, RunReport
from sherpa.output_construction import LLMS_FULL_TXT, LLMS_TXT, build_llms_full_text, build_llms_text, generate_output
from sherpa.processor import RepoProcessor
from sherpa.providers import create_provider

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    import structlog

    from sherpa.config import SherpaConfig
    from sherpa.models import RepositoryInfo
    from sherpa.providers import Provider
    from sherpa.settings import Settings

    ProviderFactory = Callable[..., Provider]
    OutcomeCallback = Callable[[RepositoryOutcome], None]

DEFAULT_REPO_CONCURRENCY = 5

PLATFORM_LABELS = {Platform.GITHUB: "GitHub", Platform.GITLAB: "GitLab", Platform.LOCAL: "Local"}


def resolve_token(
    platform: Platform,
    config: SherpaConfig,
    cli_token: str = "",
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Pick the access token for `platform`.

    The ``--token`` value wins for every remote platform; otherwise the
    environment variable named in the platform's configuration is used. Local
    folders need no token.

    Raises:
        TokenNotFoundError: when a remote platform has no token.
    """
    if platform == Platform.LOCAL:
        return None
    if cli_token:
        return cli_token
    env = os.environ if environ is None else environ
    env_var = config.github.token_env if platform == Platform.GITHUB else config.gitlab.token_env
    token = env.get(env_var, "")
    if not token:
        raise TokenNotFoundError(platform=PLATFORM_LABELS[platform], env_var=env_var)
    return token


class Orchestrator:
    """Run the platform, repository and file tiers for one invocation.

    Every failure is turned into an outcome record: a platform that cannot be
    reached skips its repositories, a repository that fails leaves its siblings
    alone. `run` therefore always returns a complete RunReport.
    """

    def __init__(
        self,
        config: SherpaConfig,
        settings: Settings,
        *,
        cancel: threading.Event | None = None,
        logger: structlog.BoundLogger | None = None,
        on_outcome: OutcomeCallback | None = None,
        provider_factory: ProviderFactory = create_provider,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.cancel = cancel or threading.Event()
        self.logger = logger or get_logger(component="orchestrator")
        self.on_outcome = on_outcome
        self.provider_factory = provider_factory
        self.environ = environ

    @property
    def repo_concurrency(self) -> int:
        limit = self.settings.max_repos_concurrency
        return limit if limit > 0 else DEFAULT_REPO_CONCURRENCY

    def output_dir_for(self, repo: RepositoryInfo, today: datetime | None = None) -> Path:
        """Directory that receives the documents of `repo`."""
        base = self.config.output.directory
        if self.config.output.organize_by_date:
            day = (today or datetime.now(UTC)).strftime("%Y-%m-%d")
            base = base / day
        return base / sanitize_repo_name(repo.full_name)

    def run(self, grouped: Mapping[Platform, list[RepositoryInfo]]) -> RunReport:
        """Process every repository, one concurrent task per platform.

        Args:
            grouped (Mapping[Platform, list[RepositoryInfo]]): repositories by platform.

        Returns:
            RunReport: per-platform outcomes, in the order of `grouped`.
        """
        items = list(grouped.items())
        self.logger.info(
            "starting run",
            platforms=[str(p) for p, _ in items],
            repositories=sum(len(r) for _, r in items),
            dry_run=self.settings.dry_run,
        )
        reports = run_bounded(items, self._run_platform, limit=len(items), cancel=self.cancel)
        return RunReport(platforms=reports)

    def _emit(self, outcome: RepositoryOutcome) -> RepositoryOutcome:
        if self.on_outcome is not None:
            self.on_outcome(outcome)
        return outcome

    def _skip_platform(self, platform: Platform, repos: list[RepositoryInfo], error: Exception) -> PlatformReport:
        self.logger.error("platform skipped", platform=str(platform), error=str(error))
        outcomes = [
            self._emit(RepositoryOutcome(repository=r, status=OutcomeStatus.SKIPPED, error=str(error)))
            for r in repos
        ]
        return PlatformReport(platform=platform, error=str(error), outcomes=outcomes)

    def _run_platform(self, item: tuple[Platform, list[RepositoryInfo]]) -> PlatformReport:
        platform, repos = item
        log = self.logger.bind(platform=str(platform))
        provider: Provider | None = None
        try:
            token = resolve_token(platform, self.config, self.settings.token, self.environ)
            if platform != Platform.LOCAL:
                provider = self._create_provider(platform, token)
                if not self.settings.dry_run:
                    provider.test_connection()
                    log.debug("connection test passed")
        except SherpaError as e:
            return self._skip_platform(platform, repos, e)

        outcomes = run_bounded(
            repos,
            lambda repo: self._run_repository(repo, provider),
            limit=self.repo_concurrency,
            cancel=self.cancel,
        )
        return PlatformReport(platform=platform, outcomes=outcomes)

    def _create_provider(self, platform: Platform, token: str | None, base_path: str | None = None) -> Provider:
        try:
            return self.provider_factory(
                platform,
                self.config,
                token,
                base_path,
                cancel=self.cancel,
                logger=self.logger.bind(platform=str(platform)),
            )
        except SherpaError:
            raise
        except Exception as e:
            raise ProviderError(platform=str(platform), message=str(e)) from e

    def _run_repository(self, repo: RepositoryInfo, provider: Provider | None) -> RepositoryOutcome:
        log = self.logger.bind(repository=repo.full_name, platform=str(repo.platform), branch=repo.branch)
        output_dir = self.output_dir_for(repo)
        if self.settings.dry_run:
            log.info("dry run, repository not processed", output_dir=str(output_dir))
            return self._emit(simulate(repo, output_dir))

        try:
            outcome = self._process(repo, provider, output_dir)
        except SherpaError as e:
            log.error("failed to process repository", error=str(e))
            outcome = RepositoryOutcome(repository=repo, status=OutcomeStatus.FAILED, error=str(e))
        except Exception as e:
            log.exception("unexpected failure while processing repository")
            outcome = RepositoryOutcome(repository=repo, status=OutcomeStatus.FAILED, error=str(e))
        return self._emit(outcome)

    def _process(self, repo: RepositoryInfo, provider: Provider | None, output_dir: Path) -> RepositoryOutcome:
        check_cancelled(self.cancel)
        if provider is None:
            provider = self._create_provider(Platform.LOCAL, None, repo.full_name)
            provider.test_connection()

        processor = RepoProcessor(
            provider,
            self.config.processing,
            cancel=self.cancel,
            logger=self.logger.bind(platform=str(repo.platform)),
        )
        result = processor.process_repository(repo.full_name, repo.branch)
        if result.errors:
            self.logger.warning(
                "encountered errors during processing",
                repository=repo.full_name,
                error_count=len(result.errors),
            )

        document = generate_output(result)
        written = self._write_outputs(
            output_dir,
            {
                LLMS_TXT: build_llms_text(document),
                LLMS_FULL_TXT: build_llms_full_text(document),
            },
        )
        self.logger.info(
            "successfully processed repository",
            repository=repo.full_name,
            platform=str(repo.platform),
            files_processed=result.total_files,
            total_size=format_bytes(result.total_size),
            output_dir=str(output_dir),
        )
        return RepositoryOutcome(
            repository=repo,
            status=OutcomeStatus.SUCCEEDED,
            total_files=result.total_files,
            total_size=result.total_size,
            duration=result.duration,
            output_dir=output_dir,
            output_files=written,
            file_errors=[str(e) for e in result.errors],
        )

    def _write_outputs(self, output_dir: Path, documents: dict[str, str]) -> list[Path]:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(directory=str(output_dir), message=str(e)) from e

        written: list[Path] = []
        for name, text in documents.items():
            path = output_dir / name
            try:
                write_text_file(path, text)
            except OSError as e:
                raise OutputWriteError(path=str(path), message=str(e)) from e
            self.logger.debug("wrote output file", file=str(path), size=len(text))
            written.append(path)
        return written
