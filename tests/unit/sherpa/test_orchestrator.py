from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from sherpa.config import OutputConfig, SherpaConfig
from sherpa.exceptions import AuthenticationError, RepositoryNotFoundError, TokenNotFoundError
from sherpa.file_manipulation import sanitize_repo_name
from sherpa.models import EntryType, FileInfo, OutcomeStatus, Platform, Repository, RepositoryInfo, TreeEntry
from sherpa.orchestrator import Orchestrator, resolve_token
from sherpa.settings import Settings
from sherpa.url_parser import group_by_platform

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sherpa.models import RepositoryOutcome, ResourceLimits

TOKENS = {"GITHUB_TOKEN": "gh-token", "GITLAB_TOKEN": "gl-token"}


class FakeRemote:
    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.failing = set(failing)
        self.connection_tests = 0

    def test_connection(self) -> None:
        self.connection_tests += 1

    def get_repository(self, repo_id: str) -> Repository:
        if repo_id in self.failing:
            raise RepositoryNotFoundError(repository=repo_id, message="404 Not Found")
        return Repository(id=1, name=repo_id.rsplit("/", 1)[-1], path_with_namespace=repo_id, platform=Platform.GITHUB)

    def get_repository_tree(self, repo_id: str, branch: str = "") -> list[TreeEntry]:  # noqa: ARG002
        return [TreeEntry(id="1", name="main.go", type=EntryType.BLOB, path="main.go")]

    def get_multiple_files(
        self,
        repo_id: str,  # noqa: ARG002
        paths: Sequence[str],
        branch: str,  # noqa: ARG002
        max_concurrency: int,  # noqa: ARG002
        limits: ResourceLimits,  # noqa: ARG002
    ) -> list[FileInfo]:
        return [FileInfo(path=p, name=p, size=13, content="package main\n", is_text=True) for p in paths]


def _config(tmp_path: Path, **output: Any) -> SherpaConfig:  # noqa: ANN401
    return SherpaConfig(output=OutputConfig(directory=tmp_path / "out", **output))


def _repo(full_name: str, platform: Platform = Platform.GITHUB) -> RepositoryInfo:
    owner, _, name = full_name.rpartition("/")
    return RepositoryInfo(platform=platform, owner=owner, name=name, full_name=full_name)


def _factory(provider: Any) -> MagicMock:  # noqa: ANN401
    return MagicMock(return_value=provider)


@pytest.mark.unit
def test_resolve_token() -> None:
    config = SherpaConfig()

    assert resolve_token(Platform.LOCAL, config, "ignored", {}) is None
    assert resolve_token(Platform.GITHUB, config, "cli", TOKENS) == "cli"
    assert resolve_token(Platform.GITHUB, config, "", TOKENS) == "gh-token"
    assert resolve_token(Platform.GITLAB, config, "", TOKENS) == "gl-token"
    with pytest.raises(TokenNotFoundError, match="GITLAB_TOKEN"):
        resolve_token(Platform.GITLAB, config, "", {})


@pytest.mark.unit
def test_output_dir_for(tmp_path: Path) -> None:
    repo = _repo("group/sub/project", Platform.GITLAB)

    plain = Orchestrator(_config(tmp_path), Settings())
    dated = Orchestrator(_config(tmp_path, organize_by_date=True), Settings())

    assert plain.output_dir_for(repo) == tmp_path / "out" / "group_sub_project"
    assert dated.output_dir_for(repo, datetime(2024, 1, 2, tzinfo=UTC)) == (
        tmp_path / "out" / "2024-01-02" / "group_sub_project"
    )


@pytest.mark.unit
def test_run_local_folder_writes_both_documents(tmp_path: Path) -> None:
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "src" / "main.py").write_text("print('hi')\n", encoding="utf-8")
    (project / "README.md").write_text("# Project\n", encoding="utf-8")
    seen: list[RepositoryOutcome] = []

    orchestrator = Orchestrator(_config(tmp_path), Settings(), on_outcome=seen.append, environ={})
    report = orchestrator.run(group_by_platform([str(project)]))

    [outcome] = report.outcomes
    assert seen == [outcome]
    assert outcome.status == OutcomeStatus.SUCCEEDED, outcome.error
    assert outcome.total_files == 2
    assert outcome.output_dir == tmp_path / "out" / sanitize_repo_name(str(project))
    assert [p.name for p in outcome.output_files] == ["llms.txt", "llms-full.txt"]
    full = (outcome.output_dir / "llms-full.txt").read_text(encoding="utf-8")
    assert "# Repository: project" in full
    assert "### src/main.py\n```python\nprint('hi')\n```" in full
    assert (outcome.output_dir / "llms.txt").read_text(encoding="utf-8").startswith("# Repository: project\n")


@pytest.mark.unit
def test_run_skips_platform_without_token(tmp_path: Path) -> None:
    factory = _factory(FakeRemote())
    orchestrator = Orchestrator(_config(tmp_path), Settings(), provider_factory=factory, environ={})

    report = orchestrator.run({Platform.GITHUB: [_repo("acme/a"), _repo("acme/b")]})

    [platform] = report.platforms
    assert "GITHUB_TOKEN" in platform.error
    assert [o.status for o in platform.outcomes] == [OutcomeStatus.SKIPPED, OutcomeStatus.SKIPPED]
    factory.assert_not_called()


@pytest.mark.unit
def test_run_skips_platform_when_connection_fails(tmp_path: Path) -> None:
    provider = MagicMock()
    provider.test_connection.side_effect = AuthenticationError(platform="github", message="bad credentials")
    orchestrator = Orchestrator(_config(tmp_path), Settings(), provider_factory=_factory(provider), environ=TOKENS)

    report = orchestrator.run({Platform.GITHUB: [_repo("acme/a")]})

    assert report.outcomes[0].status == OutcomeStatus.SKIPPED
    assert "bad credentials" in report.platforms[0].error
    provider.get_repository.assert_not_called()


@pytest.mark.unit
def test_run_isolates_repository_failures(tmp_path: Path) -> None:
    remote = FakeRemote(failing=["acme/bad"])
    factory = _factory(remote)
    settings = Settings(token="cli-token", max_repos_concurrency=2)
    orchestrator = Orchestrator(_config(tmp_path), settings, provider_factory=factory, environ={})

    report = orchestrator.run({Platform.GITHUB: [_repo("acme/good"), _repo("acme/bad"), _repo("acme/other")]})

    statuses = [(o.repository.full_name, o.status) for o in report.outcomes]
    assert statuses == [
        ("acme/good", OutcomeStatus.SUCCEEDED),
        ("acme/bad", OutcomeStatus.FAILED),
        ("acme/other", OutcomeStatus.SUCCEEDED),
    ]
    assert "404 Not Found" in report.outcomes[1].error
    assert len(report.failed) == 1
    assert remote.connection_tests == 1
    assert factory.call_args.args[2] == "cli-token"
    assert (tmp_path / "out" / "acme_good" / "llms-full.txt").exists()
    assert not (tmp_path / "out" / "acme_bad").exists()


@pytest.mark.unit
def test_run_processes_platforms_independently(tmp_path: Path) -> None:
    remote = FakeRemote()

    def factory(platform: Platform, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN401, ARG001
        return remote

    orchestrator = Orchestrator(_config(tmp_path), Settings(), provider_factory=factory, environ={"GITLAB_TOKEN": "x"})

    report = orchestrator.run(
        {
            Platform.GITHUB: [_repo("acme/a")],
            Platform.GITLAB: [_repo("group/b", Platform.GITLAB)],
        },
    )

    assert [p.platform for p in report.platforms] == [Platform.GITHUB, Platform.GITLAB]
    assert report.platforms[0].outcomes[0].status == OutcomeStatus.SKIPPED
    assert report.platforms[1].outcomes[0].status == OutcomeStatus.SUCCEEDED


@pytest.mark.unit
def test_run_dry_run_touches_nothing(tmp_path: Path) -> None:
    remote = FakeRemote()
    orchestrator = Orchestrator(
        _config(tmp_path),
        Settings(dry_run=True),
        provider_factory=_factory(remote),
        environ=TOKENS,
    )

    report = orchestrator.run({Platform.GITHUB: [_repo("acme/app")]})

    [outcome] = report.outcomes
    assert outcome.status == OutcomeStatus.DRY_RUN
    assert outcome.ok
    assert outcome.estimate is not None
    assert outcome.estimate.estimated_files == 50
    assert outcome.output_files == [
        tmp_path / "out" / "acme_app" / "llms.txt",
        tmp_path / "out" / "acme_app" / "llms-full.txt",
    ]
    assert remote.connection_tests == 0
    assert not (tmp_path / "out").exists()


@pytest.mark.unit
def test_run_reports_missing_local_folder(tmp_path: Path) -> None:
    gone = tmp_path / "gone"
    orchestrator = Orchestrator(_config(tmp_path), Settings(), environ={})

    report = orchestrator.run({Platform.LOCAL: [RepositoryInfo(platform=Platform.LOCAL, name="gone", full_name=str(gone))]})

    [outcome] = report.outcomes
    assert outcome.status == OutcomeStatus.FAILED
    assert "does not exist" in outcome.error
