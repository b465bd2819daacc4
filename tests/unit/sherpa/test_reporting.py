import io
from datetime import timedelta
from pathlib import Path

import pytest

from sherpa.dry_run import simulate
from sherpa.models import OutcomeStatus, Platform, PlatformReport, RepositoryInfo, RepositoryOutcome, RunReport
from sherpa.reporting import ConsoleReporter, format_duration

REPO = RepositoryInfo(platform=Platform.GITHUB, owner="acme", name="app", full_name="acme/app", branch="dev")


def _reporter(**kwargs: bool) -> tuple[ConsoleReporter, io.StringIO, io.StringIO]:
    out, err = io.StringIO(), io.StringIO()
    return ConsoleReporter(out=out, err=err, **kwargs), out, err


def _success(**kwargs: object) -> RepositoryOutcome:
    return RepositoryOutcome(
        repository=REPO,
        status=OutcomeStatus.SUCCEEDED,
        total_files=3,
        total_size=2048,
        duration=timedelta(milliseconds=1234),
        output_dir=Path("out/acme_app"),
        **kwargs,
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    ("duration", "expected"),
    [
        (timedelta(milliseconds=850), "850ms"),
        (timedelta(milliseconds=1234), "1.234s"),
        (timedelta(seconds=2), "2s"),
        (timedelta(0), "0ms"),
    ],
)
def test_format_duration(duration: timedelta, expected: str) -> None:
    assert format_duration(duration) == expected


@pytest.mark.unit
def test_report_success() -> None:
    reporter, out, err = _reporter()

    reporter(_success())

    assert out.getvalue() == (
        "✓ Successfully processed acme/app (github)\n"
        "  Files processed: 3\n"
        "  Total size: 2.0 KB\n"
        "  Duration: 1.234s\n"
        f"  Output: {Path('out/acme_app')}\n\n"
    )
    assert err.getvalue() == ""


@pytest.mark.unit
def test_report_success_quiet_and_verbose() -> None:
    quiet, out, _ = _reporter(quiet=True)
    quiet(_success())
    assert out.getvalue() == ""

    verbose, out, _ = _reporter(verbose=True)
    verbose(_success(file_errors=["file not found: a.go"]))
    assert out.getvalue().startswith("Encountered 1 errors during processing:\n  - file not found: a.go\n")


@pytest.mark.unit
def test_report_failures_go_to_stderr_even_when_quiet() -> None:
    reporter, out, err = _reporter(quiet=True)

    reporter(RepositoryOutcome(repository=REPO, status=OutcomeStatus.FAILED, error="boom"))
    reporter(RepositoryOutcome(repository=REPO, status=OutcomeStatus.SKIPPED, error="no token"))

    assert out.getvalue() == ""
    assert err.getvalue() == (
        "Failed to process repository acme/app: boom\n"
        "Skipped repository acme/app: no token\n"
    )


@pytest.mark.unit
def test_report_dry_run() -> None:
    reporter, out, _ = _reporter()

    reporter(simulate(REPO, Path("out/acme_app")))

    text = out.getvalue()
    assert text.startswith("[DRY RUN] Would process acme/app (github)\n  Branch: dev\n")
    assert "  Estimated files: 50\n  Estimated size: 2.5MB\n" in text
    assert f"    - {Path('out/acme_app/llms-full.txt')}\n" in text


@pytest.mark.unit
def test_summary() -> None:
    ok = RunReport(platforms=[PlatformReport(platform=Platform.GITHUB, outcomes=[_success()])])
    reporter, out, err = _reporter()
    reporter.summary(ok)
    assert out.getvalue() == "Processed 1 repositories\n"
    assert err.getvalue() == ""

    failed = RunReport(
        platforms=[
            PlatformReport(platform=Platform.GITHUB, outcomes=[_success()]),
            PlatformReport(
                platform=Platform.GITLAB,
                error="GitLab token not found",
                outcomes=[RepositoryOutcome(repository=REPO, status=OutcomeStatus.SKIPPED, error="x")],
            ),
        ],
    )
    reporter, out, err = _reporter(quiet=True)
    reporter.summary(failed)
    assert out.getvalue() == ""
    assert err.getvalue() == "Platform gitlab skipped: GitLab token not found\n1 of 2 repositories failed\n"
