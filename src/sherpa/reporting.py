from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, TextIO

from sherpa.file_manipulation import format_bytes
from sherpa.models import OutcomeStatus

if TYPE_CHECKING:
    from datetime import timedelta

    from sherpa.models import RepositoryOutcome, RunReport


def format_duration(duration: timedelta) -> str:
    """Render a duration rounded to the millisecond, e.g. ``1.234s`` or ``850ms``."""
    ms = round(duration.total_seconds() * 1000)
    if ms < 1000:  # noqa: PLR2004
        return f"{ms}ms"
    return f"{ms / 1000:.3f}".rstrip("0").rstrip(".") + "s"


class ConsoleReporter:
    """Print repository outcomes for humans.

    Outcomes arrive from worker threads, so every write happens under one lock
    and a block for one repository is never interleaved with another.
    """

    def __init__(
        self,
        *,
        verbose: bool = False,
        quiet: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self.quiet = quiet
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self._lock = threading.Lock()

    def __call__(self, outcome: RepositoryOutcome) -> None:
        self.report(outcome)

    def report(self, outcome: RepositoryOutcome) -> None:
        with self._lock:
            if outcome.status == OutcomeStatus.SUCCEEDED:
                self._success(outcome)
            elif outcome.status == OutcomeStatus.DRY_RUN:
                self._dry_run(outcome)
            elif outcome.status == OutcomeStatus.SKIPPED:
                self.err.write(f"Skipped repository {outcome.repository.full_name}: {outcome.error}\n")
            else:
                self.err.write(f"Failed to process repository {outcome.repository.full_name}: {outcome.error}\n")

    def _success(self, outcome: RepositoryOutcome) -> None:
        if self.verbose and outcome.file_errors:
            self.out.write(f"Encountered {len(outcome.file_errors)} errors during processing:\n")
            for error in outcome.file_errors:
                self.out.write(f"  - {error}\n")
        if self.quiet:
            return
        repo = outcome.repository
        self.out.write(f"✓ Successfully processed {repo.full_name} ({repo.platform})\n")
        self.out.write(f"  Files processed: {outcome.total_files}\n")
        self.out.write(f"  Total size: {format_bytes(outcome.total_size)}\n")
        self.out.write(f"  Duration: {format_duration(outcome.duration)}\n")
        self.out.write(f"  Output: {outcome.output_dir}\n\n")

    def _dry_run(self, outcome: RepositoryOutcome) -> None:
        if self.quiet:
            return
        repo = outcome.repository
        self.out.write(f"[DRY RUN] Would process {repo.full_name} ({repo.platform})\n")
        self.out.write(f"  Branch: {repo.branch or '(default)'}\n")
        if outcome.estimate is not None:
            self.out.write(f"  Estimated files: {outcome.estimate.estimated_files}\n")
            self.out.write(f"  Estimated size: {outcome.estimate.estimated_size}\n")
        self.out.write(f"  Would create output: {outcome.output_dir}\n")
        self.out.write("  Files that would be created:\n")
        for path in outcome.output_files:
            self.out.write(f"    - {path}\n")
        self.out.write("\n")

    def summary(self, report: RunReport) -> None:
        """Print the closing tally; failures go to stderr even in quiet mode."""
        outcomes = report.outcomes
        failed = report.failed
        with self._lock:
            for platform in report.platforms:
                if platform.error:
                    self.err.write(f"Platform {platform.platform} skipped: {platform.error}\n")
            if failed:
                self.err.write(f"{len(failed)} of {len(outcomes)} repositories failed\n")
            elif not self.quiet:
                self.out.write(f"Processed {len(report.succeeded)} repositories\n")
