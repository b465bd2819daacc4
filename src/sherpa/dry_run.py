"""Synthetic previews for ``--dry-run``.

Nothing here touches the network or the filesystem: the figures are fixed
placeholders, reported together with the output location a real run would use.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sherpa.models import DryRunEstimate, OutcomeStatus, RepositoryOutcome
from sherpa.output_construction import LLMS_FULL_TXT, LLMS_TXT

if TYPE_CHECKING:
    from pathlib import Path

    from sherpa.models import RepositoryInfo

ESTIMATED_FILES = 50
ESTIMATED_SIZE = "2.5MB"


def estimate(repo: RepositoryInfo) -> DryRunEstimate:  # noqa: ARG001
    """Return the placeholder estimate for a repository."""
    return DryRunEstimate(estimated_files=ESTIMATED_FILES, estimated_size=ESTIMATED_SIZE)


def simulate(repo: RepositoryInfo, output_dir: Path) -> RepositoryOutcome:
    """Describe what processing `repo` would do without doing any of it."""
    return RepositoryOutcome(
        repository=repo,
        status=OutcomeStatus.DRY_RUN,
        output_dir=output_dir,
        output_files=[output_dir / LLMS_TXT, output_dir / LLMS_FULL_TXT],
        estimate=estimate(repo),
    )
