"""
sherpa: turn repositories into documents an LLM can read.

Overview
--------
For every repository given on the command line, sherpa fetches the file tree
and the contents of the files that pass the ignore / include filters, then
writes two Markdown documents into ``<output>/<sanitized-name>/``:

1) **llms.txt**: repository header and a Unix ``tree``-style listing.
2) **llms-full.txt**: the same header, an indented tree and every file in a
   fenced code block, configuration files first.

Repositories may live on GitHub, on GitLab (gitlab.com or self-hosted) or in a
local folder. Tokens come from ``--token`` or from ``GITHUB_TOKEN`` /
``GITLAB_TOKEN`` (a ``.env`` file is honored).

Usage
-----
    sherpa owner/repo
    sherpa https://gitlab.com/group/project#develop --output ./out
    sherpa ./my-project --ignore "*.lock,dist/" --dry-run
    sherpa group/project --default-platform gitlab --config sherpa.yaml
"""

from __future__ import annotations

import argparse
import sys
import threading
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from sherpa import __version__
from sherpa.config import load_config, override_with_settings, validate_config
from sherpa.exceptions import ConfigValidationError, RepositoryParseError
from sherpa.logging import level_for, setup_logging
from sherpa.orchestrator import Orchestrator
from sherpa.reporting import ConsoleReporter
from sherpa.settings import ENV_FILE, Settings
from sherpa.url_parser import group_by_platform

if TYPE_CHECKING:
    from collections.abc import Sequence

EXIT_INTERRUPTED = 130


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="sherpa",
        description="Generate llms.txt documents from GitHub, GitLab or local repositories.",
    )
    p.add_argument(
        "repositories",
        nargs="*",
        help="Repositories: URLs, SSH remotes, owner/repo, project names or local folders (suffix #branch).",
    )
    p.add_argument("--token", "-t", type=str, default="", help="Personal access token.")
    p.add_argument("--base-url", type=str, default="", help="Base URL for self-hosted instances.")
    p.add_argument("--output", "-o", type=str, default=None, help="Output directory.")
    p.add_argument("--ignore", type=str, default="", help="Comma-separated ignore patterns.")
    p.add_argument("--include-only", type=str, default="", help="Comma-separated include patterns.")
    p.add_argument("--config", "-c", dest="config_file", type=str, default="", help="Configuration file.")
    p.add_argument(
        "--default-platform",
        type=str,
        choices=["github", "gitlab"],
        default="",
        help="Platform for owner/repo shorthands and bare project names.",
    )
    p.add_argument("--log-file", type=str, default="", help="Log file path.")

    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Verbose output.")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only report failures.")

    p.add_argument(
        "--max-repos-concurrency",
        "-m",
        type=int,
        default=5,
        help="Repositories processed concurrently.",
    )
    p.add_argument(
        "--max-files-concurrency",
        type=int,
        default=None,
        help="Files fetched concurrently per repository.",
    )
    p.add_argument(
        "--max-memory-per-file",
        type=int,
        default=None,
        help="Per-file memory estimate in bytes.",
    )
    p.add_argument(
        "--max-total-memory",
        type=int,
        default=None,
        help="Memory ceiling per repository in bytes.",
    )
    p.add_argument("--max-files", type=int, default=None, help="Maximum files per repository.")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be processed without API calls or files.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args(argv)
    return Settings(**vars(args))


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if ENV_FILE:
        load_dotenv(ENV_FILE)
    logger = setup_logging(
        settings.log_file or None,
        level_for(verbose=settings.verbose, quiet=settings.quiet),
    )

    if not settings.repositories:
        print("error: at least one repository must be specified", file=sys.stderr)
        return 2

    try:
        config = override_with_settings(load_config(settings.config_file), settings)
        validate_config(config)
        grouped = group_by_platform(settings.repositories, settings.default_platform or None)
    except (ConfigValidationError, RepositoryParseError) as e:
        logger.error("invalid invocation", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1

    reporter = ConsoleReporter(verbose=settings.verbose, quiet=settings.quiet)
    cancel = threading.Event()
    orchestrator = Orchestrator(config, settings, cancel=cancel, logger=logger, on_outcome=reporter)
    try:
        report = orchestrator.run(grouped)
    except KeyboardInterrupt:
        cancel.set()
        print("interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    reporter.summary(report)
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
