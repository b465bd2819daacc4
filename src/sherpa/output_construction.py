from __future__ import annotations

import io
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from sherpa.exceptions import OutputTooLargeError
from sherpa.file_manipulation import file_language, format_bytes
from sherpa.models import LLMsDocument
from sherpa.tree import build_project_tree, render_indented_tree, render_unix_tree

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sherpa.models import FileInfo, ProcessingResult

MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_TOTAL_SIZE = 100 * 1024 * 1024
WARNING_FILE_SIZE = 1024 * 1024

CONFIG_EXTENSIONS = (".json", ".yaml", ".yml", ".toml", ".env")
CODE_EXTENSIONS = (".go", ".py", ".js", ".ts", ".java", ".c", ".cpp", ".rs", ".rb")

LLMS_TXT = "llms.txt"
LLMS_FULL_TXT = "llms-full.txt"


def generate_output(result: ProcessingResult, generated_at: datetime | None = None) -> LLMsDocument:
    """Build the renderable document for a processed repository.

    Args:
        result (ProcessingResult): the processed repository.
        generated_at (datetime | None): timestamp to stamp; now (UTC) when omitted.

    Returns:
        LLMsDocument: tree and files ready for rendering.
    """
    return LLMsDocument(
        repository=result.repository,
        generated_at=generated_at or datetime.now(UTC),
        total_files=result.total_files,
        total_size=result.total_size,
        project_tree=build_project_tree(result.files),
        file_contents=list(result.files),
    )


def file_priority(info: FileInfo) -> int:
    """Rank a file for the content section; lower comes first.

    1 entry points (``main``/``index``), 2 configuration, 3 documentation,
    4 source code, 5 everything else, 6 tests and specs.
    """
    name = PurePosixPath(info.path).name.lower()
    path = info.path.lower()
    if "main" in name or "index" in name:
        return 1
    if name.endswith(CONFIG_EXTENSIONS):
        return 2
    if name.endswith(".md") or name.startswith("readme"):
        return 3
    if name.endswith(CODE_EXTENSIONS):
        return 4
    if "test" in path or "spec" in name:
        return 6
    return 5


def order_files(files: Iterable[FileInfo]) -> list[FileInfo]:
    return sorted(files, key=lambda f: (file_priority(f), f.path))


def is_renderable(info: FileInfo) -> bool:
    """Whether a file belongs in the content section at all."""
    return not info.is_dir and not info.is_binary and info.error is None


def check_total_size(files: Sequence[FileInfo]) -> None:
    """Guard the full document against an oversized payload.

    Only files that would be rendered in full count towards the total; files
    above the per-file cap get a placeholder instead and are left out.

    Raises:
        OutputTooLargeError: when the running total exceeds `MAX_TOTAL_SIZE`.
    """
    total = 0
    for info in files:
        if not is_renderable(info) or info.size > MAX_FILE_SIZE:
            continue
        total += info.size
        if total > MAX_TOTAL_SIZE:
            raise OutputTooLargeError(total_size=format_bytes(total), limit=format_bytes(MAX_TOTAL_SIZE))


def _write_header(out: io.StringIO, doc: LLMsDocument) -> None:
    repo = doc.repository
    out.write(f"# Repository: {repo.name}\n")
    out.write(f"# Generated: {doc.generated_at.replace(microsecond=0).isoformat()}\n")
    out.write(f"# Total Files: {doc.total_files}\n")
    out.write(f"# Total Size: {format_bytes(doc.total_size)}\n")
    out.write("\n")
    out.write("## Repository Information\n\n")
    out.write(f"**Name:** {repo.name}\n")
    out.write(f"**Path:** {repo.path_with_namespace}\n")
    out.write(f"**URL:** {repo.web_url}\n")
    if repo.description:
        out.write(f"**Description:** {repo.description}\n")
    out.write("\n")
    out.write("## Project Structure\n\n")


def build_llms_text(doc: LLMsDocument) -> str:
    """Render ``llms.txt``: header, repository information and a `tree`-style listing."""
    out = io.StringIO()
    _write_header(out, doc)
    out.write(render_unix_tree(doc.project_tree))
    out.write("\n")
    return out.getvalue()


def build_llms_full_text(doc: LLMsDocument) -> str:
    """Render ``llms-full.txt``: header, indented tree and the content of every text file.

    Files are ordered by `file_priority`, then path. Binary, errored and
    directory entries are left out of the content section. A file above
    `MAX_FILE_SIZE` is replaced by a placeholder; one above `WARNING_FILE_SIZE`
    gets an annotated heading. When the included files add up to more than
    `MAX_TOTAL_SIZE` the document is reduced to a single error block.

    Args:
        doc (LLMsDocument): the document to render.

    Returns:
        str: the rendered text.
    """
    try:
        check_total_size(doc.file_contents)
    except OutputTooLargeError as e:
        return f"## Error: {e}\n\n"

    out = io.StringIO()
    _write_header(out, doc)
    out.write(render_indented_tree(doc.project_tree))
    out.write("\n")
    out.write("## File Contents\n\n")

    for info in order_files(doc.file_contents):
        if not is_renderable(info):
            continue
        if info.size > MAX_FILE_SIZE:
            out.write(f"### {info.path}\n")
            out.write(
                f"```\n[File too large to include - {format_bytes(info.size)} "
                f"(max: {format_bytes(MAX_FILE_SIZE)})]\n```\n\n",
            )
            continue
        if info.size > WARNING_FILE_SIZE:
            out.write(f"### {info.path} (Large file: {format_bytes(info.size)})\n")
        else:
            out.write(f"### {info.path}\n")
        out.write(f"```{file_language(info.path)}\n")
        out.write(info.content)
        if not info.content.endswith("\n"):
            out.write("\n")
        out.write("```\n\n")

    return out.getvalue()
