from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sherpa.file_manipulation import format_bytes
from sherpa.models import TreeNode

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sherpa.models import FileInfo

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


@dataclass
class _Draft:
    name: str
    path: str
    is_dir: bool = False
    size: int = 0
    children: dict[str, _Draft] = field(default_factory=dict)

    def freeze(self) -> TreeNode:
        kids = sorted(self.children.values(), key=lambda d: (not d.is_dir, d.name))
        return TreeNode(
            name=self.name,
            path=self.path,
            size=self.size,
            is_dir=self.is_dir,
            children=[k.freeze() for k in kids],
        )


def build_project_tree(files: Iterable[FileInfo]) -> list[TreeNode]:
    """Fold a flat list of paths into a sorted tree.

    Intermediate directories are created on demand. When a path occurs more
    than once the last occurrence decides whether it is a file and its size.
    Within every level directories come first, then entries by name.

    Args:
        files (Iterable[FileInfo]): files and directory placeholders.

    Returns:
        list[TreeNode]: the children of the implicit root.
    """
    root = _Draft(name="", path="", is_dir=True)
    for info in files:
        if not info.path:
            continue
        parts = info.path.strip("/").split("/")
        current = root
        for i, part in enumerate(parts):
            is_last = i == len(parts) - 1
            node = current.children.get(part)
            if node is None:
                node = _Draft(name=part, path="/".join(parts[: i + 1]))
                current.children[part] = node
            if is_last:
                node.is_dir = info.is_dir
                node.size = 0 if info.is_dir else info.size
            else:
                node.is_dir = True
                node.size = 0
            current = node
    return root.freeze().children


def count_directories_and_files(nodes: Sequence[TreeNode]) -> tuple[int, int]:
    """Count directories and files below `nodes`, recursively."""
    dirs = files = 0
    for node in nodes:
        if node.is_dir:
            dirs += 1
            d, f = count_directories_and_files(node.children)
            dirs += d
            files += f
        else:
            files += 1
    return dirs, files


def _write_unix(out: io.StringIO, nodes: Sequence[TreeNode], prefix: str) -> None:
    for i, node in enumerate(nodes):
        last = i == len(nodes) - 1
        out.write(f"{prefix}{LAST_BRANCH if last else BRANCH}{node.name}\n")
        if node.is_dir and node.children:
            _write_unix(out, node.children, prefix + (SPACE if last else PIPE))


def render_unix_tree(nodes: Sequence[TreeNode]) -> str:
    """Render the tree the way the `tree` command does, footer included.

    Example:
        .
        ├── src
        │   └── main.py
        └── README.md

        1 directories, 2 files
    """
    out = io.StringIO()
    out.write(".\n")
    _write_unix(out, nodes, "")
    dirs, files = count_directories_and_files(nodes)
    out.write(f"\n{dirs} directories, {files} files\n")
    return out.getvalue()


def render_indented_tree(nodes: Sequence[TreeNode], indent: str = "") -> str:
    """Render one line per node, two spaces per level, with file sizes."""
    out = io.StringIO()
    for node in nodes:
        if node.is_dir:
            out.write(f"{indent}{node.name}/\n")
            out.write(render_indented_tree(node.children, indent + "  "))
        else:
            out.write(f"{indent}{node.name} ({format_bytes(node.size)})\n")
    return out.getvalue()
