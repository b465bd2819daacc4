from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

SNIFF_BYTES = 8192

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMGT]?B)$")
_SIZE_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}
_BYTE_UNITS = ("KB", "MB", "GB", "TB")
_UNSAFE_NAME_CHARS = str.maketrans(dict.fromkeys('/\\:*?<>|"', "_"))
_TEXT_BOMS = (b"\xef\xbb\xbf", b"\xfe\xff", b"\xff\xfe")
_ALLOWED_CONTROL = frozenset({9, 10, 13})
# Bytes treated as whitespace, mirroring unicode.IsSpace on Latin-1.
_SPACE_BYTES = frozenset({9, 10, 11, 12, 13, 32, 0x85, 0xA0})

EXT2LANG: dict[str, str] = {
    ".adoc": "asciidoc",
    ".bash": "bash",
    ".c": "c",
    ".cc": "cpp",
    ".cfg": "ini",
    ".clj": "clojure",
    ".cmake": "cmake",
    ".conf": "conf",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".cxx": "cpp",
    ".dart": "dart",
    ".dockerfile": "dockerfile",
    ".el": "elisp",
    ".erl": "erlang",
    ".ex": "elixir",
    ".exs": "elixir",
    ".fish": "fish",
    ".fs": "fsharp",
    ".go": "go",
    ".h": "c",
    ".hpp": "cpp",
    ".hs": "haskell",
    ".htm": "html",
    ".html": "html",
    ".ini": "ini",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".jsx": "jsx",
    ".kt": "kotlin",
    ".less": "less",
    ".lua": "lua",
    ".m": "matlab",
    ".makefile": "makefile",
    ".md": "markdown",
    ".mk": "makefile",
    ".ml": "ocaml",
    ".php": "php",
    ".pl": "perl",
    ".properties": "properties",
    ".ps1": "powershell",
    ".py": "python",
    ".r": "r",
    ".rb": "ruby",
    ".rs": "rust",
    ".rst": "rst",
    ".sass": "sass",
    ".scala": "scala",
    ".scss": "scss",
    ".sh": "bash",
    ".sql": "sql",
    ".swift": "swift",
    ".tex": "latex",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".vim": "vim",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".zsh": "zsh",
}


def format_bytes(size: int) -> str:
    """Format a byte count for humans, with 1024-based units.

    Args:
        size (int): number of bytes.

    Returns:
        str: ``"512 B"`` below 1 KiB, otherwise one decimal and a unit, e.g. ``"1.5 KB"``.
    """
    if size < 1024:  # noqa: PLR2004
        return f"{size} B"
    div, exp = 1024, 0
    n = size // 1024
    while n >= 1024 and exp < len(_BYTE_UNITS) - 1:  # noqa: PLR2004
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size / div:.1f} {_BYTE_UNITS[exp]}"


def parse_size(value: str) -> int:
    """Parse a human size string such as ``"1MB"`` or ``"1.5 kb"`` into bytes.

    Args:
        value (str): the size string; case-insensitive, units B, KB, MB, GB.

    Raises:
        ValueError: when the string is malformed or uses an unknown unit.

    Returns:
        int: the size in bytes, truncated to an integer.
    """
    normalized = value.strip().upper()
    match = _SIZE_RE.match(normalized)
    if match is None:
        msg = f"invalid size format: {normalized}"
        raise ValueError(msg)
    number, unit = match.groups()
    if unit not in _SIZE_MULTIPLIERS:
        msg = f"unknown size unit: {unit}"
        raise ValueError(msg)
    return int(float(number) * _SIZE_MULTIPLIERS[unit])


def sanitize_repo_name(name: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    return name.translate(_UNSAFE_NAME_CHARS)


def is_binary_content(data: bytes) -> bool:
    """Classify a byte sample as binary or text.

    Only the first `SNIFF_BYTES` bytes are inspected. A null byte means binary;
    a UTF-8 or UTF-16 byte order mark means text. Otherwise the sample is binary
    when more than 30% of it is non-printable or more than 5% is control bytes,
    tab, LF and CR excepted.

    Args:
        data (bytes): the content, or a prefix of it.

    Returns:
        bool: True when the sample looks binary.
    """
    sample = data[:SNIFF_BYTES]
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    if sample.startswith(_TEXT_BOMS):
        return False

    non_printable = 0
    control = 0
    for b in sample:
        if b in _ALLOWED_CONTROL:
            continue
        if b < 32 or 127 <= b < 160:  # noqa: PLR2004
            control += 1
        if not chr(b).isprintable() and b not in _SPACE_BYTES:
            non_printable += 1

    n = len(sample)
    return non_printable / n > 0.30 or control / n > 0.05  # noqa: PLR2004


def is_binary_file(path: Path) -> bool:
    """Classify a file on disk by sniffing its first bytes. Unreadable files count as binary."""
    try:
        with path.open("rb") as f:
            sample = f.read(SNIFF_BYTES)
    except OSError:
        return True
    return is_binary_content(sample)


def file_language(path: str) -> str:
    """Code fence language for a repository path, or "" when unknown.

    Args:
        path (str): slash-separated repository path.

    Returns:
        str: a language string such as "python" or "markdown".
    """
    p = PurePosixPath(path)
    name = p.name.lower()
    if name == "dockerfile":
        return "dockerfile"
    if name == "makefile":
        return "makefile"
    return EXT2LANG.get(p.suffix.lower(), "")


def write_text_file(path: Path, text: str) -> None:
    """Write `text` as UTF-8, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
