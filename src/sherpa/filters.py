from __future__ import annotations

import functools
import posixpath
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sherpa.models import TreeEntry


def parse_patterns(value: str) -> list[str]:
    """Split a comma-separated pattern list, dropping blanks.

    Args:
        value (str): raw CLI input such as ``"*.log, dist/"``.

    Returns:
        list[str]: the stripped, non-empty patterns.
    """
    return [p.strip() for p in value.split(",") if p.strip()]


def _class_char(pattern: str, i: int) -> tuple[str, int] | None:
    """Read one character of a bracket expression, honoring ``\\`` escapes."""
    if i >= len(pattern) or pattern[i] in "-]":
        return None
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            return None
    return pattern[i], i + 1


def _translate_class(pattern: str, i: int) -> tuple[str, int] | None:
    """Translate the bracket expression opening at ``pattern[i]``."""
    i += 1
    negate = i < len(pattern) and pattern[i] == "^"
    if negate:
        i += 1
    ranges: list[str] = []
    while True:
        if i < len(pattern) and pattern[i] == "]" and ranges:
            break
        lo = _class_char(pattern, i)
        if lo is None:
            return None
        low, i = lo
        item = re.escape(low)
        if i < len(pattern) and pattern[i] == "-":
            hi = _class_char(pattern, i + 1)
            if hi is None:
                return None
            high, i = hi
            item += "-" + re.escape(high)
        ranges.append(item)
    body = "".join(ranges)
    # A negated class never crosses a path separator.
    return (f"[^/{body}]" if negate else f"[{body}]"), i + 1


@functools.lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str] | None:
    """Compile a path-style glob, or return None when it is malformed.

    ``*`` matches any run of characters except ``/``, ``?`` one such character,
    ``[...]`` a character class (``[^...]`` negated, ``a-z`` ranges) and ``\\``
    escapes the next character.
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            translated = _translate_class(pattern, i)
            if translated is None:
                return None
            part, i = translated
            out.append(part)
        elif c == "\\":
            if i + 1 >= len(pattern):
                return None
            out.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            out.append(re.escape(c))
            i += 1
    try:
        return re.compile("".join(out), re.DOTALL)
    except re.error:
        return None


def glob_match(pattern: str, name: str) -> bool:
    """Whole-string glob match; a malformed pattern matches nothing."""
    compiled = compile_glob(pattern)
    return compiled is not None and compiled.fullmatch(name) is not None


def matches_pattern(path: str, pattern: str) -> bool:
    """Check whether a slash-separated path matches one ignore/include pattern.

    A pattern matches when it globs the base name or the full path, when it
    names a directory (trailing ``/``) the path lies under, or when it is a plain
    substring of the path. Globs never match across ``/``, so ``docs/*.md``
    leaves ``docs/api/x.md`` alone.

    Args:
        path (str): repository-relative path.
        pattern (str): glob, directory pattern or substring.

    Returns:
        bool: True on a match.
    """
    if glob_match(pattern, posixpath.basename(path)):
        return True
    if glob_match(pattern, path):
        return True
    if pattern.endswith("/"):
        prefix = pattern.rstrip("/") + "/"
        if prefix in path or path.startswith(prefix):
            return True
    return pattern in path


class PatternMatcher:
    """Ignore and include rules over repository paths."""

    def __init__(self, ignore: Sequence[str] = (), include_only: Sequence[str] = ()) -> None:
        self.ignore = list(ignore)
        self.include_only = list(include_only)

    def should_ignore(self, path: str) -> bool:
        return any(matches_pattern(path, p) for p in self.ignore)

    def should_include(self, path: str) -> bool:
        """True when no include patterns are set or the path matches one of them."""
        if not self.include_only:
            return True
        return any(matches_pattern(path, p) for p in self.include_only)

    def accepts(self, path: str) -> bool:
        return not self.should_ignore(path) and self.should_include(path)


def filter_entries(entries: Iterable[TreeEntry], matcher: PatternMatcher) -> list[TreeEntry]:
    """Keep directory entries unconditionally and file entries the matcher accepts.

    Args:
        entries (Iterable[TreeEntry]): the tree listing, in backend order.
        matcher (PatternMatcher): ignore/include rules.

    Returns:
        list[TreeEntry]: the retained entries, order preserved.
    """
    return [e for e in entries if e.is_dir or matcher.accepts(e.path)]
