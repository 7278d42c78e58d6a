"""
Path Utils
==========
Path normalisation and glob matching helpers shared by the identifier
generator and the policy filter.

Responsibilities:
    - Normalise path separators to forward slashes
    - Convert absolute paths to cwd-relative paths
    - Match paths against include/exclude globs segment by segment ("**" spans directories)
"""
import os
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional


def normalize_path(path: str) -> str:
    """Unify separators to "/" and collapse duplicate slashes."""
    if not path:
        return ""
    normalized = path.replace("\\", "/")
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    return normalized


def get_relative_path(path: str, cwd: Optional[str] = None) -> str:
    """
    Return path relative to cwd when it lies underneath it, otherwise the
    normalised path unchanged. Works on "/"-normalised strings so Windows
    paths produce the same result on any host.
    """
    normalized = normalize_path(path)
    base = normalize_path(cwd if cwd is not None else os.getcwd()).rstrip("/")
    if base and normalized.startswith(base + "/"):
        return normalized[len(base) + 1:]
    if normalized.startswith("./"):
        return normalized[2:]
    return normalized


def _split(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def _match_parts(parts: List[str], patterns: List[str]) -> bool:
    if not patterns:
        return not parts
    head = patterns[0]
    if head == "**":
        rest = patterns[1:]
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts or not fnmatchcase(parts[0], head):
        return False
    return _match_parts(parts[1:], patterns[1:])


def matches_glob(path: str, pattern: str) -> bool:
    """
    Segment-wise glob match: "*", "?" and "[...]" stay inside one path
    segment, "**" spans any number of directories (including none).
    The bare pattern "*" matches every path.
    """
    if pattern == "*":
        return True
    patterns = _split(normalize_path(pattern))
    # "a/**/**/b" is the same as "a/**/b"
    collapsed = [p for i, p in enumerate(patterns) if not (p == "**" and i and patterns[i - 1] == "**")]
    return _match_parts(_split(normalize_path(path)), collapsed)


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(path, p) for p in patterns)
