"""
Ignore-pattern matching for tree scans.
"""

import logging
import os
from functools import lru_cache
from typing import List, Sequence, Tuple

import pathspec

logger = logging.getLogger(__name__)


def normalize_path(relative_path: str) -> str:
    """Use forward slashes regardless of the host separator."""
    path = relative_path.replace("\\", "/")
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    return path


def _literal_bang(pattern: str) -> str:
    # Negation is not supported, a leading "!" is part of the name
    if pattern.startswith("!"):
        return "\\" + pattern
    return pattern


@lru_cache(maxsize=64)
def _compile(patterns: Tuple[str, ...]) -> pathspec.GitIgnoreSpec:
    lines = []
    for pattern in patterns:
        line = _literal_bang(pattern)
        try:
            pathspec.GitIgnoreSpec.from_lines([line])
        except ValueError as e:
            logger.warning(f"Skipping invalid ignore pattern {pattern!r}: {e}")
            continue
        lines.append(line)
    return pathspec.GitIgnoreSpec.from_lines(lines)


def should_ignore(relative_path: str, patterns: Sequence[str]) -> bool:
    """
    Check if a path should be excluded from the tree.

    Patterns without a separator match the final path segment, and
    wildcards match names starting with a dot. Any single match excludes
    the path; an empty pattern list never excludes anything.

    Args:
        relative_path: Path relative to the directory being listed
        patterns: Glob patterns, already stripped of blanks and comments

    Returns:
        True if any pattern matches
    """
    if not patterns:
        return False

    path = normalize_path(relative_path)
    if not path:
        return False

    return _compile(tuple(patterns)).match_file(path)


def parse_ignore_patterns(text: str) -> List[str]:
    """Split raw ignore text into patterns, dropping blank and comment lines."""
    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns
