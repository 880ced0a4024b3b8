"""gsbt: gsbt/connector/matcher.py
Include/exclude filtering of remote paths.
"""

import posixpath
from fnmatch import fnmatchcase


def _malformed(pattern: str) -> bool:
    """True if a '[' in ``pattern`` never gets its closing ']'."""
    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            j = pattern.find("]", j)
            if j == -1:
                return True
            i = j
        i += 1
    return False


def _glob_match(pattern: str, path: str) -> bool:
    """Shell glob match where '*' and '?' never cross a '/'.

    A malformed pattern never matches.
    """
    pattern_parts = pattern.split("/")
    path_parts = path.split("/")
    if len(pattern_parts) != len(path_parts):
        return False
    if any(_malformed(part) for part in pattern_parts):
        return False
    return all(
        fnmatchcase(part, pat) for part, pat in zip(path_parts, pattern_parts)
    )


def _matches_either(pattern: str, path: str) -> bool:
    base = posixpath.basename(path)
    return _glob_match(pattern, base) or _glob_match(pattern, path)


def matches_patterns(path: str, include=None, exclude=None) -> bool:
    """Return True if ``path`` is included and not excluded.

    Excludes are checked first. A pattern ending in '/' excludes that
    directory and everything below it. Other patterns are matched against
    both the base name and the full relative path.
    """
    include = include or ["*"]

    for pattern in exclude or []:
        if pattern.endswith("/"):
            directory = pattern[:-1]
            if path == directory or path.startswith(directory + "/"):
                return False
        elif _matches_either(pattern, path):
            return False

    for pattern in include:
        if pattern == "*":
            return True
        if _matches_either(pattern, path):
            return True

    return False
