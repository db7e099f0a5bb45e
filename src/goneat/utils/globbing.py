"""Doublestar-style glob matching for slash-separated relative paths.

``**`` as a whole segment spans zero or more directories; ``*``, ``?`` and ``[...]``
never cross a ``/``. Brace alternation (``{a,b}``) is expanded before matching.

Supported subset: character classes negate with ``[!...]`` or ``[^...]``. There is no
backslash escaping. ``match_any`` turns ``\\`` into ``/`` first, and ``glob_match``
matches a backslash literally. Use ``[*]``, ``[?]`` or ``[[]`` for a literal
metacharacter.
"""

from __future__ import annotations

import fnmatch
from functools import lru_cache

__all__ = ["glob_match", "has_glob_magic", "match_any", "normalize_rel_path"]

_GLOBSTAR = "**"


def normalize_rel_path(path: str) -> str:
    """Convert separators to ``/`` and drop a leading ``./``."""

    normalized = path.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def has_glob_magic(pattern: str) -> bool:
    return any(symbol in pattern for symbol in ("*", "?", "[", "{"))


def glob_match(pattern: str, path: str) -> bool:
    """Return ``True`` when ``path`` matches the doublestar ``pattern``."""

    if not pattern:
        return False
    path_segments = tuple(path.split("/"))
    return any(
        _match_segments(candidate, path_segments) for candidate in _expanded_segments(pattern)
    )


def match_any(patterns: tuple[str, ...] | list[str], path: str) -> bool:
    normalized = normalize_rel_path(path)
    for raw in patterns:
        pattern = normalize_rel_path(raw.strip())
        if pattern and glob_match(pattern, normalized):
            return True
    return False


@lru_cache(maxsize=512)
def _expanded_segments(pattern: str) -> tuple[tuple[str, ...], ...]:
    return tuple(
        tuple(_fnmatch_segment(segment) for segment in item.split("/"))
        for item in _expand_braces(pattern)
    )


def _fnmatch_segment(segment: str) -> str:
    # fnmatch reads ``[^`` as a set containing a caret.
    return segment.replace("[^", "[!")


def _expand_braces(pattern: str) -> list[str]:
    start = pattern.find("{")
    if start < 0:
        return [pattern]

    depth = 0
    options: list[str] = []
    option_start = start + 1
    for index in range(start, len(pattern)):
        char = pattern[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[option_start:index])
                prefix = pattern[:start]
                suffix = pattern[index + 1 :]
                expanded: list[str] = []
                for option in options:
                    expanded.extend(_expand_braces(prefix + option + suffix))
                return expanded
        elif char == "," and depth == 1:
            options.append(pattern[option_start:index])
            option_start = index + 1

    # Unbalanced braces match literally.
    return [pattern]


def _match_segments(pattern: tuple[str, ...], path: tuple[str, ...]) -> bool:
    if not pattern:
        return not path

    head = pattern[0]
    if head == _GLOBSTAR:
        rest = pattern[1:]
        # Collapse consecutive globstars.
        while rest and rest[0] == _GLOBSTAR:
            rest = rest[1:]
        if not rest:
            return True
        return any(_match_segments(rest, path[index:]) for index in range(len(path) + 1))

    if not path:
        return False
    if not fnmatch.fnmatchcase(path[0], head):
        return False
    return _match_segments(pattern[1:], path[1:])
