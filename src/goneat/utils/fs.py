"""
goneat — filesystem safety utilities

File: src/goneat/utils/fs.py

Purpose
- Sanitize user-supplied paths and enforce directory containment before any read.

Functional requirements
- ``clean_user_path`` normalizes a path and rejects any traversal sequence.
- Containment checks compare absolute paths without requiring the target to exist.
- Directory walks are deterministic (lexical order per directory level).

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "PathTraversalError",
    "clean_user_path",
    "ensure_within_root",
    "is_within",
    "is_within_any",
    "walk_files",
]


class PathTraversalError(ValueError):
    """Raised when a user-supplied path contains a traversal sequence."""


def clean_user_path(path: PathLike) -> str:
    """Return ``path`` normalized with forward slashes, rejecting ``..`` anywhere."""

    cleaned = os.path.normpath(os.fspath(path))
    if ".." in cleaned:
        raise PathTraversalError(f"path traversal detected: {os.fspath(path)!s}")
    return cleaned.replace(os.sep, "/")


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` when absolute ``child`` stays inside absolute ``parent``."""

    abs_parent = os.path.abspath(os.fspath(parent))
    abs_child = os.path.abspath(os.fspath(child))
    try:
        rel = os.path.relpath(abs_child, abs_parent)
    except ValueError:
        # Different drives on Windows.
        return False
    return not rel.startswith("..")


def is_within_any(child: PathLike, parents: Iterable[PathLike]) -> bool:
    return any(is_within(child, parent) for parent in parents)


def ensure_within_root(root: PathLike, target: PathLike) -> Path:
    """Return absolute ``target`` or raise when it escapes ``root``."""

    root_abs = os.path.abspath(os.fspath(root))
    target_abs = os.path.abspath(os.fspath(target))
    if not (target_abs + os.sep).startswith(root_abs.rstrip(os.sep) + os.sep):
        raise PathTraversalError(f"path {target_abs} escapes root {root_abs}")
    return Path(target_abs)


def walk_files(
    root: PathLike,
    *,
    accept: Callable[[Path], bool] | None = None,
) -> Iterator[Path]:
    """Yield files under ``root`` in lexical order, optionally filtered by ``accept``."""

    for dirpath, dirnames, filenames in os.walk(os.fspath(root)):
        dirnames.sort()
        for name in sorted(filenames):
            candidate = Path(dirpath) / name
            if accept is None or accept(candidate):
                yield candidate
