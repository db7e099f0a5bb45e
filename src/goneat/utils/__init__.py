"""Utility exports for filesystem safety, glob matching, and concurrency helpers."""

from goneat.utils.concurrency import FileCancellation, FileJobPool, run_with_deadline
from goneat.utils.fs import (
    PathTraversalError,
    clean_user_path,
    ensure_within_root,
    is_within,
    is_within_any,
    walk_files,
)
from goneat.utils.globbing import glob_match, has_glob_magic, match_any, normalize_rel_path

__all__ = [
    "FileCancellation",
    "FileJobPool",
    "PathTraversalError",
    "clean_user_path",
    "ensure_within_root",
    "glob_match",
    "has_glob_magic",
    "is_within",
    "is_within_any",
    "match_any",
    "normalize_rel_path",
    "run_with_deadline",
    "walk_files",
]
