"""
goneat — reference directory scanning and the immutable ``$id`` index.

File: src/goneat/schema/id_index.py

Purpose
- Discover schema documents in loose reference directories, keyed by canonical ``$id``.
- Detect ``$id`` collisions between independently discovered documents.

Functional requirements
- Only ``.json``, ``.yaml`` and ``.yml`` files (case-insensitive) are considered.
- Files that do not parse, or that declare no ``$id``, are skipped and logged at debug.
- Identical duplicates are deduplicated; differing content under one ``$id`` is a
  ``ReferenceConflictError`` naming both paths.
- Walk order is lexical so the cited "existing" path is stable between runs.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog

from goneat.constants import SCHEMA_FILE_EXTENSIONS
from goneat.schema.documents import load_schema_document
from goneat.schema.errors import RefDirError, ReferenceConflictError, SchemaFormatError
from goneat.utils.fs import PathTraversalError, clean_user_path, walk_files

if TYPE_CHECKING:
    from collections.abc import Sequence

_LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IDIndexEntry:
    id: str
    path: str
    normalized: bytes
    declared_schema: str | None = None


class IDIndex:
    """Read-only ``$id`` -> entry mapping built from reference directories."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, IDIndexEntry] | None = None) -> None:
        self._entries: Mapping[str, IDIndexEntry] = MappingProxyType(dict(entries or {}))

    def get(self, schema_id: str) -> IDIndexEntry | None:
        return self._entries.get(schema_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))

    def __contains__(self, schema_id: object) -> bool:
        return schema_id in self._entries

    def entries(self) -> tuple[IDIndexEntry, ...]:
        return tuple(self._entries[schema_id] for schema_id in sorted(self._entries))


def build_id_index_from_ref_dirs(
    ref_dirs: Sequence[str],
    *,
    logger: Any | None = None,
) -> IDIndex:
    """Scan ``ref_dirs`` and return the resulting immutable index.

    ``$schema`` is always stripped before comparison, so two copies of a schema that
    differ only in their declared meta-schema are treated as identical. The first
    copy's ``$schema`` is kept on the entry as ``declared_schema``.
    """

    if not ref_dirs:
        return IDIndex()
    return IDIndex(scan_ref_dirs(ref_dirs, strip_schema=True, logger=logger))


def scan_ref_dirs(
    ref_dirs: Sequence[str],
    *,
    strip_schema: bool,
    seed: Mapping[str, IDIndexEntry] | None = None,
    logger: Any | None = None,
) -> dict[str, IDIndexEntry]:
    """Collect ``{$id: entry}`` from ``ref_dirs``; ``seed`` entries take part in conflicts."""

    log = logger if logger is not None else _LOGGER
    registered: dict[str, IDIndexEntry] = dict(seed or {})

    for raw_dir in ref_dirs:
        directory = _checked_ref_dir(raw_dir)
        for path in walk_files(directory, accept=_is_schema_file):
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise RefDirError(f"read ref schema {path}: {exc}") from exc

            try:
                document = load_schema_document(data, strip_schema=strip_schema)
            except SchemaFormatError as exc:
                log.debug("schema_ref_dir_skip", file_path=str(path), reason=str(exc))
                continue
            if not document.schema_id:
                log.debug("schema_ref_dir_skip", file_path=str(path), reason="no $id")
                continue

            existing = registered.get(document.schema_id)
            if existing is not None:
                if existing.normalized == document.normalized:
                    continue
                raise ReferenceConflictError(document.schema_id, str(path), existing.path)

            registered[document.schema_id] = IDIndexEntry(
                id=document.schema_id,
                path=str(path),
                normalized=document.normalized,
                declared_schema=document.declared_schema,
            )

    return registered


def _checked_ref_dir(raw_dir: str) -> Path:
    try:
        cleaned = clean_user_path(raw_dir)
    except PathTraversalError as exc:
        raise RefDirError(f"invalid ref-dir {raw_dir}: {exc}") from exc
    if not os.path.exists(cleaned):
        raise RefDirError(f"ref-dir {cleaned}: no such file or directory")
    if not os.path.isdir(cleaned):
        raise RefDirError(f"ref-dir {cleaned} is not a directory")
    return Path(cleaned)


def _is_schema_file(path: Path) -> bool:
    return path.suffix.lower() in SCHEMA_FILE_EXTENSIONS


__all__ = ["IDIndex", "IDIndexEntry", "build_id_index_from_ref_dirs", "scan_ref_dirs"]
