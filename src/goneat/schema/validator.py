"""
goneat — single-schema validation entrypoints.

File: src/goneat/schema/validator.py

Purpose
- Compile caller-supplied schema bytes and validate data, bytes, or files against them.
- Offer the offline ``$ref`` resolution entrypoints (ref-dirs or a prebuilt ``IDIndex``).

What should be included in this file
- ``compile_schema`` with the draft gate and optional ``$schema`` stripping.
- File helpers that sanitize every user path before reading it.
- ``SecurityContext`` containment and size checks for file validation.

Functional requirements
- Structural mismatches are returned as ``ValidationResult(valid=False)``; only setup
  failures raise.
- ``$schema`` is stripped when offline mode is on or reference directories are supplied;
  the draft gate always inspects the pre-strip document.
- Single-file helpers impose no timeout.

Non-functional requirements
- Ad hoc schemas are compiled on demand and never cached here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from goneat.config.loader import offline_mode_enabled
from goneat.constants import DEFAULT_MAX_FILE_SIZE
from goneat.schema.documents import check_supported_draft, load_schema_document, parse_data
from goneat.schema.errors import SecurityViolationError
from goneat.schema.refs import compile_document, compile_with_id_index, compile_with_ref_dirs
from goneat.schema.results import ValidationContext
from goneat.utils.fs import PathTraversalError, clean_user_path, is_within_any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goneat.config.loader import GoneatSettings
    from goneat.schema.id_index import IDIndex
    from goneat.schema.results import CompiledSchema, ValidationResult


@dataclass(frozen=True, slots=True)
class SecurityContext:
    """Which files a validation call may touch and how large they may be."""

    allowed_dirs: tuple[str, ...] = (".",)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    enforce_draft: bool = True

    def __post_init__(self) -> None:
        if self.max_file_size <= 0:
            raise ValueError("max_file_size must be > 0")
        object.__setattr__(self, "allowed_dirs", tuple(self.allowed_dirs))

    @classmethod
    def default(cls) -> SecurityContext:
        return cls()

    def to_dict(self) -> dict[str, object]:
        return {
            "allowed_dirs": list(self.allowed_dirs),
            "max_file_size_bytes": self.max_file_size,
            "enforce_draft_only": self.enforce_draft,
        }


def compile_schema(
    schema_bytes: bytes,
    *,
    settings: GoneatSettings | None = None,
    enforce_draft: bool = True,
) -> CompiledSchema:
    """Compile YAML or JSON schema bytes into a reusable ``CompiledSchema``."""

    document = load_schema_document(schema_bytes, strip_schema=_offline(settings))
    if enforce_draft:
        check_supported_draft(document.declared_schema)
    return compile_document(document)


def compile_schema_with_ref_dirs(
    schema_bytes: bytes,
    ref_dirs: Sequence[str],
    *,
    settings: GoneatSettings | None = None,
    logger: Any | None = None,
) -> CompiledSchema:
    """Compile schema bytes resolving ``$ref`` targets only from ``ref_dirs``."""

    if not ref_dirs:
        return compile_schema(schema_bytes, settings=settings)
    strip_schema = _offline(settings) or bool(ref_dirs)
    document = load_schema_document(schema_bytes, strip_schema=strip_schema)
    check_supported_draft(document.declared_schema)
    return compile_with_ref_dirs(document, ref_dirs, strip_schema=strip_schema, logger=logger)


def compile_schema_with_id_index(
    schema_bytes: bytes,
    index: IDIndex,
    *,
    declared_schema: str | None = None,
) -> CompiledSchema:
    """Compile ``schema_bytes`` against ``index``.

    ``declared_schema`` stands in for a ``$schema`` the bytes no longer carry, as with
    ``IDIndexEntry.normalized``.
    """

    # Index entries are always stored without ``$schema``; the root must match.
    document = load_schema_document(schema_bytes, strip_schema=True)
    if document.declared_schema is None and declared_schema:
        document = replace(document, declared_schema=declared_schema)
    check_supported_draft(document.declared_schema)
    return compile_with_id_index(document, index)


def validate_from_bytes(
    schema_bytes: bytes,
    data: object,
    *,
    settings: GoneatSettings | None = None,
    enforce_draft: bool = True,
) -> ValidationResult:
    compiled = compile_schema(schema_bytes, settings=settings, enforce_draft=enforce_draft)
    return compiled.validate(data)


def validate_from_bytes_with_ref_dirs(
    schema_bytes: bytes,
    data: object,
    ref_dirs: Sequence[str],
    *,
    settings: GoneatSettings | None = None,
    logger: Any | None = None,
) -> ValidationResult:
    """Validate ``data`` with ``$ref``s resolved offline from ``ref_dirs``.

    This lets schemas use absolute HTTP(S) ``$id``/``$ref`` URIs before any registry
    host serves them.
    """

    if not ref_dirs:
        return validate_from_bytes(schema_bytes, data, settings=settings)
    compiled = compile_schema_with_ref_dirs(
        schema_bytes, ref_dirs, settings=settings, logger=logger
    )
    return compiled.validate(data)


def validate_from_bytes_with_id_index(
    schema_bytes: bytes,
    data: object,
    index: IDIndex,
    *,
    declared_schema: str | None = None,
) -> ValidationResult:
    compiled = compile_schema_with_id_index(schema_bytes, index, declared_schema=declared_schema)
    return compiled.validate(data)


def validate_data_from_bytes(
    schema_bytes: bytes,
    data_bytes: bytes,
    context: ValidationContext | None = None,
    *,
    settings: GoneatSettings | None = None,
    enforce_draft: bool = True,
) -> ValidationResult:
    """Parse data bytes (YAML, then JSON) and validate them against schema bytes.

    When ``context`` names a source file, every error of an invalid result carries it,
    with ``source_type`` set to the format the data actually parsed as.
    """

    data, source_type = parse_data(data_bytes)
    result = validate_from_bytes(schema_bytes, data, settings=settings, enforce_draft=enforce_draft)
    if context is None:
        return result
    return result.with_context(replace(context, source_type=source_type))


def validate_bytes(
    schema_bytes: bytes,
    data_bytes: bytes,
    *,
    settings: GoneatSettings | None = None,
) -> ValidationResult:
    return validate_data_from_bytes(schema_bytes, data_bytes, settings=settings)


def validate_with_options(
    schema_bytes: bytes,
    data: object,
    context: ValidationContext | None = None,
) -> ValidationResult:
    return validate_from_bytes(schema_bytes, data).with_context(context)


def validate_file(schema_bytes: bytes, data_path: str) -> ValidationResult:
    data_bytes = _read_file(_sanitize(data_path, "path"))
    return validate_data_from_bytes(schema_bytes, data_bytes)


def validate_file_from_schema_file(schema_path: str, data_path: str) -> ValidationResult:
    schema_bytes = _read_file(_sanitize(schema_path, "schema path"))
    data_bytes = _read_file(_sanitize(data_path, "data path"))
    return validate_data_from_bytes(schema_bytes, data_bytes)


# Older name for the schema-file helper; kept for existing callers.
validate_file_with_schema_path = validate_file_from_schema_file


def validate_from_file_with_bytes(schema_path: str, data_bytes: bytes) -> ValidationResult:
    schema_bytes = _read_file(_sanitize(schema_path, "schema path"))
    return validate_data_from_bytes(schema_bytes, data_bytes)


def validate_file_with_security(
    schema_bytes: bytes,
    data_path: str,
    security: SecurityContext | None = None,
) -> ValidationResult:
    """Validate one file after containment and size checks.

    Raises ``SecurityViolationError`` for traversal, containment, or size violations;
    ``OSError`` from stat or read propagates unchanged.
    """

    sec = security or SecurityContext.default()
    clean_path = _sanitize(data_path, "path")
    if not is_within_any(clean_path, sec.allowed_dirs):
        raise SecurityViolationError(
            f"path {clean_path} not in allowed directories: {list(sec.allowed_dirs)}"
        )

    size = os.stat(clean_path).st_size
    if size > sec.max_file_size:
        raise SecurityViolationError(
            f"file {clean_path} exceeds max size {sec.max_file_size} bytes (actual: {size})"
        )

    data_bytes = _read_file(clean_path)
    return validate_data_from_bytes(
        schema_bytes,
        data_bytes,
        ValidationContext(source_file=clean_path, source_type="file"),
        enforce_draft=sec.enforce_draft,
    )


def _offline(settings: GoneatSettings | None) -> bool:
    if settings is not None:
        return settings.offline_schema_validation
    return offline_mode_enabled()


def _sanitize(path: str, label: str) -> str:
    try:
        return clean_user_path(path)
    except PathTraversalError as exc:
        raise SecurityViolationError(f"{label} sanitization failed: {exc}") from exc


def _read_file(path: str) -> bytes:
    with open(path, "rb") as handle:
        return handle.read()


__all__ = [
    "SecurityContext",
    "compile_schema",
    "compile_schema_with_id_index",
    "compile_schema_with_ref_dirs",
    "validate_bytes",
    "validate_data_from_bytes",
    "validate_file",
    "validate_file_from_schema_file",
    "validate_file_with_schema_path",
    "validate_file_with_security",
    "validate_from_bytes",
    "validate_from_bytes_with_id_index",
    "validate_from_bytes_with_ref_dirs",
    "validate_with_options",
]
