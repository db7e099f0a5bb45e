"""Error taxonomy for schema compilation, resolution, and validation setup."""

from __future__ import annotations


class GoneatError(Exception):
    """Root of every error raised by the goneat schema engine."""


class SchemaFormatError(GoneatError, ValueError):
    """Schema bytes parse as neither YAML nor JSON, or are not a JSON object."""


class DataFormatError(GoneatError, ValueError):
    """Data bytes parse as neither YAML nor JSON."""


class UnsupportedDraftError(GoneatError):
    """Schema declares a ``$schema`` draft other than Draft-07 or 2020-12."""

    def __init__(self, declared: str) -> None:
        super().__init__(
            f"unsupported $schema draft {declared!r}: only Draft-07 and 2020-12 are supported"
        )
        self.declared = declared


class SchemaCompileError(GoneatError):
    """Schema failed meta-validation or references an unresolvable ``$ref``."""


class SchemaNotFoundError(GoneatError, LookupError):
    """Named schema is unknown to the registry or asset provider."""


class ReferenceConflictError(GoneatError):
    """Two reference files claim one ``$id`` with different normalized content."""

    def __init__(self, schema_id: str, path: str, existing: str) -> None:
        super().__init__(f'duplicate schema $id "{schema_id}": {path} differs from {existing}')
        self.schema_id = schema_id
        self.path = path
        self.existing = existing


class RefDirError(GoneatError):
    """Reference directory is missing, not a directory, or unreadable."""


class SecurityViolationError(GoneatError):
    """File access outside allowed directories or above the size cap."""


class BatchTimeoutError(GoneatError, TimeoutError):
    """Batch validation exceeded its overall deadline."""


__all__ = [
    "BatchTimeoutError",
    "DataFormatError",
    "GoneatError",
    "RefDirError",
    "ReferenceConflictError",
    "SchemaCompileError",
    "SchemaFormatError",
    "SchemaNotFoundError",
    "SecurityViolationError",
    "UnsupportedDraftError",
]
