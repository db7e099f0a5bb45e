"""
goneat schema package public API.

File: src/goneat/schema/__init__.py

Purpose
- Export compilation, validation, registry, offline reference resolution and the
  ``$id`` index.
"""

from goneat.schema.batch import (
    BatchOptions,
    BatchResult,
    validate_directory,
    validate_files,
    validate_files_async,
)
from goneat.schema.documents import ensure_supported_draft
from goneat.schema.errors import (
    BatchTimeoutError,
    DataFormatError,
    GoneatError,
    RefDirError,
    ReferenceConflictError,
    SchemaCompileError,
    SchemaFormatError,
    SchemaNotFoundError,
    SecurityViolationError,
    UnsupportedDraftError,
)
from goneat.schema.id_index import IDIndex, IDIndexEntry, build_id_index_from_ref_dirs
from goneat.schema.meta import supported_meta_schema_ids, validate_schema_document
from goneat.schema.registry import SchemaRegistry
from goneat.schema.results import (
    CompiledSchema,
    ValidationContext,
    ValidationError,
    ValidationResult,
)
from goneat.schema.validator import (
    SecurityContext,
    compile_schema,
    compile_schema_with_id_index,
    compile_schema_with_ref_dirs,
    validate_bytes,
    validate_data_from_bytes,
    validate_file,
    validate_file_from_schema_file,
    validate_file_with_schema_path,
    validate_file_with_security,
    validate_from_bytes,
    validate_from_bytes_with_id_index,
    validate_from_bytes_with_ref_dirs,
    validate_with_options,
)

__all__ = [
    "BatchOptions",
    "BatchResult",
    "BatchTimeoutError",
    "CompiledSchema",
    "DataFormatError",
    "GoneatError",
    "IDIndex",
    "IDIndexEntry",
    "RefDirError",
    "ReferenceConflictError",
    "SchemaCompileError",
    "SchemaFormatError",
    "SchemaNotFoundError",
    "SchemaRegistry",
    "SecurityContext",
    "SecurityViolationError",
    "UnsupportedDraftError",
    "ValidationContext",
    "ValidationError",
    "ValidationResult",
    "build_id_index_from_ref_dirs",
    "compile_schema",
    "compile_schema_with_id_index",
    "compile_schema_with_ref_dirs",
    "ensure_supported_draft",
    "supported_meta_schema_ids",
    "validate_bytes",
    "validate_data_from_bytes",
    "validate_directory",
    "validate_file",
    "validate_file_from_schema_file",
    "validate_file_with_schema_path",
    "validate_file_with_security",
    "validate_files",
    "validate_files_async",
    "validate_from_bytes",
    "validate_from_bytes_with_id_index",
    "validate_from_bytes_with_ref_dirs",
    "validate_schema_document",
    "validate_with_options",
]
