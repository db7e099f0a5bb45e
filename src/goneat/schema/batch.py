"""
goneat — concurrent batch validation of many files against one schema.

File: src/goneat/schema/batch.py

Purpose
- Validate a list of files (or a directory walk) with bounded concurrency and an
  overall deadline.

What should be included in this file
- ``BatchOptions`` / ``BatchResult`` models.
- Per-file security checks that turn setup failures into structured results.
- An async entrypoint plus a synchronous wrapper for non-async callers.

Functional requirements
- ``total_files == len(paths)`` and ``valid_files + invalid_files == total_files``
  whenever the batch completes.
- One failing file never aborts the batch; only cancellation or the deadline does.
- Results and counters are updated under one lock; file I/O and validation run
  outside it in worker threads.
"""

from __future__ import annotations

import asyncio
import fnmatch
import os
import threading
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

import structlog

from goneat.constants import DEFAULT_BATCH_TIMEOUT_SECONDS
from goneat.observability.logging import correlation_scope
from goneat.schema.errors import BatchTimeoutError, GoneatError
from goneat.schema.results import ValidationContext, ValidationError, ValidationResult
from goneat.schema.validator import SecurityContext, compile_schema
from goneat.utils.concurrency import FileCancellation, FileJobPool, run_with_deadline
from goneat.utils.fs import PathTraversalError, clean_user_path, is_within_any, walk_files

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from goneat.schema.results import CompiledSchema

SEVERITY_PASS: Final[str] = "pass"
SEVERITY_FAIL: Final[str] = "fail"

_LOGGER = structlog.get_logger(__name__)


def _default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True, slots=True)
class BatchOptions:
    max_concurrency: int = field(default_factory=_default_concurrency)
    timeout_seconds: float = DEFAULT_BATCH_TIMEOUT_SECONDS
    security: SecurityContext = field(default_factory=SecurityContext.default)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Aggregate outcome of one batch call."""

    valid: bool
    total_files: int
    valid_files: int
    invalid_files: int
    overall_severity: str
    summary: tuple[str, ...]
    file_results: Mapping[str, ValidationResult]

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "total_files": self.total_files,
            "valid_files": self.valid_files,
            "invalid_files": self.invalid_files,
            "overall_severity": self.overall_severity,
            "summary": list(self.summary),
            "file_results": {
                path: result.to_dict() for path, result in sorted(self.file_results.items())
            },
        }


class _BatchState:
    __slots__ = ("invalid", "lock", "results", "valid")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.results: dict[str, ValidationResult] = {}
        self.valid = 0
        self.invalid = 0

    def record(self, path: str, result: ValidationResult) -> None:
        with self.lock:
            self.results[path] = result
            if result.valid:
                self.valid += 1
            else:
                self.invalid += 1


async def validate_files_async(
    schema_bytes: bytes,
    paths: Sequence[str],
    options: BatchOptions | None = None,
    *,
    cancellation: FileCancellation | None = None,
    logger: Any | None = None,
) -> BatchResult:
    """Validate ``paths`` concurrently against ``schema_bytes``.

    Raises ``BatchTimeoutError`` when the whole batch exceeds ``timeout_seconds``.
    """

    opts = options or BatchOptions()
    log = logger if logger is not None else _LOGGER
    token = cancellation if cancellation is not None else FileCancellation()
    with correlation_scope(run_id=f"batch-{uuid.uuid4().hex[:12]}"):
        return await _run_batch(schema_bytes, paths, opts, token, log)


async def _run_batch(
    schema_bytes: bytes,
    paths: Sequence[str],
    opts: BatchOptions,
    token: FileCancellation,
    log: Any,
) -> BatchResult:
    compiled: CompiledSchema | None = None
    setup_error: GoneatError | None = None
    try:
        compiled = compile_schema(schema_bytes, enforce_draft=opts.security.enforce_draft)
    except GoneatError as exc:
        setup_error = exc

    state = _BatchState()

    def check_one(path: str) -> None:
        if token.is_cancelled:
            return
        clean_path, outcome = _validate_one(path, compiled, setup_error, opts.security)
        if token.is_cancelled:
            return
        state.record(clean_path, outcome)

    pool = FileJobPool(check_one, max_workers=opts.max_concurrency, cancellation=token)
    try:
        await run_with_deadline(pool.run(paths), opts.timeout_seconds, token)
    except TimeoutError as exc:
        raise BatchTimeoutError(
            f"batch validation timed out after {opts.timeout_seconds} seconds"
        ) from exc

    result = _summarize(len(paths), state)
    log.info(
        "schema_batch_validated",
        total_files=result.total_files,
        valid_files=result.valid_files,
        invalid_files=result.invalid_files,
        overall_severity=result.overall_severity,
    )
    return result


def validate_files(
    schema_bytes: bytes,
    paths: Sequence[str],
    options: BatchOptions | None = None,
) -> BatchResult:
    """Synchronous wrapper around ``validate_files_async``."""

    return asyncio.run(validate_files_async(schema_bytes, paths, options))


def validate_directory(
    schema_bytes: bytes,
    directory: str,
    pattern: str,
    options: BatchOptions | None = None,
) -> BatchResult:
    """Validate every file under ``directory`` whose basename matches ``pattern``."""

    files = [
        str(path)
        for path in walk_files(directory, accept=lambda path: fnmatch.fnmatch(path.name, pattern))
    ]
    return validate_files(schema_bytes, files, options)


def _validate_one(
    raw_path: str,
    compiled: CompiledSchema | None,
    setup_error: GoneatError | None,
    security: SecurityContext,
) -> tuple[str, ValidationResult]:
    try:
        path = clean_user_path(raw_path)
    except PathTraversalError as exc:
        return raw_path, _failure(raw_path, f"invalid path: {exc}")

    if not is_within_any(path, security.allowed_dirs):
        return path, _failure(path, "path not in allowed directories")

    try:
        size = os.stat(path).st_size
    except OSError as exc:
        return path, _failure(path, f"failed to stat: {exc}")
    if size > security.max_file_size:
        return path, _failure(
            path, f"file exceeds max size {security.max_file_size} bytes (actual: {size})"
        )

    try:
        with open(path, "rb") as handle:
            data_bytes = handle.read()
    except OSError as exc:
        return path, _failure(path, f"failed to read file: {exc}")

    if compiled is None:
        return path, _failure(path, f"validation setup error: {setup_error}")
    try:
        result = compiled.validate_bytes(
            data_bytes,
            context=ValidationContext(source_file=path, source_type="file"),
        )
    except GoneatError as exc:
        return path, _failure(path, f"validation setup error: {exc}")
    return path, result


def _failure(path: str, message: str) -> ValidationResult:
    return ValidationResult(
        valid=False,
        errors=(
            ValidationError(
                path=path,
                message=message,
                context=ValidationContext(source_file=path, severity="error"),
            ),
        ),
    )


def _summarize(total: int, state: _BatchState) -> BatchResult:
    with state.lock:
        valid_count = state.valid
        invalid_count = state.invalid
        results = dict(state.results)
    return BatchResult(
        valid=valid_count > 0 and invalid_count == 0,
        total_files=total,
        valid_files=valid_count,
        invalid_files=invalid_count,
        overall_severity=SEVERITY_PASS if invalid_count == 0 else SEVERITY_FAIL,
        summary=(f"Total: {total}, Valid: {valid_count}, Invalid: {invalid_count}",),
        file_results=MappingProxyType(results),
    )


__all__ = [
    "SEVERITY_FAIL",
    "SEVERITY_PASS",
    "BatchOptions",
    "BatchResult",
    "validate_directory",
    "validate_files",
    "validate_files_async",
]
