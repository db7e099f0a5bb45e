"""
goneat — bulk suite validation.

File: src/goneat/suite.py

Purpose
- Validate every JSON/YAML file under a data root against the schema the mapping
  manifest assigns to it, with optional offline ``$ref`` resolution via ref-dirs.

What should be included in this file
- Schema resolution modes and suite options.
- Discovery, per-file resolution (skip globs, manifest exclusions, mappings) and
  validation for embedded, local and external schema sources.
- Summary counters, a fail/pass verdict, and JSON / markdown renderings.

Functional requirements
- Mapping resolution happens once per file before any worker thread starts.
- Files are validated concurrently with a bounded worker pool and an overall deadline.
- Results are reported sorted by repository-relative path.
"""

from __future__ import annotations

import asyncio
import os
import posixpath
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

import structlog

from goneat.mapping.manager import DEFAULT_MANIFEST_RELATIVE_PATH, LoadOptions, ManifestManager
from goneat.mapping.manifest import SchemaSource
from goneat.mapping.resolver import MappingResolver
from goneat.observability.logging import correlation_scope
from goneat.schema.documents import parse_data
from goneat.schema.errors import GoneatError
from goneat.schema.id_index import build_id_index_from_ref_dirs
from goneat.schema.registry import SchemaRegistry
from goneat.schema.validator import (
    validate_from_bytes_with_id_index,
    validate_from_bytes_with_ref_dirs,
)
from goneat.utils.concurrency import FileCancellation, FileJobPool, run_with_deadline
from goneat.utils.fs import PathTraversalError, clean_user_path, walk_files
from goneat.utils.globbing import match_any

if TYPE_CHECKING:
    from goneat.mapping.manager import LoadResult
    from goneat.mapping.resolver import Resolution
    from goneat.schema.id_index import IDIndex
    from goneat.schema.results import ValidationError, ValidationResult

DEFAULT_SUITE_TIMEOUT_SECONDS: Final[float] = 180.0

_DATA_SUFFIXES: Final[tuple[str, ...]] = (".yaml", ".yml", ".json")
_URL_PREFIXES: Final[tuple[str, ...]] = ("https://", "http://")


class SuiteError(GoneatError, ValueError):
    """Raised when a suite run cannot be set up or does not finish in time."""


class SchemaResolutionMode(StrEnum):
    PREFER_ID = "prefer-id"
    ID_STRICT = "id-strict"
    PATH_ONLY = "path-only"


class FileStatus(StrEnum):
    PASS = "pass"
    FAIL = "fail"
    EXPECTED_FAIL = "expected_fail"
    UNEXPECTED_PASS = "unexpected_pass"
    SKIPPED = "skipped"
    UNMAPPED = "unmapped"


def parse_schema_resolution(mode: str) -> SchemaResolutionMode:
    try:
        return SchemaResolutionMode(mode.strip().lower())
    except ValueError as exc:
        raise SuiteError(
            f"invalid --schema-resolution: {mode} (use prefer-id, id-strict, path-only)"
        ) from exc


def is_schema_id_url(schema_id: str) -> bool:
    return schema_id.strip().lower().startswith(_URL_PREFIXES)


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True, slots=True)
class SuiteOptions:
    data_root: str
    manifest_path: str = DEFAULT_MANIFEST_RELATIVE_PATH
    ref_dirs: tuple[str, ...] = ()
    skip: tuple[str, ...] = ()
    expect_fail: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    strict: bool = False
    fail_on_unmapped: bool = True
    schema_resolution: SchemaResolutionMode = SchemaResolutionMode.PREFER_ID
    max_workers: int = field(default_factory=_default_workers)
    timeout_seconds: float = DEFAULT_SUITE_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.data_root.strip():
            raise SuiteError("--data is required")
        if self.max_workers <= 0:
            raise SuiteError("max_workers must be > 0")
        if self.timeout_seconds <= 0:
            raise SuiteError("timeout_seconds must be > 0")

    def to_dict(self) -> dict[str, object]:
        return {
            "data_root": self.data_root,
            "manifest_path": self.manifest_path,
            "ref_dirs": list(self.ref_dirs),
            "skip": list(self.skip),
            "expect_fail": list(self.expect_fail),
            "exclude": list(self.exclude),
            "strict": self.strict,
            "fail_on_unmapped": self.fail_on_unmapped,
            "schema_resolution": self.schema_resolution.value,
            "max_workers": self.max_workers,
        }


@dataclass(frozen=True, slots=True)
class SchemaRef:
    id: str
    source: str
    path: str = ""

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"id": self.id, "source": self.source}
        if self.path:
            payload["path"] = self.path
        return payload


@dataclass(frozen=True, slots=True)
class SuiteFileResult:
    path: str
    status: FileStatus
    valid: bool
    schema: SchemaRef | None = None
    errors: tuple[ValidationError, ...] = ()
    error: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "path": self.path,
            "status": self.status.value,
            "valid": self.valid,
        }
        if self.schema is not None:
            payload["schema"] = self.schema.to_dict()
        if self.errors:
            payload["errors"] = [item.to_dict() for item in self.errors]
        if self.error:
            payload["error"] = self.error
        payload["duration_seconds"] = round(self.duration_seconds, 6)
        return payload


@dataclass(frozen=True, slots=True)
class SuiteSummary:
    total: int = 0
    validated: int = 0
    passed: int = 0
    failed: int = 0
    expected_fail: int = 0
    unexpected_pass: int = 0
    skipped: int = 0
    unmapped: int = 0

    @classmethod
    def from_results(cls, results: tuple[SuiteFileResult, ...]) -> SuiteSummary:
        counts = {status: 0 for status in FileStatus}
        for result in results:
            counts[result.status] += 1
        validated = (
            counts[FileStatus.PASS]
            + counts[FileStatus.FAIL]
            + counts[FileStatus.EXPECTED_FAIL]
            + counts[FileStatus.UNEXPECTED_PASS]
        )
        return cls(
            total=len(results),
            validated=validated,
            passed=counts[FileStatus.PASS],
            failed=counts[FileStatus.FAIL],
            expected_fail=counts[FileStatus.EXPECTED_FAIL],
            unexpected_pass=counts[FileStatus.UNEXPECTED_PASS],
            skipped=counts[FileStatus.SKIPPED],
            unmapped=counts[FileStatus.UNMAPPED],
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "validated": self.validated,
            "passed": self.passed,
            "failed": self.failed,
            "expected_fail": self.expected_fail,
            "unexpected_pass": self.unexpected_pass,
            "skipped": self.skipped,
            "unmapped": self.unmapped,
        }


@dataclass(frozen=True, slots=True)
class SuiteResult:
    repo_root: str
    options: SuiteOptions
    mapping: LoadResult
    summary: SuiteSummary
    files: tuple[SuiteFileResult, ...]
    duration_seconds: float = 0.0

    @property
    def should_fail(self) -> bool:
        summary = self.summary
        if summary.failed > 0 or summary.unexpected_pass > 0:
            return True
        if self.options.fail_on_unmapped and summary.unmapped > 0:
            return True
        return self.options.strict and (summary.skipped > 0 or summary.unmapped > 0)

    def to_dict(self) -> dict[str, object]:
        return {
            "metadata": {
                "tool": "goneat",
                "repo_root": self.repo_root,
                "duration_seconds": round(self.duration_seconds, 6),
                **self.options.to_dict(),
            },
            "mapping": self.mapping.to_dict(),
            "summary": self.summary.to_dict(),
            "files": [item.to_dict() for item in self.files],
        }

    def render_markdown(self) -> str:
        summary = self.summary
        lines = [
            "# Validation Suite Results",
            "",
            f"- Total: {summary.total}",
            f"- Passed: {summary.passed}",
            f"- Failed: {summary.failed}",
            f"- Expected fail: {summary.expected_fail}",
            f"- Unexpected pass: {summary.unexpected_pass}",
            f"- Skipped: {summary.skipped}",
            f"- Unmapped: {summary.unmapped}",
            "",
        ]
        if summary.failed == 0 and summary.unexpected_pass == 0 and summary.unmapped == 0:
            lines.append("Suite passed")
            return "\n".join(lines) + "\n"

        lines.append("Suite has failures")
        reported = {FileStatus.FAIL, FileStatus.UNEXPECTED_PASS, FileStatus.UNMAPPED}
        for item in self.files:
            if item.status not in reported:
                continue
            lines.extend(("", f"## {item.path} ({item.status.value})"))
            if item.schema is not None:
                lines.append(f"- Schema: {item.schema.id} ({item.schema.source})")
            if item.error:
                lines.append(f"- Error: {item.error}")
            lines.extend(f"- {error.path}: {error.message}" for error in item.errors)
        return "\n".join(lines) + "\n"


def infer_repo_root(data_root: str) -> str:
    """Return the nearest ancestor of ``data_root`` holding ``.git``, else ``data_root``."""

    try:
        clean = clean_user_path(data_root)
    except PathTraversalError as exc:
        raise SuiteError(f"invalid --data {data_root!r}: {exc}") from exc
    start = os.path.abspath(clean)
    current = start
    while True:
        if os.path.exists(os.path.join(current, ".git")):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return start
        current = parent


def discover_suite_files(
    repo_root: str,
    data_root: str,
    exclude: tuple[str, ...] = (),
) -> list[str]:
    """Return repository-relative data file paths under ``data_root`` in lexical order."""

    try:
        clean = clean_user_path(data_root)
    except PathTraversalError as exc:
        raise SuiteError(f"invalid data root {data_root!r}: {exc}") from exc
    root = os.path.abspath(clean)
    if not os.path.isdir(root):
        raise SuiteError(f"data root {root}: no such directory")

    discovered: list[str] = []
    for path in walk_files(root, accept=lambda item: item.name.lower().endswith(_DATA_SUFFIXES)):
        rel = _relative_to(repo_root, str(path))
        if match_any(exclude, rel):
            continue
        discovered.append(rel)
    return discovered


@dataclass(frozen=True, slots=True)
class _PlannedFile:
    rel_path: str
    full_path: str
    resolution: Resolution
    expect_fail: bool


class SuiteRunner:
    """Runs one validation suite; reusable across runs with the same registry."""

    def __init__(
        self,
        *,
        registry: SchemaRegistry | None = None,
        logger: Any | None = None,
    ) -> None:
        self._registry = registry if registry is not None else SchemaRegistry.default()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def run(self, options: SuiteOptions) -> SuiteResult:
        return asyncio.run(self.run_async(options))

    async def run_async(
        self,
        options: SuiteOptions,
        *,
        cancellation: FileCancellation | None = None,
    ) -> SuiteResult:
        with correlation_scope(run_id=f"suite-{uuid.uuid4().hex[:12]}"):
            return await self._run(options, cancellation)

    async def _run(
        self,
        options: SuiteOptions,
        cancellation: FileCancellation | None,
    ) -> SuiteResult:
        started = time.perf_counter()
        repo_root = infer_repo_root(options.data_root)
        try:
            manager = ManifestManager(self._registry, logger=self._logger)
            load_result = manager.load(
                LoadOptions(repo_root=repo_root, manifest_path=options.manifest_path)
            )
        except GoneatError as exc:
            raise SuiteError(f"load schema mapping manifest: {exc}") from exc

        files = discover_suite_files(repo_root, options.data_root, options.exclude)

        index: IDIndex | None = None
        if options.schema_resolution is not SchemaResolutionMode.PATH_ONLY and options.ref_dirs:
            index = build_id_index_from_ref_dirs(options.ref_dirs, logger=self._logger)

        resolver = MappingResolver(load_result.effective)
        early: list[SuiteFileResult] = []
        planned: list[_PlannedFile] = []
        for rel in files:
            if match_any(options.skip, rel):
                early.append(SuiteFileResult(path=rel, status=FileStatus.SKIPPED, valid=True))
                continue
            resolution, matched = resolver.resolve(rel)
            if matched and resolution.excluded:
                early.append(SuiteFileResult(path=rel, status=FileStatus.SKIPPED, valid=True))
                continue
            if not matched or not resolution.schema_id.strip():
                early.append(
                    SuiteFileResult(
                        path=rel,
                        status=FileStatus.UNMAPPED,
                        valid=False,
                        error="no schema mapping",
                    )
                )
                continue
            planned.append(
                _PlannedFile(
                    rel_path=rel,
                    full_path=os.path.join(repo_root, rel),
                    resolution=resolution,
                    expect_fail=match_any(options.expect_fail, rel),
                )
            )

        token = cancellation if cancellation is not None else FileCancellation()

        def validate(item: _PlannedFile) -> SuiteFileResult:
            return self._validate_one(item, repo_root, load_result, index, options)

        pool = FileJobPool(validate, max_workers=options.max_workers, cancellation=token)
        try:
            validated = await run_with_deadline(
                pool.run(planned), options.timeout_seconds, token
            )
        except TimeoutError as exc:
            raise SuiteError(
                f"validation suite timed out after {options.timeout_seconds} seconds"
            ) from exc

        results = tuple(sorted((*early, *validated), key=lambda item: item.path))
        summary = SuiteSummary.from_results(results)
        self._logger.info(
            "schema_suite_validated",
            repo_root=repo_root,
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            skipped=summary.skipped,
            unmapped=summary.unmapped,
        )
        return SuiteResult(
            repo_root=repo_root,
            options=options,
            mapping=load_result,
            summary=summary,
            files=results,
            duration_seconds=time.perf_counter() - started,
        )

    def _validate_one(
        self,
        item: _PlannedFile,
        repo_root: str,
        load_result: LoadResult,
        index: IDIndex | None,
        options: SuiteOptions,
    ) -> SuiteFileResult:
        started = time.perf_counter()
        resolution = item.resolution
        source = resolution.source or SchemaSource.EMBEDDED
        schema_ref = SchemaRef(id=resolution.schema_id, source=source.value)

        def failed(message: str, ref: SchemaRef | None = None) -> SuiteFileResult:
            return SuiteFileResult(
                path=item.rel_path,
                status=FileStatus.FAIL,
                valid=False,
                schema=ref or schema_ref,
                error=message,
                duration_seconds=time.perf_counter() - started,
            )

        schema_path = ""
        if source is SchemaSource.LOCAL:
            schema_path = _override_path(load_result, resolution.schema_id) or resolution.schema_id
            if not _looks_like_schema_path(schema_path):
                return failed(
                    f"local schema mapping for {resolution.schema_id!r} requires "
                    "overrides.path or schema_path"
                )
            try:
                schema_path = clean_user_path(schema_path)
            except PathTraversalError as exc:
                return failed(str(exc))
            if not os.path.isabs(schema_path):
                schema_path = os.path.normpath(os.path.join(repo_root, schema_path))
            schema_ref = SchemaRef(id=resolution.schema_id, source=source.value, path=schema_path)

        try:
            with open(item.full_path, "rb") as handle:
                data_bytes = handle.read()
        except OSError as exc:
            return failed(str(exc))

        try:
            if source is SchemaSource.EMBEDDED:
                compiled = self._registry.get_embedded_validator(resolution.schema_id)
                result = compiled.validate_bytes(data_bytes)
            elif source is SchemaSource.LOCAL:
                result = self._validate_local(schema_path, data_bytes, index, options)
            else:
                schema_id = resolution.schema_id.strip()
                if not is_schema_id_url(schema_id):
                    return failed(f"external schema_id must be an absolute URL: {schema_id!r}")
                if options.schema_resolution is SchemaResolutionMode.PATH_ONLY:
                    return failed(
                        "schema-resolution=path-only cannot resolve external schema_id "
                        f"{schema_id!r}"
                    )
                if index is None:
                    return failed(
                        f"cannot resolve external schema_id {schema_id!r} without --ref-dir"
                    )
                entry = index.get(schema_id)
                if entry is None:
                    return failed(f"schema_id not found in --ref-dir index: {schema_id!r}")
                schema_ref = SchemaRef(id=schema_id, source=source.value, path=entry.path)
                data, _ = parse_data(data_bytes)
                result = validate_from_bytes_with_id_index(
                    entry.normalized, data, index, declared_schema=entry.declared_schema
                )
        except (GoneatError, OSError) as exc:
            return failed(str(exc), schema_ref)

        return _classify(item, schema_ref, result, time.perf_counter() - started)

    def _validate_local(
        self,
        schema_path: str,
        data_bytes: bytes,
        index: IDIndex | None,
        options: SuiteOptions,
    ) -> ValidationResult:
        with open(schema_path, "rb") as handle:
            schema_bytes = handle.read()
        data, _ = parse_data(data_bytes)
        if index is not None:
            return validate_from_bytes_with_id_index(schema_bytes, data, index)
        return validate_from_bytes_with_ref_dirs(
            schema_bytes, data, options.ref_dirs, logger=self._logger
        )


def _classify(
    item: _PlannedFile,
    schema_ref: SchemaRef,
    result: ValidationResult,
    duration: float,
) -> SuiteFileResult:
    if result.valid:
        if item.expect_fail:
            return SuiteFileResult(
                path=item.rel_path,
                status=FileStatus.UNEXPECTED_PASS,
                valid=True,
                schema=schema_ref,
                error="file was expected to fail but passed",
                duration_seconds=duration,
            )
        status = FileStatus.PASS
    else:
        status = FileStatus.EXPECTED_FAIL if item.expect_fail else FileStatus.FAIL
    return SuiteFileResult(
        path=item.rel_path,
        status=status,
        valid=result.valid,
        schema=schema_ref,
        errors=result.errors,
        duration_seconds=duration,
    )


def _override_path(load_result: LoadResult, schema_id: str) -> str:
    wanted = schema_id.strip()
    if not wanted:
        return ""
    for override in load_result.effective.overrides:
        if override.schema_id.strip() == wanted and override.path.strip():
            return override.path.strip()
    return ""


def _looks_like_schema_path(candidate: str) -> bool:
    value = candidate.strip()
    if not value:
        return False
    if "/" in value or "\\" in value:
        return True
    return value.lower().endswith(_DATA_SUFFIXES)


def _relative_to(repo_root: str, path: str) -> str:
    rel = os.path.relpath(os.path.abspath(path), os.path.abspath(repo_root))
    normalized = rel.replace(os.sep, "/")
    return posixpath.normpath(normalized)


__all__ = [
    "DEFAULT_SUITE_TIMEOUT_SECONDS",
    "FileStatus",
    "SchemaRef",
    "SchemaResolutionMode",
    "SuiteError",
    "SuiteFileResult",
    "SuiteOptions",
    "SuiteResult",
    "SuiteRunner",
    "SuiteSummary",
    "infer_repo_root",
    "is_schema_id_url",
    "parse_schema_resolution",
]
