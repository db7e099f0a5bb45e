"""
goneat — mapping manifest loading and composition.

File: src/goneat/mapping/manager.py

Purpose
- Load the optional repository manifest, validate it against the embedded manifest
  schema, and compose it with the built-in manifest.

Functional requirements
- The manifest path is sanitized and must stay inside the repository root.
- A missing repository manifest is not an error: the built-in manifest is used and an
  info diagnostic is recorded.
- Unset repository config fields inherit the built-in values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

import structlog

from goneat.mapping.builtin import builtin_manifest
from goneat.mapping.manifest import (
    MANIFEST_VERSION_V1,
    Manifest,
    ManifestError,
    ManifestPathError,
    ManifestValidationError,
    UnsupportedManifestVersionError,
    merge_manifests,
)
from goneat.schema.documents import parse_data
from goneat.schema.errors import DataFormatError, GoneatError
from goneat.schema.registry import SchemaRegistry
from goneat.utils.fs import PathTraversalError, clean_user_path, ensure_within_root

if TYPE_CHECKING:
    from goneat.schema.results import CompiledSchema, ValidationResult

DEFAULT_MANIFEST_RELATIVE_PATH: Final[str] = ".goneat/schema-mappings.yaml"
MANIFEST_SCHEMA_NAME: Final[str] = "schema-mapping-manifest-v1.0.0"


class Severity(StrEnum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: Severity
    message: str
    source: str = ""

    def to_dict(self) -> dict[str, object]:
        return {"severity": self.severity.value, "message": self.message, "source": self.source}


@dataclass(frozen=True, slots=True)
class LoadOptions:
    repo_root: str = "."
    manifest_path: str = DEFAULT_MANIFEST_RELATIVE_PATH


@dataclass(frozen=True, slots=True)
class LoadResult:
    builtin: Manifest
    repository: Manifest | None
    repository_path: str
    effective: Manifest
    diagnostics: tuple[Diagnostic, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "builtin": self.builtin.to_dict(),
            "repository": None if self.repository is None else self.repository.to_dict(),
            "repository_path": self.repository_path,
            "effective": self.effective.to_dict(),
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.diagnostics],
        }


class ManifestManager:
    """Loads, validates and composes schema mapping manifests."""

    def __init__(
        self,
        registry: SchemaRegistry | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        source = registry if registry is not None else SchemaRegistry.default()
        try:
            self._validator: CompiledSchema = source.get_embedded_validator(MANIFEST_SCHEMA_NAME)
        except GoneatError as exc:
            raise ManifestError(f"load embedded manifest validator: {exc}") from exc
        self._builtin = builtin_manifest()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def builtin(self) -> Manifest:
        return self._builtin.clone()

    def load(self, options: LoadOptions | None = None) -> LoadResult:
        opts = options or LoadOptions()
        repository, repository_path, diagnostics = self._load_repository_manifest(opts)

        effective = self._builtin.clone()
        if repository is not None:
            effective = merge_manifests(effective, repository)
        return LoadResult(
            builtin=self._builtin.clone(),
            repository=repository,
            repository_path=repository_path,
            effective=effective,
            diagnostics=diagnostics,
        )

    def _load_repository_manifest(
        self,
        opts: LoadOptions,
    ) -> tuple[Manifest | None, str, tuple[Diagnostic, ...]]:
        repo_root = opts.repo_root or "."
        manifest_rel = opts.manifest_path or DEFAULT_MANIFEST_RELATIVE_PATH

        try:
            sanitized = clean_user_path(manifest_rel)
        except PathTraversalError as exc:
            raise ManifestPathError(f"invalid manifest path {manifest_rel!r}: {exc}") from exc

        manifest_path = os.path.join(repo_root, sanitized)
        try:
            ensure_within_root(repo_root, manifest_path)
        except PathTraversalError as exc:
            raise ManifestPathError(
                f"manifest path {os.path.abspath(manifest_path)} escapes repository root "
                f"{os.path.abspath(repo_root)}"
            ) from exc

        try:
            with open(manifest_path, "rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            self._logger.debug("mapping_manifest_missing", manifest_path=manifest_path)
            diagnostic = Diagnostic(
                severity=Severity.INFO,
                message=(
                    "schema mapping manifest not found; using built-in defaults "
                    f"({manifest_path})"
                ),
                source=manifest_path,
            )
            return None, "", (diagnostic,)
        except OSError as exc:
            raise ManifestError(f"read manifest {manifest_path}: {exc}") from exc

        try:
            validation = self._validator.validate_bytes(data)
        except DataFormatError as exc:
            raise ManifestValidationError(f"validate manifest {manifest_path}: {exc}") from exc
        if not validation.valid:
            raise ManifestValidationError(
                f"manifest {manifest_path} failed validation: {_flatten_errors(validation)}"
            )

        payload, _ = parse_data(data)
        manifest = Manifest.from_mapping(payload)
        if not manifest.version:
            manifest = replace(manifest, version=MANIFEST_VERSION_V1)
        if manifest.version != MANIFEST_VERSION_V1:
            raise UnsupportedManifestVersionError(
                f"unsupported schema mapping manifest version {manifest.version!r} "
                f"(expected {MANIFEST_VERSION_V1})"
            )

        manifest = replace(manifest, config=manifest.config.with_defaults(self._builtin.config))
        return manifest, manifest_path, ()


def _flatten_errors(result: ValidationResult) -> str:
    if not result.errors:
        return "unknown validation failure"
    messages: list[str] = []
    for error in result.errors:
        message = error.message
        if error.context is not None and error.context.source_file:
            message = f"{message} ({error.context.source_file})"
        messages.append(message)
    return "; ".join(messages)


__all__ = [
    "DEFAULT_MANIFEST_RELATIVE_PATH",
    "MANIFEST_SCHEMA_NAME",
    "Diagnostic",
    "LoadOptions",
    "LoadResult",
    "ManifestManager",
    "Severity",
]
