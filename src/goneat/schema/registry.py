"""
goneat — embedded schema registry.

File: src/goneat/schema/registry.py

Purpose
- Compile embedded schemas by logical name and cache them for the life of the registry.

What should be included in this file
- ``SchemaRegistry`` constructed explicitly over an ``AssetProvider``.
- Eager ``populate()`` from ``get_schema_names()`` and lazy compile on miss.
- The legacy name -> path table consulted after the discovered table.

Functional requirements
- Reads of cached names never take the lock.
- Compilation happens outside the lock; the first inserted entry wins.
- Entries are never evicted.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Final

import structlog

from goneat.assets.provider import EmbeddedAssets
from goneat.schema.errors import GoneatError, SchemaNotFoundError
from goneat.schema.validator import compile_schema

if TYPE_CHECKING:
    from collections.abc import Mapping

    from goneat.assets.provider import AssetProvider
    from goneat.config.loader import GoneatSettings
    from goneat.schema.results import CompiledSchema, ValidationResult

_LEGACY_SCHEMA_PATHS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "goneat-config-v1.0.0": "embedded_schemas/schemas/config/v1.0.0/goneat-config.yaml",
        "dates": "embedded_schemas/schemas/config/v1.0.0/dates.yaml",
        "lifecycle-phase-v1.0.0": "embedded_schemas/config/lifecycle-phase-v1.0.0.json",
        "release-phase-v1.0.0": "embedded_schemas/config/release-phase-v1.0.0.json",
        "security-policy-v1.0.0": "embedded_schemas/config/security-policy-v1.0.0.yaml",
        "suppression-report-v1.0.0": "embedded_schemas/output/suppression-report-v1.0.0.yaml",
        "hooks-manifest-v1.0.0": "embedded_schemas/schemas/work/v1.0.0/hooks-manifest.yaml",
        "work-manifest-v1.0.0": "embedded_schemas/work/work-manifest-v1.0.0.yaml",
    }
)
_LEGACY_FALLBACK_DIR: Final[str] = "embedded_schemas/config/"


def legacy_schema_path(name: str) -> str:
    """Map a well-known schema name to its embedded path, defaulting to ``config/<name>.yaml``."""

    return _LEGACY_SCHEMA_PATHS.get(name, f"{_LEGACY_FALLBACK_DIR}{name}.yaml")


class SchemaRegistry:
    """Append-only cache of compiled embedded schemas keyed by logical name."""

    _default: ClassVar[SchemaRegistry | None] = None
    _default_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        provider: AssetProvider,
        *,
        settings: GoneatSettings | None = None,
        logger: Any | None = None,
    ) -> None:
        self._provider = provider
        self._settings = settings
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._lock = threading.Lock()
        self._compiled: dict[str, CompiledSchema] = {}
        self._paths: dict[str, str] = {}
        self._discovered: dict[str, str] | None = None

    @classmethod
    def default(cls) -> SchemaRegistry:
        """Return the process-wide registry over ``EmbeddedAssets``, populated on first use."""

        registry = cls._default
        if registry is not None:
            return registry
        with cls._default_lock:
            if cls._default is None:
                created = cls(EmbeddedAssets())
                created.populate()
                cls._default = created
            return cls._default

    @property
    def provider(self) -> AssetProvider:
        return self._provider

    def populate(self) -> int:
        """Compile every discovered schema; return how many compiled successfully."""

        discovered: dict[str, str] = {}
        compiled_count = 0
        for info in self._provider.get_schema_names():
            discovered[info.name] = info.path
            data, found = self._provider.get_schema(info.path)
            if not found:
                continue
            try:
                compiled = compile_schema(data, settings=self._settings)
            except GoneatError as exc:
                self._logger.debug(
                    "schema_registry_compile_failed",
                    schema_name=info.name,
                    schema_path=info.path,
                    error=str(exc),
                )
                continue
            self._store(info.name, info.path, compiled)
            compiled_count += 1

        with self._lock:
            self._discovered = discovered
        return compiled_count

    def names(self) -> list[str]:
        return sorted(self._compiled)

    def get_embedded_validator(self, name: str) -> CompiledSchema:
        """Return the compiled schema for ``name``, compiling it on first request."""

        compiled = self._compiled.get(name)
        if compiled is not None:
            return compiled

        path = self._resolve_path(name)
        data, found = self._provider.get_schema(path)
        if not found:
            raise SchemaNotFoundError(f"schema {name!r} not found (looked up {path})")
        return self._store(name, path, compile_schema(data, settings=self._settings))

    def new_validator_from_embedded_path(self, path: str) -> CompiledSchema:
        """Compile an embedded schema by path without caching it."""

        data, found = self._provider.get_schema(path)
        if not found:
            raise SchemaNotFoundError(f"embedded schema not found: {path}")
        return compile_schema(data, settings=self._settings)

    def validate(self, data: object, name: str) -> ValidationResult:
        return self.get_embedded_validator(name).validate(data)

    def _resolve_path(self, name: str) -> str:
        known = self._paths.get(name)
        if known is not None:
            return known
        discovered = self._discovered
        if discovered is None:
            discovered = {info.name: info.path for info in self._provider.get_schema_names()}
            with self._lock:
                if self._discovered is None:
                    self._discovered = discovered
        return discovered.get(name) or legacy_schema_path(name)

    def _store(self, name: str, path: str, compiled: CompiledSchema) -> CompiledSchema:
        with self._lock:
            existing = self._compiled.setdefault(name, compiled)
            self._paths.setdefault(name, path)
        return existing


__all__ = ["SchemaRegistry", "legacy_schema_path"]
