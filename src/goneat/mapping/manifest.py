"""
goneat — schema mapping manifest model.

File: src/goneat/mapping/manifest.py

Purpose
- Typed, immutable representation of ``.goneat/schema-mappings.yaml`` documents.

What should be included in this file
- Enumerations for inference methods, schema sources, priorities and exclusion actions.
- Tri-state ``ConfigSettings`` (``None`` means unset) with overlay merge semantics.
- Parsing from plain mappings and serialization back to plain dictionaries.

Functional requirements
- ``ConfigSettings.merge``: non-``None`` overlay fields win, everything else is kept.
- ``merge_manifests`` concatenates rule lists, base first, so later rules take priority
  during reverse-order resolution.
- Manifests are frozen; ``clone`` returns a structurally independent copy.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import StrEnum
from typing import Final, NoReturn, TypeVar

from goneat.schema.errors import GoneatError

MANIFEST_VERSION_V1: Final[str] = "1.0.0"

TEnum = TypeVar("TEnum", bound=StrEnum)


class ManifestError(GoneatError, ValueError):
    """Raised when a mapping manifest cannot be loaded or parsed."""


class ManifestPathError(ManifestError):
    """Raised when the manifest path escapes the repository root."""


class ManifestValidationError(ManifestError):
    """Raised when a repository manifest fails schema validation."""


class UnsupportedManifestVersionError(ManifestError):
    """Raised for any manifest version other than ``1.0.0``."""


class InferenceMethod(StrEnum):
    NONE = "none"
    CONTENT = "content"
    META_SCHEMA = "meta-schema"


class SchemaSource(StrEnum):
    EMBEDDED = "embedded"
    EXTERNAL = "external"
    LOCAL = "local"


class MappingPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ExclusionAction(StrEnum):
    SKIP = "skip"
    RETRY_INFERENCE = "retry_inference"


@dataclass(frozen=True, slots=True)
class ConfigSettings:
    """Mapper tuning knobs; ``None`` distinguishes "unset" from an explicit value."""

    inference_enabled: bool | None = None
    fallback_to_content: bool | None = None
    strict_mode: bool | None = None
    cache_inferences: bool | None = None
    respect_exclusions: bool | None = None
    auto_suggest_exclusions: bool | None = None
    min_confidence: float | None = None
    max_suggestions: int | None = None

    def merge(self, overlay: ConfigSettings) -> ConfigSettings:
        updates = {
            item.name: getattr(overlay, item.name)
            for item in fields(self)
            if getattr(overlay, item.name) is not None
        }
        return replace(self, **updates)

    def with_defaults(self, defaults: ConfigSettings) -> ConfigSettings:
        return defaults.merge(self)

    @classmethod
    def from_mapping(cls, data: object, path: str = "config") -> ConfigSettings:
        if data is None:
            return cls()
        parsed = _expect_object(data, path)
        return cls(
            inference_enabled=_as_optional_bool(parsed.get("inference_enabled"), path),
            fallback_to_content=_as_optional_bool(parsed.get("fallback_to_content"), path),
            strict_mode=_as_optional_bool(parsed.get("strict_mode"), path),
            cache_inferences=_as_optional_bool(parsed.get("cache_inferences"), path),
            respect_exclusions=_as_optional_bool(parsed.get("respect_exclusions"), path),
            auto_suggest_exclusions=_as_optional_bool(
                parsed.get("auto_suggest_exclusions"), path
            ),
            min_confidence=_as_optional_float(parsed.get("min_confidence"), path),
            max_suggestions=_as_optional_int(parsed.get("max_suggestions"), path),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(frozen=True, slots=True)
class Condition:
    field: str
    exists: bool | None = None
    equals: object = None
    schema_id: str = ""

    @classmethod
    def from_mapping(cls, data: object, path: str) -> Condition:
        parsed = _expect_object(data, path)
        return cls(
            field=_as_str(parsed.get("field"), f"{path}.field"),
            exists=_as_optional_bool(parsed.get("exists"), f"{path}.exists"),
            equals=parsed.get("equals"),
            schema_id=_as_str(parsed.get("schema_id", ""), f"{path}.schema_id", min_len=0),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"field": self.field}
        if self.exists is not None:
            payload["exists"] = self.exists
        if self.equals is not None:
            payload["equals"] = self.equals
        if self.schema_id:
            payload["schema_id"] = self.schema_id
        return payload


@dataclass(frozen=True, slots=True)
class ContentCondition:
    field: str
    exists: bool | None = None
    equals: object = None

    @classmethod
    def from_mapping(cls, data: object, path: str) -> ContentCondition:
        parsed = _expect_object(data, path)
        return cls(
            field=_as_str(parsed.get("field"), f"{path}.field"),
            exists=_as_optional_bool(parsed.get("exists"), f"{path}.exists"),
            equals=parsed.get("equals"),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"field": self.field}
        if self.exists is not None:
            payload["exists"] = self.exists
        if self.equals is not None:
            payload["equals"] = self.equals
        return payload


@dataclass(frozen=True, slots=True)
class MappingRule:
    """Associates a glob pattern with a schema (or, eventually, an inference method)."""

    pattern: str
    schema_id: str = ""
    inference_method: InferenceMethod | None = None
    fallback_schema: str = ""
    source: SchemaSource | None = None
    priority: MappingPriority | None = None
    conditions: tuple[Condition, ...] = ()

    @classmethod
    def from_mapping(cls, data: object, path: str) -> MappingRule:
        parsed = _expect_object(data, path)
        return cls(
            pattern=_as_str(parsed.get("pattern"), f"{path}.pattern"),
            schema_id=_as_str(parsed.get("schema_id", ""), f"{path}.schema_id", min_len=0),
            inference_method=_as_optional_enum(
                InferenceMethod, parsed.get("inference_method"), f"{path}.inference_method"
            ),
            fallback_schema=_as_str(
                parsed.get("fallback_schema", ""), f"{path}.fallback_schema", min_len=0
            ),
            source=_as_optional_enum(SchemaSource, parsed.get("source"), f"{path}.source"),
            priority=_as_optional_enum(
                MappingPriority, parsed.get("priority"), f"{path}.priority"
            ),
            conditions=tuple(
                Condition.from_mapping(item, f"{path}.conditions[{index}]")
                for index, item in enumerate(_as_sequence(parsed.get("conditions"), path))
            ),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"pattern": self.pattern}
        if self.schema_id:
            payload["schema_id"] = self.schema_id
        if self.inference_method is not None:
            payload["inference_method"] = self.inference_method.value
        if self.fallback_schema:
            payload["fallback_schema"] = self.fallback_schema
        if self.source is not None:
            payload["source"] = self.source.value
        if self.priority is not None:
            payload["priority"] = self.priority.value
        if self.conditions:
            payload["conditions"] = [condition.to_dict() for condition in self.conditions]
        return payload


@dataclass(frozen=True, slots=True)
class ExclusionRule:
    pattern: str = ""
    content_pattern: ContentCondition | None = None
    exclude_schema: str = ""
    reason: str = ""
    action: ExclusionAction | None = None

    @classmethod
    def from_mapping(cls, data: object, path: str) -> ExclusionRule:
        parsed = _expect_object(data, path)
        content = parsed.get("content_pattern")
        return cls(
            pattern=_as_str(parsed.get("pattern", ""), f"{path}.pattern", min_len=0),
            content_pattern=(
                None
                if content is None
                else ContentCondition.from_mapping(content, f"{path}.content_pattern")
            ),
            exclude_schema=_as_str(
                parsed.get("exclude_schema", ""), f"{path}.exclude_schema", min_len=0
            ),
            reason=_as_str(parsed.get("reason", ""), f"{path}.reason", min_len=0),
            action=_as_optional_enum(ExclusionAction, parsed.get("action"), f"{path}.action"),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.pattern:
            payload["pattern"] = self.pattern
        if self.content_pattern is not None:
            payload["content_pattern"] = self.content_pattern.to_dict()
        if self.exclude_schema:
            payload["exclude_schema"] = self.exclude_schema
        if self.reason:
            payload["reason"] = self.reason
        if self.action is not None:
            payload["action"] = self.action.value
        return payload


@dataclass(frozen=True, slots=True)
class OverrideRule:
    schema_id: str
    source: str = ""
    path: str = ""

    @classmethod
    def from_mapping(cls, data: object, path: str) -> OverrideRule:
        parsed = _expect_object(data, path)
        return cls(
            schema_id=_as_str(parsed.get("schema_id"), f"{path}.schema_id"),
            source=_as_str(parsed.get("source", ""), f"{path}.source", min_len=0),
            path=_as_str(parsed.get("path", ""), f"{path}.path", min_len=0),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"schema_id": self.schema_id}
        if self.source:
            payload["source"] = self.source
        if self.path:
            payload["path"] = self.path
        return payload


@dataclass(frozen=True, slots=True)
class Manifest:
    """Full mapping declaration for a repository."""

    version: str = ""
    config: ConfigSettings = ConfigSettings()
    mappings: tuple[MappingRule, ...] = ()
    exclusions: tuple[ExclusionRule, ...] = ()
    overrides: tuple[OverrideRule, ...] = ()

    def clone(self) -> Manifest:
        # Every field is immutable, so a shallow copy shares nothing mutable.
        return replace(self)

    def find_override(self, schema_id: str) -> OverrideRule | None:
        """Return the last-declared override for ``schema_id``."""

        for rule in reversed(self.overrides):
            if rule.schema_id == schema_id:
                return rule
        return None

    @classmethod
    def from_mapping(cls, data: object) -> Manifest:
        if data is None:
            return cls()
        parsed = _expect_object(data, "manifest")
        version = parsed.get("version", "")
        return cls(
            version="" if version is None else _as_str(version, "version", min_len=0),
            config=ConfigSettings.from_mapping(parsed.get("config")),
            mappings=tuple(
                MappingRule.from_mapping(item, f"mappings[{index}]")
                for index, item in enumerate(_as_sequence(parsed.get("mappings"), "mappings"))
            ),
            exclusions=tuple(
                ExclusionRule.from_mapping(item, f"exclusions[{index}]")
                for index, item in enumerate(
                    _as_sequence(parsed.get("exclusions"), "exclusions")
                )
            ),
            overrides=tuple(
                OverrideRule.from_mapping(item, f"overrides[{index}]")
                for index, item in enumerate(_as_sequence(parsed.get("overrides"), "overrides"))
            ),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"version": self.version}
        config = self.config.to_dict()
        if config:
            payload["config"] = config
        if self.mappings:
            payload["mappings"] = [rule.to_dict() for rule in self.mappings]
        if self.exclusions:
            payload["exclusions"] = [rule.to_dict() for rule in self.exclusions]
        if self.overrides:
            payload["overrides"] = [rule.to_dict() for rule in self.overrides]
        return payload


def merge_manifests(base: Manifest, overlay: Manifest) -> Manifest:
    """Overlay config fields and append overlay rules after the base rules."""

    return replace(
        base,
        config=base.config.merge(overlay.config),
        mappings=base.mappings + overlay.mappings,
        exclusions=base.exclusions + overlay.exclusions,
        overrides=base.overrides + overlay.overrides,
    )


def _fail(path: str, message: str) -> NoReturn:
    raise ManifestError(f"{path}: {message}")


def _expect_object(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_sequence(value: object, path: str) -> list[object]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str(value: object, path: str, *, min_len: int = 1) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    return normalized


def _as_optional_bool(value: object, path: str) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_optional_float(value: object, path: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    return parsed


def _as_optional_int(value: object, path: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    return value


def _as_optional_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


__all__ = [
    "MANIFEST_VERSION_V1",
    "Condition",
    "ConfigSettings",
    "ContentCondition",
    "ExclusionAction",
    "ExclusionRule",
    "InferenceMethod",
    "Manifest",
    "ManifestError",
    "ManifestPathError",
    "ManifestValidationError",
    "MappingPriority",
    "MappingRule",
    "OverrideRule",
    "SchemaSource",
    "UnsupportedManifestVersionError",
    "merge_manifests",
]
