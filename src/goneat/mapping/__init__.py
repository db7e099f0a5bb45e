"""goneat schema mapping: manifest model, built-in defaults, loading and resolution."""

from goneat.mapping.builtin import builtin_manifest
from goneat.mapping.manager import (
    DEFAULT_MANIFEST_RELATIVE_PATH,
    Diagnostic,
    LoadOptions,
    LoadResult,
    ManifestManager,
    Severity,
)
from goneat.mapping.manifest import (
    MANIFEST_VERSION_V1,
    Condition,
    ConfigSettings,
    ContentCondition,
    ExclusionAction,
    ExclusionRule,
    InferenceMethod,
    Manifest,
    ManifestError,
    ManifestPathError,
    ManifestValidationError,
    MappingPriority,
    MappingRule,
    OverrideRule,
    SchemaSource,
    UnsupportedManifestVersionError,
    merge_manifests,
)
from goneat.mapping.resolver import MappingResolver, Resolution, ResolverMetrics, match_pattern

__all__ = [
    "DEFAULT_MANIFEST_RELATIVE_PATH",
    "MANIFEST_VERSION_V1",
    "Condition",
    "ConfigSettings",
    "ContentCondition",
    "Diagnostic",
    "ExclusionAction",
    "ExclusionRule",
    "InferenceMethod",
    "LoadOptions",
    "LoadResult",
    "Manifest",
    "ManifestError",
    "ManifestManager",
    "ManifestPathError",
    "ManifestValidationError",
    "MappingPriority",
    "MappingResolver",
    "MappingRule",
    "OverrideRule",
    "Resolution",
    "ResolverMetrics",
    "SchemaSource",
    "Severity",
    "UnsupportedManifestVersionError",
    "builtin_manifest",
    "match_pattern",
    "merge_manifests",
]
