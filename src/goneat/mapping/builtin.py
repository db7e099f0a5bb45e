"""Built-in mapping manifest shipped with goneat."""

from __future__ import annotations

from typing import Final

from goneat.mapping.manifest import (
    MANIFEST_VERSION_V1,
    ConfigSettings,
    ExclusionAction,
    ExclusionRule,
    InferenceMethod,
    Manifest,
    MappingPriority,
    MappingRule,
    SchemaSource,
)

_BUILTIN_MANIFEST: Final[Manifest] = Manifest(
    version=MANIFEST_VERSION_V1,
    config=ConfigSettings(
        inference_enabled=True,
        fallback_to_content=True,
        strict_mode=False,
        cache_inferences=True,
        respect_exclusions=True,
        auto_suggest_exclusions=False,
        min_confidence=0.75,
    ),
    mappings=(
        MappingRule(
            pattern="config/ascii/terminal-overrides.yaml",
            schema_id="terminal-overrides-v1.0.0",
            source=SchemaSource.EMBEDDED,
            priority=MappingPriority.HIGH,
        ),
        MappingRule(
            pattern=".goneat/config.yaml",
            schema_id="goneat-config-v1.0.0",
            source=SchemaSource.EMBEDDED,
            priority=MappingPriority.HIGH,
        ),
        MappingRule(
            pattern=".goneat/hooks.yaml",
            schema_id="hooks-manifest-v1.0.0",
            source=SchemaSource.EMBEDDED,
            priority=MappingPriority.HIGH,
        ),
        MappingRule(
            pattern="**/*-config.yaml",
            inference_method=InferenceMethod.CONTENT,
            priority=MappingPriority.NORMAL,
        ),
        MappingRule(
            pattern="**/database.yaml",
            schema_id="database-config-v1.0.0",
            source=SchemaSource.EMBEDDED,
            priority=MappingPriority.NORMAL,
        ),
        MappingRule(
            pattern="schemas/**/*.yaml",
            inference_method=InferenceMethod.META_SCHEMA,
            priority=MappingPriority.LOW,
        ),
    ),
    exclusions=(
        ExclusionRule(
            pattern="test/fixtures/**/*.yaml",
            reason="Test fixtures, not validated",
            action=ExclusionAction.SKIP,
        ),
        ExclusionRule(
            pattern="docs/examples/**/*.json",
            reason="Documentation examples",
            action=ExclusionAction.SKIP,
        ),
        ExclusionRule(
            pattern="tools/*/output.yaml",
            exclude_schema="goneat-config-v1.0.0",
            reason="Tool outputs should not use goneat config schema",
            action=ExclusionAction.RETRY_INFERENCE,
        ),
        ExclusionRule(
            pattern="logs/*.json",
            exclude_schema="*",
            reason="Log files",
            action=ExclusionAction.SKIP,
        ),
    ),
)


def builtin_manifest() -> Manifest:
    """Return a copy of the default mapping behaviour distributed with goneat."""

    return _BUILTIN_MANIFEST.clone()


__all__ = ["builtin_manifest"]
