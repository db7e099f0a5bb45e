"""
goneat — unit tests for mapping manifest loading and composition

File: tests/unit/mapping/test_mapping_manager.py

Purpose
- Validate repository manifest discovery, path containment, schema validation, version
  handling and the built-in/repository merge.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from goneat.mapping import (
    ConfigSettings,
    ExclusionAction,
    InferenceMethod,
    LoadOptions,
    Manifest,
    ManifestError,
    ManifestManager,
    ManifestPathError,
    ManifestValidationError,
    MappingRule,
    Severity,
    UnsupportedManifestVersionError,
    builtin_manifest,
    merge_manifests,
)


def _write_manifest(repo: Path, text: str, rel: str = ".goneat/schema-mappings.yaml") -> Path:
    path = repo / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_manifest_falls_back_to_builtin(tmp_path: Path) -> None:
    result = ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))

    assert result.repository is None
    assert result.repository_path == ""
    assert result.effective == builtin_manifest()
    (diagnostic,) = result.diagnostics
    assert diagnostic.severity is Severity.INFO
    assert "using built-in defaults" in diagnostic.message
    assert diagnostic.source.endswith("schema-mappings.yaml")


def test_repository_rules_are_appended_after_builtin(tmp_path: Path) -> None:
    path = _write_manifest(
        tmp_path,
        """
version: "1.0.0"
config:
  strict_mode: true
mappings:
  - pattern: "config/app.yaml"
    schema_id: app-schema
    source: local
exclusions:
  - pattern: "tmp/**"
    action: skip
""",
    )

    result = ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))
    builtin = builtin_manifest()

    assert result.repository_path == str(path)
    assert result.diagnostics == ()
    assert result.effective.mappings[: len(builtin.mappings)] == builtin.mappings
    assert result.effective.mappings[-1].schema_id == "app-schema"
    assert result.effective.exclusions[-1].action is ExclusionAction.SKIP
    assert result.effective.config.strict_mode is True
    assert result.effective.config.min_confidence == builtin.config.min_confidence


def test_unset_repository_config_inherits_builtin_values(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "version: '1.0.0'\nconfig:\n  inference_enabled: false\n")

    result = ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))

    assert result.repository is not None
    assert result.repository.config.inference_enabled is False
    assert result.repository.config.cache_inferences is True
    assert result.repository.config.min_confidence == 0.75


def test_empty_version_defaults_to_v1(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "mappings:\n  - pattern: a.yaml\n    schema_id: a\n")

    result = ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))

    assert result.repository is not None
    assert result.repository.version == "1.0.0"


def test_other_versions_are_rejected(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "version: '2.0.0'\n")

    with pytest.raises(UnsupportedManifestVersionError, match="'2.0.0'"):
        ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))


def test_schema_invalid_manifest_is_rejected(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "version: '1.0.0'\nmappings:\n  - schema_id: missing-pattern\n")

    with pytest.raises(ManifestValidationError, match="failed validation"):
        ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))


def test_unparseable_manifest_is_rejected(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "{unbalanced: [")

    with pytest.raises(ManifestValidationError):
        ManifestManager().load(LoadOptions(repo_root=str(tmp_path)))


@pytest.mark.parametrize("manifest_path", ["../outside.yaml", "nested/../../outside.yaml"])
def test_traversal_in_manifest_path_is_rejected(tmp_path: Path, manifest_path: str) -> None:
    with pytest.raises(ManifestPathError, match="invalid manifest path"):
        ManifestManager().load(LoadOptions(repo_root=str(tmp_path), manifest_path=manifest_path))


def test_absolute_manifest_outside_root_is_rejected(tmp_path: Path) -> None:
    outside = _write_manifest(tmp_path, "version: '1.0.0'\n", rel="elsewhere/m.yaml")
    repo = tmp_path / "repo"
    repo.mkdir()

    with pytest.raises(ManifestPathError, match="escapes repository root"):
        ManifestManager().load(LoadOptions(repo_root=str(repo), manifest_path=str(outside)))


def test_custom_manifest_path_inside_root(tmp_path: Path) -> None:
    _write_manifest(tmp_path, "version: '1.0.0'\n", rel="conf/mappings.yaml")

    result = ManifestManager().load(
        LoadOptions(repo_root=str(tmp_path), manifest_path="conf/mappings.yaml")
    )
    assert result.repository is not None
    assert isinstance(result.to_dict()["effective"], dict)


def test_builtin_manifest_is_independent_copy() -> None:
    manager = ManifestManager()
    assert manager.builtin == builtin_manifest()
    assert manager.builtin is not manager.builtin


def test_config_merge_is_tri_state() -> None:
    base = ConfigSettings(strict_mode=True, min_confidence=0.5, max_suggestions=3)
    overlay = ConfigSettings(strict_mode=False, min_confidence=None)

    merged = base.merge(overlay)

    assert merged.strict_mode is False
    assert merged.min_confidence == 0.5
    assert merged.max_suggestions == 3
    assert overlay.with_defaults(base) == merged
    assert ConfigSettings().to_dict() == {}


def test_merge_manifests_concatenates_rules() -> None:
    base = Manifest(version="1.0.0", mappings=(MappingRule(pattern="a", schema_id="a"),))
    overlay = Manifest(mappings=(MappingRule(pattern="b", schema_id="b"),))

    merged = merge_manifests(base, overlay)

    assert [rule.pattern for rule in merged.mappings] == ["a", "b"]
    assert merged.version == "1.0.0"


def test_manifest_parsing_round_trips_to_dict() -> None:
    payload = {
        "version": "1.0.0",
        "config": {"min_confidence": 0.9},
        "mappings": [
            {
                "pattern": "schemas/**/*.yaml",
                "inference_method": "meta-schema",
                "conditions": [{"field": "$schema", "exists": True}],
            }
        ],
        "exclusions": [{"content_pattern": {"field": "kind", "equals": "fixture"}}],
        "overrides": [{"schema_id": "x", "source": "local", "path": "schemas/x.json"}],
    }

    manifest = Manifest.from_mapping(payload)

    assert manifest.mappings[0].inference_method is InferenceMethod.META_SCHEMA
    assert manifest.find_override("x") is not None
    assert manifest.find_override("y") is None
    assert manifest.to_dict() == payload


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"mappings": "nope"}, "mappings: expected array"),
        ({"mappings": [{"pattern": " "}]}, "mappings[0].pattern: must be at least 1"),
        ({"config": {"strict_mode": "yes"}}, "config: expected boolean"),
        ({"exclusions": [{"action": "drop"}]}, "invalid value 'drop'"),
    ],
)
def test_manifest_parse_errors_name_the_field(payload: dict[str, object], message: str) -> None:
    with pytest.raises(ManifestError) as excinfo:
        Manifest.from_mapping(payload)
    assert message in str(excinfo.value)
