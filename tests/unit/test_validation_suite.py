"""
goneat — unit tests for bulk suite validation

File: tests/unit/test_validation_suite.py

Purpose
- Validate discovery, per-file classification for embedded, local and external schema
  sources, the pass/fail verdict and the JSON / markdown renderings.
"""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from goneat.observability.logging import LoggingConfig, configure_logging
from goneat.suite import (
    FileStatus,
    SchemaResolutionMode,
    SuiteError,
    SuiteOptions,
    SuiteRunner,
    discover_suite_files,
    infer_repo_root,
    is_schema_id_url,
    parse_schema_resolution,
)

MANIFEST = """
version: "1.0.0"
mappings:
  - pattern: "data/apps/*.yaml"
    schema_id: "schemas/app.json"
    source: local
  - pattern: "data/ext/*.json"
    schema_id: "https://x/root"
    source: external
exclusions:
  - pattern: "data/tmp/**"
    reason: scratch files
    action: skip
"""

APP_SCHEMA = {
    "type": "object",
    "required": ["name"],
    "properties": {"name": {"type": "string"}},
}
ROOT_SCHEMA = {
    "$id": "https://x/root",
    "type": "object",
    "properties": {"k": {"$ref": "https://x/types#/$defs/slug"}},
    "required": ["k"],
}
TYPES_SCHEMA = {
    "$id": "https://x/types",
    "$defs": {"slug": {"type": "string", "pattern": "^[a-z0-9-]+$"}},
}
DRAFT7 = "http://json-schema.org/draft-07/schema#"


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    (tmp_path / ".git").mkdir()
    _write(tmp_path / ".goneat" / "schema-mappings.yaml", MANIFEST)
    _write(tmp_path / "schemas" / "app.json", json.dumps(APP_SCHEMA))
    _write(tmp_path / "refs" / "root.json", json.dumps(ROOT_SCHEMA))
    _write(tmp_path / "refs" / "types.json", json.dumps(TYPES_SCHEMA))

    data = tmp_path / "data"
    _write(data / "hooks.yaml", "version: '1.0.0'\nhooks:\n  pre-commit:\n    - command: make\n")
    _write(data / "apps" / "good.yaml", "name: web\n")
    _write(data / "apps" / "bad.yaml", "name: 1\n")
    _write(data / "ext" / "ok.json", '{"k": "abc"}')
    _write(data / "ext" / "wrong.json", '{"k": "Not Slug!"}')
    _write(data / "tmp" / "scratch.yaml", "anything: true\n")
    _write(data / "misc" / "notes.json", "{}")
    _write(data / "skipme.yaml", "x: 1\n")
    _write(data / "readme.md", "# not data\n")
    return tmp_path


def _options(repo: Path, **overrides: object) -> SuiteOptions:
    values: dict[str, object] = {
        "data_root": str(repo / "data"),
        "ref_dirs": (str(repo / "refs"),),
        "skip": ("data/skipme.yaml",),
        "expect_fail": ("data/apps/bad.yaml",),
        "max_workers": 2,
        "timeout_seconds": 30.0,
    }
    values.update(overrides)
    return SuiteOptions(**values)  # type: ignore[arg-type]


def _statuses(result: object) -> dict[str, FileStatus]:
    return {item.path: item.status for item in result.files}  # type: ignore[attr-defined]


def test_suite_classifies_every_discovered_file(repo: Path) -> None:
    result = SuiteRunner().run(_options(repo))

    assert result.repo_root == str(repo)
    assert _statuses(result) == {
        "data/apps/bad.yaml": FileStatus.EXPECTED_FAIL,
        "data/apps/good.yaml": FileStatus.PASS,
        "data/ext/ok.json": FileStatus.PASS,
        "data/ext/wrong.json": FileStatus.FAIL,
        "data/hooks.yaml": FileStatus.PASS,
        "data/misc/notes.json": FileStatus.UNMAPPED,
        "data/skipme.yaml": FileStatus.SKIPPED,
        "data/tmp/scratch.yaml": FileStatus.SKIPPED,
    }
    assert [item.path for item in result.files] == sorted(_statuses(result))

    summary = result.summary
    assert summary.total == 8
    assert summary.validated == 5
    assert summary.passed == 3
    assert summary.failed == 1
    assert summary.expected_fail == 1
    assert summary.skipped == 2
    assert summary.unmapped == 1
    assert result.should_fail


def test_schema_references_are_reported(repo: Path) -> None:
    result = SuiteRunner().run(_options(repo))
    by_path = {item.path: item for item in result.files}

    hooks = by_path["data/hooks.yaml"].schema
    assert hooks is not None
    assert (hooks.id, hooks.source) == ("hooks-manifest-v1.0.0", "embedded")

    local = by_path["data/apps/good.yaml"].schema
    assert local is not None
    assert local.source == "local"
    assert local.path == str(repo / "schemas" / "app.json")

    external = by_path["data/ext/wrong.json"]
    assert external.schema is not None
    assert external.schema.path == str(repo / "refs" / "root.json")
    assert [error.path for error in external.errors] == ["k"]

    assert by_path["data/misc/notes.json"].error == "no schema mapping"


def test_external_mapping_without_ref_dirs_fails(repo: Path) -> None:
    result = SuiteRunner().run(_options(repo, ref_dirs=()))
    by_path = {item.path: item for item in result.files}

    assert by_path["data/ext/ok.json"].status is FileStatus.FAIL
    assert "without --ref-dir" in by_path["data/ext/ok.json"].error
    # local schemas carry no refs, so they still validate without an index
    assert by_path["data/apps/good.yaml"].status is FileStatus.PASS


def test_path_only_mode_refuses_external_ids(repo: Path) -> None:
    result = SuiteRunner().run(
        _options(repo, schema_resolution=SchemaResolutionMode.PATH_ONLY)
    )
    item = next(entry for entry in result.files if entry.path == "data/ext/ok.json")

    assert item.status is FileStatus.FAIL
    assert "path-only" in item.error


def test_unexpected_pass_fails_the_suite(repo: Path) -> None:
    result = SuiteRunner().run(
        _options(
            repo,
            expect_fail=("data/apps/good.yaml",),
            exclude=("data/ext/**", "data/misc/**"),
        )
    )

    assert _statuses(result)["data/apps/good.yaml"] is FileStatus.UNEXPECTED_PASS
    assert _statuses(result)["data/apps/bad.yaml"] is FileStatus.FAIL
    assert "data/ext/ok.json" not in _statuses(result)
    assert result.summary.unexpected_pass == 1
    assert result.should_fail


def test_clean_run_passes_and_strict_counts_skips(repo: Path) -> None:
    options = _options(
        repo,
        exclude=("data/ext/wrong.json", "data/misc/**"),
    )

    relaxed = SuiteRunner().run(options)
    assert relaxed.summary.failed == 0
    assert relaxed.summary.unmapped == 0
    assert not relaxed.should_fail
    assert relaxed.render_markdown().rstrip().endswith("Suite passed")

    strict = SuiteRunner().run(_options(repo, exclude=options.exclude, strict=True))
    assert strict.summary.skipped == 2
    assert strict.should_fail


def test_unmapped_files_can_be_tolerated(repo: Path) -> None:
    result = SuiteRunner().run(
        _options(repo, exclude=("data/ext/wrong.json",), fail_on_unmapped=False)
    )

    assert result.summary.unmapped == 1
    assert not result.should_fail


def test_markdown_lists_failures(repo: Path) -> None:
    markdown = SuiteRunner().run(_options(repo)).render_markdown()

    assert markdown.startswith("# Validation Suite Results\n")
    assert "- Total: 8" in markdown
    assert "Suite has failures" in markdown
    assert "## data/ext/wrong.json (fail)" in markdown
    assert "- Schema: https://x/root (external)" in markdown
    assert "## data/misc/notes.json (unmapped)" in markdown
    assert "- Error: no schema mapping" in markdown
    assert "data/apps/bad.yaml" not in markdown


def test_json_report_shape(repo: Path) -> None:
    payload = SuiteRunner().run(_options(repo)).to_dict()

    metadata = payload["metadata"]
    assert metadata["tool"] == "goneat"  # type: ignore[index]
    assert metadata["schema_resolution"] == "prefer-id"  # type: ignore[index]
    assert payload["summary"]["total"] == 8  # type: ignore[index]
    mapping = payload["mapping"]
    assert mapping["repository_path"].endswith("schema-mappings.yaml")  # type: ignore[index]
    json.dumps(payload)


def test_invalid_manifest_aborts_the_suite(repo: Path) -> None:
    _write(repo / ".goneat" / "schema-mappings.yaml", "version: '3.0.0'\n")

    with pytest.raises(SuiteError, match="load schema mapping manifest"):
        SuiteRunner().run(_options(repo))


def test_missing_data_root_is_an_error(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    with pytest.raises(SuiteError, match="no such directory"):
        SuiteRunner().run(SuiteOptions(data_root=str(tmp_path / "absent")))


def test_discovery_is_lexical_and_honours_excludes(repo: Path) -> None:
    files = discover_suite_files(str(repo), str(repo / "data"), ("data/apps/**",))

    assert "data/readme.md" not in files
    assert not any(path.startswith("data/apps/") for path in files)
    assert files[0] == "data/hooks.yaml"


def test_repo_root_falls_back_to_data_root(tmp_path: Path) -> None:
    data = tmp_path / "plain"
    data.mkdir()
    assert infer_repo_root(str(data)) == str(data)
    with pytest.raises(SuiteError, match="invalid --data"):
        infer_repo_root("../escape")


def test_option_helpers() -> None:
    assert parse_schema_resolution(" ID-Strict ") is SchemaResolutionMode.ID_STRICT
    with pytest.raises(SuiteError, match="invalid --schema-resolution"):
        parse_schema_resolution("fuzzy")
    assert is_schema_id_url("HTTPS://x/y")
    assert not is_schema_id_url("schemas/app.json")
    with pytest.raises(SuiteError, match="--data is required"):
        SuiteOptions(data_root=" ")
    with pytest.raises(SuiteError, match="max_workers"):
        SuiteOptions(data_root="data", max_workers=0)


def test_draft07_external_schema_keeps_its_dialect(repo: Path) -> None:
    draft07_root = {"$schema": DRAFT7, **ROOT_SCHEMA, "dependencies": {"k": ["owner"]}}
    _write(repo / "refs" / "root.json", json.dumps(draft07_root))
    _write(repo / "data" / "ext" / "owned.json", '{"k": "abc", "owner": "ops"}')

    result = SuiteRunner().run(_options(repo))
    statuses = _statuses(result)

    # ``dependencies`` is only enforced under draft-07 semantics
    assert statuses["data/ext/ok.json"] is FileStatus.FAIL
    assert statuses["data/ext/owned.json"] is FileStatus.PASS
    assert statuses["data/ext/wrong.json"] is FileStatus.FAIL


def test_suite_log_lines_carry_a_run_id(repo: Path) -> None:
    stream = io.StringIO()
    name = "goneat.suite"
    configure_logging(LoggingConfig(level="INFO", logger_name=name, stream=stream))
    try:
        SuiteRunner().run(_options(repo))
    finally:
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            target.removeHandler(handler)
        target.propagate = True
        target.setLevel(logging.NOTSET)

    events = [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
    (summary,) = [event for event in events if event["message"] == "schema_suite_validated"]
    assert str(summary["run_id"]).startswith("suite-")
