"""
goneat — unit tests for offline ``$ref`` resolution and the ``$id`` index

File: tests/unit/schema/test_offline_refs.py

Purpose
- Validate ref-dir scanning, duplicate and conflict handling, root self-reference, and
  compilation against a prebuilt index, all without network access.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from goneat.schema.errors import RefDirError, ReferenceConflictError, SchemaCompileError
from goneat.schema.id_index import IDIndex, build_id_index_from_ref_dirs
from goneat.schema.validator import (
    compile_schema_with_ref_dirs,
    validate_from_bytes_with_id_index,
    validate_from_bytes_with_ref_dirs,
)

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
TUPLE_SCHEMA = {
    "$schema": DRAFT7,
    "$id": "https://x/tuple",
    "type": "array",
    "items": [{"type": "string"}, {"type": "integer"}],
}


def _root_bytes() -> bytes:
    return json.dumps(ROOT_SCHEMA).encode()


def _write_json(path: Path, payload: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture()
def ref_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "refs"
    _write_json(directory / "types.json", TYPES_SCHEMA)
    return directory


def test_absolute_refs_resolve_from_ref_dir(ref_dir: Path) -> None:
    ok = validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "nextcloud"}, [str(ref_dir)])
    bad = validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "Not Slug!"}, [str(ref_dir)])

    assert ok.valid
    assert not bad.valid
    assert [error.path for error in bad.errors] == ["k"]


def test_missing_ref_target_is_a_compile_error(tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()

    with pytest.raises(SchemaCompileError, match="https://x/types"):
        compile_schema_with_ref_dirs(_root_bytes(), [str(empty)])


def test_identical_duplicates_are_deduplicated(ref_dir: Path, tmp_path: Path) -> None:
    mirror = tmp_path / "mirror"
    # Same document spelled as YAML with a $schema that gets stripped before comparison.
    (mirror / "nested").mkdir(parents=True)
    (mirror / "nested" / "types.yaml").write_text(
        "$schema: https://json-schema.org/draft/2020-12/schema\n"
        "$id: https://x/types\n"
        "$defs:\n"
        "  slug:\n"
        "    pattern: ^[a-z0-9-]+$\n"
        "    type: string\n",
        encoding="utf-8",
    )

    single = validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "a-b"}, [str(ref_dir)])
    doubled = validate_from_bytes_with_ref_dirs(
        _root_bytes(), {"k": "a-b"}, [str(ref_dir), str(mirror)]
    )
    assert single == doubled
    assert len(build_id_index_from_ref_dirs([str(ref_dir), str(mirror)])) == 1


@pytest.mark.parametrize("reverse", [False, True])
def test_conflicting_duplicates_fail_in_either_order(
    ref_dir: Path, tmp_path: Path, reverse: bool
) -> None:
    other = tmp_path / "other"
    changed = {**TYPES_SCHEMA, "$defs": {"slug": {"type": "string", "maxLength": 3}}}
    _write_json(other / "types.json", changed)
    dirs = [str(other), str(ref_dir)] if reverse else [str(ref_dir), str(other)]

    with pytest.raises(ReferenceConflictError) as excinfo:
        validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "abc"}, dirs)

    message = str(excinfo.value)
    assert message.startswith('duplicate schema $id "https://x/types"')
    assert str(ref_dir / "types.json") in message
    assert str(other / "types.json") in message
    with pytest.raises(ReferenceConflictError):
        build_id_index_from_ref_dirs(dirs)


def test_root_copy_in_ref_dir_is_not_a_conflict(ref_dir: Path) -> None:
    _write_json(ref_dir / "root.json", ROOT_SCHEMA)

    result = validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "ok"}, [str(ref_dir)])
    assert result.valid


def test_divergent_root_copy_conflicts_with_root(ref_dir: Path) -> None:
    _write_json(ref_dir / "root.json", {**ROOT_SCHEMA, "required": []})

    with pytest.raises(ReferenceConflictError, match="root schema"):
        validate_from_bytes_with_ref_dirs(_root_bytes(), {"k": "ok"}, [str(ref_dir)])


def test_unparseable_and_anonymous_files_are_skipped(ref_dir: Path) -> None:
    (ref_dir / "broken.yaml").write_text("{not: [closed", encoding="utf-8")
    _write_json(ref_dir / "anonymous.json", {"type": "string"})
    (ref_dir / "notes.txt").write_text("$id: ignored", encoding="utf-8")

    index = build_id_index_from_ref_dirs([str(ref_dir)])
    assert list(index) == ["https://x/types"]


def test_uppercase_extensions_are_scanned(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(directory / "TYPES.JSON", TYPES_SCHEMA)

    assert "https://x/types" in build_id_index_from_ref_dirs([str(directory)])


def test_draft04_id_keyword_is_recognized(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(directory / "legacy.json", {"id": " https://x/legacy ", "type": "string"})

    entry = build_id_index_from_ref_dirs([str(directory)]).get("https://x/legacy")
    assert entry is not None
    assert entry.path == str(directory / "legacy.json")


@pytest.mark.parametrize("kind", ["missing", "file", "traversal"])
def test_invalid_ref_dirs_raise(tmp_path: Path, kind: str) -> None:
    if kind == "missing":
        target = str(tmp_path / "absent")
    elif kind == "file":
        target = str(_write_json(tmp_path / "plain.json", {}))
    else:
        target = "../refs"

    with pytest.raises(RefDirError):
        build_id_index_from_ref_dirs([target])


def test_empty_ref_dirs_yield_empty_index() -> None:
    index = build_id_index_from_ref_dirs([])
    assert len(index) == 0
    assert index.get("https://x/types") is None


def test_validation_against_prebuilt_index(ref_dir: Path) -> None:
    index = build_id_index_from_ref_dirs([str(ref_dir)])

    assert validate_from_bytes_with_id_index(_root_bytes(), {"k": "abc"}, index).valid
    assert not validate_from_bytes_with_id_index(_root_bytes(), {"k": "A B"}, index).valid


def test_index_entry_under_root_id_is_ignored(ref_dir: Path) -> None:
    _write_json(ref_dir / "root.json", {**ROOT_SCHEMA, "required": []})
    index = build_id_index_from_ref_dirs([str(ref_dir)])

    result = validate_from_bytes_with_id_index(_root_bytes(), {}, index)
    assert not result.valid


def test_index_entries_are_sorted_and_immutable(ref_dir: Path) -> None:
    _write_json(ref_dir / "a.json", {"$id": "https://x/a", "type": "string"})
    index = build_id_index_from_ref_dirs([str(ref_dir)])

    assert [entry.id for entry in index.entries()] == ["https://x/a", "https://x/types"]
    assert isinstance(index, IDIndex)
    with pytest.raises(TypeError):
        index._entries["https://x/new"] = index.entries()[0]  # type: ignore[index]


def test_refs_between_ref_dir_documents_resolve(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(
        directory / "person.json",
        {
            "$id": "https://x/person",
            "type": "object",
            "properties": {"handle": {"$ref": "https://x/types#/$defs/slug"}},
        },
    )
    _write_json(directory / "types.json", TYPES_SCHEMA)
    schema = json.dumps({"$ref": "https://x/person"}).encode()

    assert validate_from_bytes_with_ref_dirs(schema, {"handle": "ok"}, [str(directory)]).valid
    assert not validate_from_bytes_with_ref_dirs(
        schema, {"handle": "NOT OK"}, [str(directory)]
    ).valid


def test_index_entry_keeps_declared_draft(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(directory / "tuple.json", TUPLE_SCHEMA)

    entry = build_id_index_from_ref_dirs([str(directory)]).get("https://x/tuple")

    assert entry is not None
    assert entry.declared_schema == DRAFT7
    assert b"$schema" not in entry.normalized


def test_draft07_schema_looked_up_by_id_validates_as_draft07(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(directory / "tuple.json", TUPLE_SCHEMA)
    index = build_id_index_from_ref_dirs([str(directory)])
    entry = index.get("https://x/tuple")
    assert entry is not None

    def check(data: object) -> bool:
        return validate_from_bytes_with_id_index(
            entry.normalized, data, index, declared_schema=entry.declared_schema
        ).valid

    assert check(["a", 1])
    assert not check(["a", "b"])


def test_index_bytes_without_declared_draft_fall_back_to_2020_12(tmp_path: Path) -> None:
    directory = tmp_path / "refs"
    _write_json(directory / "tuple.json", TUPLE_SCHEMA)
    index = build_id_index_from_ref_dirs([str(directory)])
    entry = index.get("https://x/tuple")
    assert entry is not None

    with pytest.raises(SchemaCompileError, match="meta-schema"):
        validate_from_bytes_with_id_index(entry.normalized, ["a", 1], index)


def test_declared_draft_in_schema_bytes_wins(tmp_path: Path) -> None:
    index = build_id_index_from_ref_dirs([])
    schema = json.dumps(TUPLE_SCHEMA).encode()

    result = validate_from_bytes_with_id_index(
        schema, ["a", 1], index, declared_schema="https://json-schema.org/draft/2020-12/schema"
    )

    assert result.valid
