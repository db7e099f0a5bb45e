"""Unit tests for the embedded asset provider."""

from __future__ import annotations

import pytest

from goneat.assets.provider import KNOWN_SCHEMAS, UNKNOWN_DRAFT, EmbeddedAssets, detect_draft


def test_every_known_schema_is_packaged() -> None:
    assets = EmbeddedAssets()
    infos = assets.get_schema_names()

    assert [info.name for info in infos] == sorted(KNOWN_SCHEMAS)
    drafts = {info.name: info.draft for info in infos}
    assert drafts["goneat-config-v1.0.0"] == "Draft-07"
    assert drafts["hooks-manifest-v1.0.0"] == "Draft-2020-12"


def test_get_schema_reports_missing_paths() -> None:
    assets = EmbeddedAssets()

    data, found = assets.get_schema(KNOWN_SCHEMAS["dates-v1.0.0"])
    assert found
    assert b"$id" in data

    assert assets.get_schema("embedded_schemas/schemas/none.yaml") == (b"", False)


@pytest.mark.parametrize(
    "path",
    ["../provider.py", "/etc/passwd", "", "embedded_schemas/../provider.py"],
)
def test_get_schema_refuses_paths_outside_the_asset_tree(path: str) -> None:
    assert EmbeddedAssets().get_schema(path) == (b"", False)


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b'{"$schema": "http://json-schema.org/draft-07/schema#"}', "Draft-07"),
        (b"$schema: https://json-schema.org/draft/2020-12/schema\n", "Draft-2020-12"),
        (b'{"$schema": "http://json-schema.org/draft-04/schema#"}', UNKNOWN_DRAFT),
        (b"- just\n- a list\n", UNKNOWN_DRAFT),
        (b"{not: [valid", UNKNOWN_DRAFT),
    ],
)
def test_detect_draft(data: bytes, expected: str) -> None:
    assert detect_draft(data) == expected
