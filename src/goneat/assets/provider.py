"""Embedded asset provider backed by package data."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from typing import TYPE_CHECKING, Final, Protocol

import yaml

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

UNKNOWN_DRAFT: Final[str] = "Unknown (07/2020-12 supported)"

# Directory-based versioned schemas shipped with the package.
KNOWN_SCHEMAS: Final[dict[str, str]] = {
    "goneat-config-v1.0.0": "embedded_schemas/schemas/config/v1.0.0/goneat-config.yaml",
    "dates-v1.0.0": "embedded_schemas/schemas/config/v1.0.0/dates.yaml",
    "hooks-manifest-v1.0.0": "embedded_schemas/schemas/work/v1.0.0/hooks-manifest.yaml",
    "schema-mapping-manifest-v1.0.0": (
        "embedded_schemas/schemas/mapping/v1.0.0/schema-mapping-manifest.yaml"
    ),
    "schema-signature-manifest-v1.0.0": (
        "embedded_schemas/schemas/signatures/v1.0.0/schema-signature-manifest.schema.yaml"
    ),
}


@dataclass(frozen=True, slots=True)
class SchemaInfo:
    name: str
    path: str
    draft: str


class AssetProvider(Protocol):
    """Source of raw schema and manifest bytes addressed by relative path."""

    def get_schema(self, path: str) -> tuple[bytes, bool]:
        """Return ``(data, True)`` for a known path, ``(b"", False)`` otherwise."""

    def get_schema_names(self) -> list[SchemaInfo]:
        """Enumerate every named schema available for eager registry population."""


class EmbeddedAssets:
    """Read-only provider over ``goneat/assets/embedded_schemas``."""

    def __init__(self, package: str = "goneat.assets") -> None:
        self._package = package

    def get_schema(self, path: str) -> tuple[bytes, bool]:
        node = self._locate(path)
        if node is None or not node.is_file():
            return b"", False
        return node.read_bytes(), True

    def get_schema_names(self) -> list[SchemaInfo]:
        infos: list[SchemaInfo] = []
        for name, path in sorted(KNOWN_SCHEMAS.items()):
            data, found = self.get_schema(path)
            if not found:
                continue
            infos.append(SchemaInfo(name=name, path=path, draft=detect_draft(data)))
        return infos

    def _locate(self, path: str) -> Traversable | None:
        parts = [part for part in path.replace("\\", "/").split("/") if part not in ("", ".")]
        if not parts or ".." in parts or path.startswith("/"):
            return None
        node = resources.files(self._package)
        for part in parts:
            node = node.joinpath(part)
        return node


def detect_draft(data: bytes) -> str:
    """Heuristically name the JSON Schema draft declared by ``$schema``."""

    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError:
        try:
            document = json.loads(data)
        except ValueError:
            return UNKNOWN_DRAFT
    if isinstance(document, dict):
        declared = document.get("$schema")
        if isinstance(declared, str):
            if "draft-07" in declared:
                return "Draft-07"
            if "2020-12" in declared:
                return "Draft-2020-12"
    return UNKNOWN_DRAFT


__all__ = [
    "KNOWN_SCHEMAS",
    "UNKNOWN_DRAFT",
    "AssetProvider",
    "EmbeddedAssets",
    "SchemaInfo",
    "detect_draft",
]
