"""
goneat — schema and data document parsing.

File: src/goneat/schema/documents.py

Purpose
- Parse YAML or JSON bytes into JSON-compatible Python values.
- Produce canonical JSON bytes for schema documents so content comparison is
  byte-exact across YAML/JSON spellings of the same schema.

Functional requirements
- YAML is tried first, JSON second; both parser messages surface on failure.
- YAML timestamps stay strings (JSON has no date type).
- ``$id`` extraction falls back to the draft-04 ``id`` keyword and is trimmed.
- ``$schema`` stripping never changes the declared draft recorded for the document.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

import yaml

from goneat.constants import SUPPORTED_DRAFT_MARKERS
from goneat.schema.errors import DataFormatError, SchemaFormatError, UnsupportedDraftError

_TIMESTAMP_TAG: Final[str] = "tag:yaml.org,2002:timestamp"


class _JSONSafeLoader(yaml.SafeLoader):
    """SafeLoader without the implicit timestamp resolver."""


_JSONSafeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class _ParseFailure(Exception):
    def __init__(self, yaml_error: Exception, json_error: Exception) -> None:
        super().__init__(f"YAML err: {yaml_error}, JSON err: {json_error}")
        self.yaml_error = yaml_error
        self.json_error = json_error


@dataclass(frozen=True, slots=True)
class SchemaDocument:
    """Parsed schema plus its canonical form and identity."""

    document: object
    schema_id: str
    normalized: bytes
    declared_schema: str | None


def parse_document(data: bytes) -> tuple[object, str]:
    """Parse ``data`` as YAML then JSON; return ``(value, "yaml" | "json")``."""

    try:
        value = yaml.load(data, Loader=_JSONSafeLoader)
    except yaml.YAMLError as yaml_exc:
        try:
            value = json.loads(data)
        except ValueError as json_exc:
            raise _ParseFailure(yaml_exc, json_exc) from json_exc
        return value, "json"
    return to_json_compatible(value), "yaml"


def parse_data(data: bytes) -> tuple[object, str]:
    try:
        return parse_document(data)
    except _ParseFailure as exc:
        raise DataFormatError(f"failed to parse data bytes (tried YAML then JSON): {exc}") from exc


def to_json_compatible(value: object) -> object:
    """Coerce YAML-only shapes (non-string keys, tuples, sets) into JSON shapes."""

    if isinstance(value, Mapping):
        return {str(key): to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((to_json_compatible(item) for item in value), key=repr)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def canonical_json(value: object) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def extract_schema_id(document: object) -> str:
    if not isinstance(document, Mapping):
        return ""
    for key in ("$id", "id"):
        candidate = document.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


def load_schema_document(schema_bytes: bytes, *, strip_schema: bool) -> SchemaDocument:
    """Parse schema bytes and normalize them to canonical JSON.

    ``declared_schema`` is read before ``$schema`` is stripped so draft checks and
    dialect selection see what the author wrote.
    """

    try:
        document, _ = parse_document(schema_bytes)
    except _ParseFailure as exc:
        raise SchemaFormatError(
            f"invalid schema format (must be valid YAML or JSON): {exc}"
        ) from exc

    declared: str | None = None
    if isinstance(document, dict):
        raw_declared = document.get("$schema")
        declared = raw_declared if isinstance(raw_declared, str) else None
        if strip_schema and "$schema" in document:
            document = {key: value for key, value in document.items() if key != "$schema"}

    return SchemaDocument(
        document=document,
        schema_id=extract_schema_id(document),
        normalized=canonical_json(document),
        declared_schema=declared,
    )


def check_supported_draft(declared: str | None) -> None:
    if declared is None:
        return
    if not any(marker in declared for marker in SUPPORTED_DRAFT_MARKERS):
        raise UnsupportedDraftError(declared)


def ensure_supported_draft(schema_bytes: bytes) -> None:
    """Reject schemas whose ``$schema`` names neither Draft-07 nor 2020-12."""

    check_supported_draft(load_schema_document(schema_bytes, strip_schema=False).declared_schema)


__all__ = [
    "SchemaDocument",
    "canonical_json",
    "check_supported_draft",
    "ensure_supported_draft",
    "extract_schema_id",
    "load_schema_document",
    "parse_data",
    "parse_document",
    "to_json_compatible",
]
