"""Validate schema documents against the bundled JSON Schema meta-schemas."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Final

import jsonschema

from goneat.schema.documents import load_schema_document
from goneat.schema.errors import SchemaNotFoundError
from goneat.schema.results import ROOT_PATH, format_error_path

if TYPE_CHECKING:
    from collections.abc import Mapping

    from jsonschema.protocols import Validator

META_SCHEMA_VALIDATORS: Final[Mapping[str, type[Validator]]] = MappingProxyType(
    {
        "json-schema-draft-04": jsonschema.Draft4Validator,
        "json-schema-draft-06": jsonschema.Draft6Validator,
        "json-schema-draft-07": jsonschema.Draft7Validator,
        "json-schema-2019-09": jsonschema.Draft201909Validator,
        "json-schema-2020-12": jsonschema.Draft202012Validator,
    }
)


def supported_meta_schema_ids() -> list[str]:
    return sorted(META_SCHEMA_VALIDATORS)


def validate_schema_document(schema_id: str, schema_bytes: bytes) -> tuple[bool, list[str]]:
    """Check ``schema_bytes`` against the meta-schema named by ``schema_id``.

    Returns ``(valid, messages)``; each message is ``"<path>: <reason>"``, or just the
    reason for problems at the document root. Unparseable bytes raise
    ``SchemaFormatError``.
    """

    validator_cls = META_SCHEMA_VALIDATORS.get(schema_id)
    if validator_cls is None:
        raise SchemaNotFoundError(f"schema-id {schema_id} not supported for validation")

    document = load_schema_document(schema_bytes, strip_schema=False).document
    meta_validator = validator_cls(validator_cls.META_SCHEMA)
    messages: list[str] = []
    for error in sorted(
        meta_validator.iter_errors(document),
        key=lambda err: (tuple(str(part) for part in err.absolute_path), err.message),
    ):
        path = format_error_path(error.absolute_path)
        messages.append(error.message if path == ROOT_PATH else f"{path}: {error.message}")
    return not messages, messages


__all__ = ["META_SCHEMA_VALIDATORS", "supported_meta_schema_ids", "validate_schema_document"]
