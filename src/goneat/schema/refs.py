"""
goneat — offline schema compilation and ``$ref`` resolution.

File: src/goneat/schema/refs.py

Purpose
- Compile a normalized schema document into a ``CompiledSchema`` whose ``$ref``
  lookups are answered only from in-memory documents.
- Seed those documents from reference directories or from a prebuilt ``IDIndex``.

What should be included in this file
- Dialect selection from the declared (pre-strip) ``$schema``.
- A ``referencing.Registry`` whose ``retrieve`` hook always refuses, so nothing is
  fetched over the network.
- Root self-reference handling: ref-dir copies of the root compare against it and
  are never registered twice.

Functional requirements
- Meta-schema violations and unresolvable ``$ref`` targets raise ``SchemaCompileError``.
- Reference conflicts raise ``ReferenceConflictError`` before anything is compiled.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urldefrag

import jsonschema
import jsonschema.exceptions
import referencing.exceptions
import referencing.jsonschema
from jsonschema_specifications import REGISTRY as META_SCHEMA_REGISTRY
from referencing import Registry, Resource

from goneat.schema.errors import SchemaCompileError
from goneat.schema.id_index import IDIndexEntry, scan_ref_dirs
from goneat.schema.results import CompiledSchema

if TYPE_CHECKING:
    from collections.abc import Sequence

    from jsonschema.protocols import Validator
    from referencing import Specification

    from goneat.schema.documents import SchemaDocument
    from goneat.schema.id_index import IDIndex

ROOT_SCHEMA_SOURCE: Final[str] = "root schema"

# Ordered so the first substring hit of ``$schema`` decides the dialect.
_DIALECTS: Final[tuple[tuple[str, type[Validator], Specification[Any]], ...]] = (
    ("draft-04", jsonschema.Draft4Validator, referencing.jsonschema.DRAFT4),
    ("draft-06", jsonschema.Draft6Validator, referencing.jsonschema.DRAFT6),
    ("draft-07", jsonschema.Draft7Validator, referencing.jsonschema.DRAFT7),
    ("2019-09", jsonschema.Draft201909Validator, referencing.jsonschema.DRAFT201909),
    ("2020-12", jsonschema.Draft202012Validator, referencing.jsonschema.DRAFT202012),
)

# Keywords whose values are instance data, not subschemas.
_DATA_KEYWORDS: Final[frozenset[str]] = frozenset({"const", "default", "enum", "examples"})


def dialect_for(declared: str | None) -> tuple[type[Validator], Specification[Any]]:
    """Return the validator class and referencing specification for ``$schema``."""

    if declared:
        for marker, validator_cls, specification in _DIALECTS:
            if marker in declared:
                return validator_cls, specification
    return jsonschema.Draft202012Validator, referencing.jsonschema.DRAFT202012


def offline_registry(
    documents: Iterable[tuple[str, object]],
    specification: Specification[Any],
) -> Registry[Any]:
    """Build a registry over ``(uri, contents)`` pairs that never retrieves remotely.

    Bundled meta-schemas stay resolvable so ``$ref``s to them pass the upfront check.
    """

    resources = [
        (urldefrag(uri).url, Resource.from_contents(contents, default_specification=specification))
        for uri, contents in documents
    ]
    registry = Registry(retrieve=_refuse_retrieval).with_resources(resources)
    return registry.combine(META_SCHEMA_REGISTRY)


def compile_document(
    schema: SchemaDocument,
    references: Mapping[str, object] | None = None,
) -> CompiledSchema:
    """Compile ``schema`` against ``references`` (``$id`` -> parsed document)."""

    validator_cls, specification = dialect_for(schema.declared_schema)
    try:
        validator_cls.check_schema(schema.document)
    except jsonschema.exceptions.SchemaError as exc:
        raise SchemaCompileError(
            f"schema does not conform to its meta-schema at "
            f"{_pointer(exc.absolute_path)}: {exc.message}"
        ) from exc

    documents = dict(references or {})
    if schema.schema_id:
        documents[schema.schema_id] = schema.document
    registry = offline_registry(documents.items(), specification)
    _check_references(schema.document, registry, specification)

    validator = validator_cls(schema.document, registry=registry)
    return CompiledSchema(validator, schema_id=schema.schema_id)


def compile_with_ref_dirs(
    schema: SchemaDocument,
    ref_dirs: Sequence[str],
    *,
    strip_schema: bool,
    logger: Any | None = None,
) -> CompiledSchema:
    """Scan ``ref_dirs`` for documents by ``$id`` and compile ``schema`` against them."""

    seed: dict[str, IDIndexEntry] = {}
    if schema.schema_id:
        seed[schema.schema_id] = IDIndexEntry(
            id=schema.schema_id,
            path=ROOT_SCHEMA_SOURCE,
            normalized=schema.normalized,
            declared_schema=schema.declared_schema,
        )
    registered = scan_ref_dirs(ref_dirs, strip_schema=strip_schema, seed=seed, logger=logger)
    registered.pop(schema.schema_id, None)
    return compile_document(schema, _decode_entries(registered.values()))


def compile_with_id_index(schema: SchemaDocument, index: IDIndex) -> CompiledSchema:
    """Compile ``schema`` against an already built ``IDIndex``.

    An index entry under the root's own ``$id`` is ignored; the root document wins.
    """

    entries = (entry for entry in index.entries() if entry.id != schema.schema_id)
    return compile_document(schema, _decode_entries(entries))


def _decode_entries(entries: Iterable[IDIndexEntry]) -> dict[str, object]:
    decoded: dict[str, object] = {}
    for entry in entries:
        contents = json.loads(entry.normalized)
        # Restore a stripped $schema so the referenced document keeps its own dialect.
        if entry.declared_schema and isinstance(contents, dict):
            contents.setdefault("$schema", entry.declared_schema)
        decoded[entry.id] = contents
    return decoded


def _refuse_retrieval(uri: str) -> Resource[Any]:
    raise referencing.exceptions.NoSuchResource(ref=uri)


def _check_references(
    document: object,
    registry: Registry[Any],
    specification: Specification[Any],
) -> None:
    resolver = registry.resolver_with_root(specification.create_resource(document))
    for ref in _iter_refs(document, top=True):
        try:
            resolver.lookup(ref)
        except (referencing.exceptions.Unresolvable, referencing.exceptions.NoSuchResource) as exc:
            raise SchemaCompileError(f"unresolvable $ref {ref!r}: {exc}") from exc


def _iter_refs(node: object, *, top: bool) -> Iterator[str]:
    """Yield ``$ref`` strings resolved against the root base URI.

    Subschemas declaring their own ``$id`` change the base URI and are left to
    resolution at validation time.
    """

    if isinstance(node, dict):
        if not top and isinstance(node.get("$id"), str):
            return
        ref = node.get("$ref")
        if isinstance(ref, str):
            yield ref
        for key, value in node.items():
            if key in _DATA_KEYWORDS:
                continue
            yield from _iter_refs(value, top=False)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_refs(item, top=False)


def _pointer(parts: Iterable[object]) -> str:
    return "/" + "/".join(str(part) for part in parts)


__all__ = [
    "ROOT_SCHEMA_SOURCE",
    "compile_document",
    "compile_with_id_index",
    "compile_with_ref_dirs",
    "dialect_for",
    "offline_registry",
]
