"""Command-line interface router for goneat schema tooling."""

from __future__ import annotations

import argparse
import glob
import json
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from goneat.assets.provider import EmbeddedAssets
from goneat.config import load_settings
from goneat.constants import SCHEMA_FILE_EXTENSIONS
from goneat.mapping.manager import DEFAULT_MANIFEST_RELATIVE_PATH
from goneat.observability.logging import LoggingConfig, configure_logging
from goneat.schema.documents import parse_data
from goneat.schema.errors import GoneatError
from goneat.schema.id_index import build_id_index_from_ref_dirs
from goneat.schema.meta import validate_schema_document
from goneat.schema.registry import SchemaRegistry
from goneat.schema.validator import (
    validate_from_bytes_with_id_index,
    validate_from_bytes_with_ref_dirs,
)
from goneat.signature.detector import SignatureDetector
from goneat.signature.manifest import find_signature, load_default_manifest
from goneat.suite import (
    DEFAULT_SUITE_TIMEOUT_SECONDS,
    SchemaResolutionMode,
    SuiteError,
    SuiteOptions,
    SuiteRunner,
    is_schema_id_url,
    parse_schema_resolution,
)
from goneat.ui.render import CLIRenderer, create_renderer
from goneat.utils.fs import PathTraversalError, clean_user_path, walk_files

LOG_LEVEL_CHOICES: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_GLOB_CHARS: Final[tuple[str, ...]] = ("*", "?", "[")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="goneat",
        description=(
            "goneat: offline schema validation and schema detection.\n\n"
            "Common workflows:\n"
            "  goneat validate data --schema goneat-config-v1.0.0 --data .goneat/config.yaml\n"
            "  goneat validate suite --data examples --ref-dir schemas\n"
            "  goneat schema validate-schema schemas --recursive\n"
            "  goneat schema detect schemas/user.json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output (implies --log-level DEBUG).",
    )
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVEL_CHOICES,
        default=None,
        help="Structured log level written to stderr (default: GONEAT_LOG_LEVEL or WARNING).",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser("validate", help="Validate data files")
    validate_sub = validate_parser.add_subparsers(dest="validate_command", required=True)

    data_parser = validate_sub.add_parser(
        "data",
        parents=[common],
        help="Validate one data file against a schema",
        description=(
            "Validate a JSON/YAML data file against an embedded schema, a schema id URL,\n"
            "or an arbitrary schema file.\n\n"
            "Examples:\n"
            "  goneat validate data --schema goneat-config-v1.0.0 --data .goneat/config.yaml\n"
            "  goneat validate data --schema-file schemas/user.yaml --data user.json \\\n"
            "      --ref-dir schemas\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    data_parser.add_argument("--data", required=True, help="Data file to validate")
    data_parser.add_argument(
        "--schema",
        default="",
        help="Embedded schema name or canonical schema id URL",
    )
    data_parser.add_argument(
        "--schema-file",
        default="",
        help="Path to a JSON/YAML schema file (mutually exclusive with --schema)",
    )
    _add_ref_dir_arguments(data_parser)
    data_parser.add_argument(
        "--format",
        choices=("markdown", "json"),
        default="markdown",
        help="Output format (default: markdown)",
    )
    data_parser.set_defaults(handler=_cmd_validate_data)

    suite_parser = validate_sub.add_parser(
        "suite",
        parents=[common],
        help="Validate every mapped data file under a directory",
        description=(
            "Validate many JSON/YAML files using the schema mapping manifest and optional\n"
            "offline $ref resolution.\n\n"
            "Examples:\n"
            "  goneat validate suite --data examples\n"
            "  goneat validate suite --data examples --ref-dir schemas --format json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    suite_parser.add_argument("--data", required=True, help="Root directory of data files")
    suite_parser.add_argument(
        "--manifest",
        default=DEFAULT_MANIFEST_RELATIVE_PATH,
        help=f"Schema mapping manifest path (default: {DEFAULT_MANIFEST_RELATIVE_PATH})",
    )
    _add_ref_dir_arguments(suite_parser)
    suite_parser.add_argument(
        "--skip", action="append", default=[], help="Skip matching files (repeatable glob)"
    )
    suite_parser.add_argument(
        "--expect-fail",
        action="append",
        default=[],
        help="Treat matching files as expected failures (repeatable glob)",
    )
    suite_parser.add_argument(
        "--exclude", action="append", default=[], help="Exclude paths from discovery (glob)"
    )
    suite_parser.add_argument(
        "--strict", action="store_true", help="Fail if any files are unmapped or skipped"
    )
    suite_parser.add_argument(
        "--no-fail-on-unmapped",
        dest="fail_on_unmapped",
        action="store_false",
        default=True,
        help="Do not fail the suite when files have no schema mapping",
    )
    suite_parser.add_argument("--workers", type=int, default=None, help="Max parallel workers")
    suite_parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_SUITE_TIMEOUT_SECONDS,
        help=f"Overall timeout in seconds (default: {DEFAULT_SUITE_TIMEOUT_SECONDS:g})",
    )
    suite_parser.add_argument(
        "--format",
        choices=("markdown", "json"),
        default="markdown",
        help="Output format (default: markdown)",
    )
    suite_parser.set_defaults(handler=_cmd_validate_suite)

    # schema --------------------------------------------------------------
    schema_parser = subparsers.add_parser("schema", help="Inspect and check schema documents")
    schema_sub = schema_parser.add_subparsers(dest="schema_command", required=True)

    check_parser = schema_sub.add_parser(
        "validate-schema",
        parents=[common],
        help="Validate schema files against their JSON Schema meta-schema",
    )
    check_parser.add_argument("paths", nargs="+", help="Schema files, directories or globs")
    check_parser.add_argument(
        "--schema-id",
        default="",
        help="Signature id or alias to validate against (default: detect per file)",
    )
    check_parser.add_argument(
        "--recursive", action="store_true", help="Descend into directory arguments"
    )
    check_parser.add_argument(
        "--format", choices=("text", "json"), default="text", help="Output format"
    )
    check_parser.set_defaults(handler=_cmd_schema_validate_schema)

    list_parser = schema_sub.add_parser(
        "list", parents=[common], help="List embedded schemas and their drafts"
    )
    list_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    list_parser.set_defaults(handler=_cmd_schema_list)

    detect_parser = schema_sub.add_parser(
        "detect", parents=[common], help="Identify a file's schema family by content signature"
    )
    detect_parser.add_argument("path", help="File to inspect")
    detect_parser.add_argument(
        "--all", action="store_true", help="Report every signature meeting its threshold"
    )
    detect_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    detect_parser.set_defaults(handler=_cmd_schema_detect)

    return parser


def _add_ref_dir_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ref-dir",
        dest="ref_dirs",
        action="append",
        default=[],
        help="Directory of schemas used to resolve absolute $ref URLs offline (repeatable)",
    )
    parser.add_argument(
        "--schema-resolution",
        default=SchemaResolutionMode.PREFER_ID.value,
        help="Schema resolution strategy (prefer-id, id-strict, path-only)",
    )


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    settings = load_settings()
    namespace.settings = settings
    level = namespace.log_level or ("DEBUG" if _flag(namespace, "verbose") else settings.log_level)
    configure_logging(LoggingConfig(level=level))

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate_data(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    schema_name = str(args.schema).strip()
    schema_file = str(args.schema_file).strip()
    if not schema_name and not schema_file:
        raise CLIError("either --schema or --schema-file is required", exit_code=2)
    if schema_name and schema_file:
        raise CLIError("both --schema and --schema-file provided; use one", exit_code=2)

    mode = _resolution_mode(args)
    data, _ = parse_data(_read_bytes(args.data, "data file"))
    ref_dirs = _string_sequence(args.ref_dirs)
    index = None
    if mode is not SchemaResolutionMode.PATH_ONLY and ref_dirs:
        index = build_id_index_from_ref_dirs(ref_dirs)

    if schema_file:
        schema_bytes = _read_bytes(schema_file, "schema file")
        if index is not None:
            result = validate_from_bytes_with_id_index(schema_bytes, data, index)
        else:
            result = validate_from_bytes_with_ref_dirs(schema_bytes, data, ref_dirs)
    elif is_schema_id_url(schema_name) and mode is not SchemaResolutionMode.PATH_ONLY:
        if index is None:
            raise CLIError(
                f"cannot resolve schema_id {schema_name!r} without --ref-dir", exit_code=2
            )
        entry = index.get(schema_name)
        if entry is None:
            raise CLIError(f"schema_id not found in --ref-dir index: {schema_name!r}", exit_code=2)
        result = validate_from_bytes_with_id_index(
            entry.normalized, data, index, declared_schema=entry.declared_schema
        )
    else:
        result = _registry(args).validate(data, schema_name)

    if args.format == "json":
        _emit_json(result.to_dict())
    elif result.valid:
        renderer.ok("Validation passed")
    else:
        renderer.fail("Validation failed:")
        renderer.items([f"{error.path}: {error.message}" for error in result.errors])
    return 0 if result.valid else 1


def _cmd_validate_suite(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    try:
        options = SuiteOptions(
            data_root=str(args.data),
            manifest_path=str(args.manifest),
            ref_dirs=_string_sequence(args.ref_dirs),
            skip=_string_sequence(args.skip),
            expect_fail=_string_sequence(args.expect_fail),
            exclude=_string_sequence(args.exclude),
            strict=_flag(args, "strict"),
            fail_on_unmapped=_flag(args, "fail_on_unmapped"),
            schema_resolution=parse_schema_resolution(str(args.schema_resolution)),
            max_workers=args.workers if args.workers is not None else (os.cpu_count() or 1),
            timeout_seconds=float(args.timeout),
        )
        result = SuiteRunner(registry=_registry(args)).run(options)
    except SuiteError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    if args.format == "json":
        _emit_json(result.to_dict())
    else:
        renderer.raw(result.render_markdown())
    return 1 if result.should_fail else 0


def _cmd_schema_validate_schema(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    manifest = load_default_manifest(home=args.settings.home)

    provided_id = ""
    requested = str(args.schema_id).strip()
    if requested:
        signature = find_signature(manifest, requested)
        if signature is None:
            raise CLIError(
                f"schema-id {requested} not found in signature manifest", exit_code=2
            )
        provided_id = signature.id
    detector = None if provided_id else SignatureDetector(manifest)

    results: list[dict[str, object]] = []
    for raw_path in _expand_schema_inputs(args.paths, recursive=_flag(args, "recursive")):
        results.append(_check_schema_file(raw_path, provided_id, detector))

    if args.format == "json":
        print(json.dumps(results, indent=2, ensure_ascii=False))
    else:
        for entry in results:
            label = str(entry["file"])
            if entry.get("schema_id"):
                label = f"{label} ({entry['schema_id']})"
            if entry["valid"]:
                renderer.ok(label)
                continue
            renderer.fail(label)
            renderer.items([str(message) for message in entry.get("errors", [])])

    failures = sum(1 for entry in results if not entry["valid"])
    if failures:
        print(f"error: {failures} schema file(s) failed validation", file=sys.stderr)
        return 1
    return 0


def _cmd_schema_list(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    infos = EmbeddedAssets().get_schema_names()
    if _flag(args, "json"):
        schemas = [{"name": info.name, "path": info.path, "draft": info.draft} for info in infos]
        _emit_json({"schemas": schemas})
        return 0
    rows = [(info.name, info.draft, info.path) for info in infos]
    renderer.table(("NAME", "DRAFT", "PATH"), rows)
    return 0


def _cmd_schema_detect(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    path = _clean_path(args.path, "path")
    snippet = _read_bytes(path, "file")
    detector = SignatureDetector(load_default_manifest(home=args.settings.home))

    if _flag(args, "all"):
        matches = detector.detect_all(path, snippet)
    else:
        best, found = detector.detect(path, snippet)
        matches = [best] if found and best is not None else []

    if _flag(args, "json"):
        _emit_json({"path": path, "matches": [match.to_dict() for match in matches]})
    elif not matches:
        renderer.fail(f"{path}: no schema signature detected")
    else:
        renderer.table(
            ("ID", "CATEGORY", "SCORE"),
            [(m.signature.id, m.signature.category, f"{m.score:.2f}") for m in matches],
        )
    return 0 if matches else 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_schema_file(
    raw_path: str,
    provided_id: str,
    detector: SignatureDetector | None,
) -> dict[str, object]:
    try:
        path = clean_user_path(raw_path)
    except PathTraversalError as exc:
        return {"file": raw_path, "valid": False, "errors": [f"invalid path: {exc}"]}
    try:
        with open(path, "rb") as handle:
            schema_bytes = handle.read()
    except OSError as exc:
        return {"file": path, "valid": False, "errors": [f"failed to read schema: {exc}"]}

    schema_id = provided_id
    if not schema_id and detector is not None:
        match, found = detector.detect(path, schema_bytes)
        if not found or match is None:
            return {"file": path, "valid": False, "errors": ["unable to detect schema signature"]}
        schema_id = match.signature.id

    try:
        valid, messages = validate_schema_document(schema_id, schema_bytes)
    except GoneatError as exc:
        return {"file": path, "schema_id": schema_id, "valid": False, "errors": [str(exc)]}
    entry: dict[str, object] = {"file": path, "schema_id": schema_id, "valid": valid}
    if messages:
        entry["errors"] = messages
    return entry


def _expand_schema_inputs(paths: Sequence[str], *, recursive: bool) -> list[str]:
    expanded: list[str] = []
    for raw in paths:
        if any(char in raw for char in _GLOB_CHARS):
            matches = glob.glob(raw)
            if not matches:
                raise CLIError(f"glob pattern matched no files: {raw}", exit_code=2)
            expanded.extend(matches)
            continue
        if os.path.isdir(raw):
            if not recursive:
                raise CLIError(f"{raw} is a directory (use --recursive)", exit_code=2)
            found = [
                str(item)
                for item in walk_files(
                    raw, accept=lambda item: item.suffix.lower() in SCHEMA_FILE_EXTENSIONS
                )
            ]
            if not found:
                raise CLIError(f"no schema files found under {raw}", exit_code=2)
            expanded.extend(found)
            continue
        expanded.append(raw)
    return sorted(expanded)


def _resolution_mode(args: argparse.Namespace) -> SchemaResolutionMode:
    try:
        return parse_schema_resolution(str(args.schema_resolution))
    except SuiteError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _registry(args: argparse.Namespace) -> SchemaRegistry:
    return SchemaRegistry(EmbeddedAssets(), settings=getattr(args, "settings", None))


def _clean_path(raw: str, label: str) -> str:
    try:
        return clean_user_path(raw)
    except PathTraversalError as exc:
        raise CLIError(f"invalid {label} {raw!r}: {exc}", exit_code=2) from exc


def _read_bytes(raw: str, label: str) -> bytes:
    path = _clean_path(raw, label)
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError as exc:
        raise CLIError(f"failed to read {label} {path}: {exc}", exit_code=2) from exc


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


def _string_sequence(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        cleaned = value.strip()
        return () if not cleaned else (cleaned,)
    if not isinstance(value, Sequence):
        raise CLIError("invalid sequence argument", exit_code=2)

    parsed: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise CLIError("invalid sequence argument", exit_code=2)
        cleaned = item.strip()
        if cleaned:
            parsed.append(cleaned)
    return tuple(parsed)


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
