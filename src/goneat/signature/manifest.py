"""
goneat — schema signature manifest loading.

File: src/goneat/signature/manifest.py

Purpose
- Load the embedded signature manifest and layer user overlays from ``GONEAT_HOME``.

What should be included in this file
- ``Matcher`` / ``Signature`` / ``SignatureManifest`` models parsed from YAML.
- Overlay merge by case-insensitive signature id.
- Normalization of thresholds, extensions, weights and matcher types.

Functional requirements
- Overlay order: ``<home>/config/signatures.yaml`` first, then
  ``<home>/signatures/*.yaml|*.yml`` sorted by path.
- Missing overlay files are ignored; unreadable or malformed ones fail loudly.
- An overlay signature replaces the base signature with the same id wholesale.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, NoReturn

import structlog
import yaml

from goneat.assets.provider import EmbeddedAssets
from goneat.config.loader import goneat_home
from goneat.schema.errors import GoneatError

if TYPE_CHECKING:
    from goneat.assets.provider import AssetProvider

EMBEDDED_MANIFEST_PATH: Final[str] = (
    "embedded_schemas/schemas/signatures/v1.0.0/schema-signatures.yaml"
)
DEFAULT_CONFIDENCE_THRESHOLD: Final[float] = 0.6

_YAML_SUFFIXES: Final[tuple[str, ...]] = (".yaml", ".yml")

_LOGGER = structlog.get_logger(__name__)


class SignatureManifestError(GoneatError, ValueError):
    """Raised when a signature manifest cannot be read, parsed or compiled."""


@dataclass(frozen=True, slots=True)
class Matcher:
    type: str
    value: str = ""
    pattern: str = ""
    weight: float = 0.0
    ignore_case: bool = False

    @classmethod
    def from_mapping(cls, data: object, path: str) -> Matcher:
        parsed = _expect_object(data, path)
        return cls(
            type=_as_str(parsed.get("type"), f"{path}.type"),
            value=_as_str(parsed.get("value"), f"{path}.value"),
            pattern=_as_str(parsed.get("pattern"), f"{path}.pattern"),
            weight=_as_float(parsed.get("weight"), f"{path}.weight"),
            ignore_case=_as_bool(parsed.get("ignore_case"), f"{path}.ignore_case"),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"type": self.type}
        if self.value:
            payload["value"] = self.value
        if self.pattern:
            payload["pattern"] = self.pattern
        if self.weight:
            payload["weight"] = self.weight
        if self.ignore_case:
            payload["ignore_case"] = True
        return payload


@dataclass(frozen=True, slots=True)
class Signature:
    """A content fingerprint for one schema family."""

    id: str
    category: str = ""
    description: str = ""
    confidence_threshold: float = 0.0
    aliases: tuple[str, ...] = ()
    file_extensions: tuple[str, ...] = ()
    matchers: tuple[Matcher, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    source: str = ""

    @classmethod
    def from_mapping(cls, data: object, path: str, *, source: str = "") -> Signature:
        parsed = _expect_object(data, path)
        metadata = parsed.get("metadata")
        return cls(
            id=_as_str(parsed.get("id"), f"{path}.id"),
            category=_as_str(parsed.get("category"), f"{path}.category"),
            description=_as_str(parsed.get("description"), f"{path}.description"),
            confidence_threshold=_as_float(
                parsed.get("confidence_threshold"), f"{path}.confidence_threshold"
            ),
            aliases=_as_str_tuple(parsed.get("aliases"), f"{path}.aliases"),
            file_extensions=_as_str_tuple(
                parsed.get("file_extensions"), f"{path}.file_extensions"
            ),
            matchers=tuple(
                Matcher.from_mapping(item, f"{path}.matchers[{index}]")
                for index, item in enumerate(
                    _as_list(parsed.get("matchers"), f"{path}.matchers")
                )
            ),
            metadata=MappingProxyType(
                {} if metadata is None else dict(_expect_object(metadata, f"{path}.metadata"))
            ),
            source=source,
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"id": self.id, "category": self.category}
        if self.description:
            payload["description"] = self.description
        if self.confidence_threshold:
            payload["confidence_threshold"] = self.confidence_threshold
        if self.aliases:
            payload["aliases"] = list(self.aliases)
        if self.file_extensions:
            payload["file_extensions"] = list(self.file_extensions)
        payload["matchers"] = [matcher.to_dict() for matcher in self.matchers]
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload


@dataclass(frozen=True, slots=True)
class SignatureManifest:
    version: str = ""
    signatures: tuple[Signature, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "signatures": [signature.to_dict() for signature in self.signatures],
        }


def parse_manifest(data: bytes, source: str) -> SignatureManifest:
    """Parse manifest YAML; every signature records ``source`` as its origin."""

    try:
        payload = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise SignatureManifestError(f"parse signature manifest {source}: {exc}") from exc
    if payload is None:
        return SignatureManifest()
    parsed = _expect_object(payload, source)
    version = parsed.get("version")
    return SignatureManifest(
        version="" if version is None else str(version).strip(),
        signatures=tuple(
            Signature.from_mapping(item, f"{source}: signatures[{index}]", source=source)
            for index, item in enumerate(
                _as_list(parsed.get("signatures"), f"{source}: signatures")
            )
        ),
    )


def load_embedded_manifest(provider: AssetProvider | None = None) -> SignatureManifest:
    assets = provider if provider is not None else EmbeddedAssets()
    data, found = assets.get_schema(EMBEDDED_MANIFEST_PATH)
    if not found:
        raise SignatureManifestError(
            f"embedded signature manifest not found: {EMBEDDED_MANIFEST_PATH}"
        )
    return parse_manifest(data, EMBEDDED_MANIFEST_PATH)


def load_user_manifests(
    home: str | os.PathLike[str] | None = None,
    *,
    logger: Any | None = None,
) -> list[SignatureManifest]:
    """Load overlays from ``<home>/config/signatures.yaml`` and ``<home>/signatures``."""

    log = logger if logger is not None else _LOGGER
    root = Path(home) if home is not None else goneat_home()

    candidates = [root / "config" / "signatures.yaml"]
    signatures_dir = root / "signatures"
    try:
        entries = sorted(signatures_dir.iterdir())
    except FileNotFoundError:
        entries = []
    except NotADirectoryError:
        entries = []
    except OSError as exc:
        raise SignatureManifestError(
            f"read signature overlay directory {signatures_dir}: {exc}"
        ) from exc
    candidates.extend(
        entry
        for entry in entries
        if entry.is_file() and entry.name.lower().endswith(_YAML_SUFFIXES)
    )

    manifests: list[SignatureManifest] = []
    for candidate in candidates:
        manifest = _load_manifest_file(candidate)
        if manifest is None:
            continue
        log.debug(
            "signature_overlay_loaded",
            overlay_path=str(candidate),
            signature_count=len(manifest.signatures),
        )
        manifests.append(manifest)
    return manifests


def load_default_manifest(
    provider: AssetProvider | None = None,
    *,
    home: str | os.PathLike[str] | None = None,
    logger: Any | None = None,
) -> SignatureManifest:
    """Return the embedded manifest merged with user overlays, normalized."""

    manifest = load_embedded_manifest(provider)
    for overlay in load_user_manifests(home, logger=logger):
        manifest = merge_manifest(manifest, overlay)
    return normalize_manifest(manifest)


def merge_manifest(base: SignatureManifest, overlay: SignatureManifest) -> SignatureManifest:
    version = overlay.version or base.version
    if not overlay.signatures:
        return replace(base, version=version)

    merged = list(base.signatures)
    index = {signature.id.lower(): position for position, signature in enumerate(merged)}
    for signature in overlay.signatures:
        if not signature.source:
            origin = f"{overlay.version}@override" if overlay.version else "override"
            signature = replace(signature, source=origin)
        key = signature.id.lower()
        position = index.get(key)
        if position is None:
            index[key] = len(merged)
            merged.append(signature)
        else:
            merged[position] = signature
    return SignatureManifest(version=version, signatures=tuple(merged))


def normalize_manifest(manifest: SignatureManifest) -> SignatureManifest:
    seen: set[str] = set()
    normalized: list[Signature] = []
    for signature in manifest.signatures:
        key = signature.id.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)

        threshold = signature.confidence_threshold
        if threshold <= 0:
            threshold = DEFAULT_CONFIDENCE_THRESHOLD
        normalized.append(
            replace(
                signature,
                confidence_threshold=threshold,
                file_extensions=_normalize_extensions(signature.file_extensions),
                matchers=tuple(
                    replace(
                        matcher,
                        weight=matcher.weight if matcher.weight > 0 else 1.0,
                        type=matcher.type.strip().lower(),
                    )
                    for matcher in signature.matchers
                ),
            )
        )
    return replace(manifest, signatures=tuple(normalized))


def find_signature(manifest: SignatureManifest, signature_id: str) -> Signature | None:
    """Look up a signature by id or alias, ignoring case."""

    wanted = signature_id.strip().lower()
    if not wanted:
        return None
    for signature in manifest.signatures:
        if signature.id.lower() == wanted:
            return signature
        if any(alias.lower() == wanted for alias in signature.aliases):
            return signature
    return None


def _normalize_extensions(extensions: tuple[str, ...]) -> tuple[str, ...]:
    result: set[str] = set()
    for raw in extensions:
        ext = raw.strip()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        result.add(ext.lower())
    return tuple(sorted(result))


def _load_manifest_file(path: Path) -> SignatureManifest | None:
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise SignatureManifestError(f"read signature manifest {path}: {exc}") from exc
    return parse_manifest(data, str(path))


def _fail(path: str, message: str) -> NoReturn:
    raise SignatureManifestError(f"{path}: {message}")


def _expect_object(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_list(value: object, path: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        _fail(path, f"expected array, got {type(value).__name__}")
    return value


def _as_str(value: object, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    return tuple(
        _as_str(item, f"{path}[{index}]") for index, item in enumerate(_as_list(value, path))
    )


def _as_float(value: object, path: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    return parsed


def _as_bool(value: object, path: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        _fail(path, f"expected boolean, got {type(value).__name__}")
    return value


__all__ = [
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "EMBEDDED_MANIFEST_PATH",
    "Matcher",
    "Signature",
    "SignatureManifest",
    "SignatureManifestError",
    "find_signature",
    "load_default_manifest",
    "load_embedded_manifest",
    "load_user_manifests",
    "merge_manifest",
    "normalize_manifest",
    "parse_manifest",
]
