"""goneat schema signatures: manifest loading and content-based detection."""

from goneat.signature.detector import DetectOptions, SignatureDetector, SignatureMatch
from goneat.signature.manifest import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    Matcher,
    Signature,
    SignatureManifest,
    SignatureManifestError,
    find_signature,
    load_default_manifest,
    merge_manifest,
    normalize_manifest,
    parse_manifest,
)

__all__ = [
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "DetectOptions",
    "Matcher",
    "Signature",
    "SignatureDetector",
    "SignatureManifest",
    "SignatureManifestError",
    "SignatureMatch",
    "find_signature",
    "load_default_manifest",
    "merge_manifest",
    "normalize_manifest",
    "parse_manifest",
]
