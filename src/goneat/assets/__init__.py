"""Embedded schema and manifest assets."""

from goneat.assets.provider import (
    KNOWN_SCHEMAS,
    AssetProvider,
    EmbeddedAssets,
    SchemaInfo,
    detect_draft,
)

__all__ = ["KNOWN_SCHEMAS", "AssetProvider", "EmbeddedAssets", "SchemaInfo", "detect_draft"]
