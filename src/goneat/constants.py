"""Stable constants shared across the schema engine."""

from __future__ import annotations

from typing import Final

# Environment variables.
ENV_HOME: Final[str] = "GONEAT_HOME"
ENV_OFFLINE_SCHEMA_VALIDATION: Final[str] = "GONEAT_OFFLINE_SCHEMA_VALIDATION"
ENV_LOG_LEVEL: Final[str] = "GONEAT_LOG_LEVEL"

# Default on-disk locations.
DEFAULT_HOME_DIRNAME: Final[str] = ".goneat"
REPO_CONFIG_DIRNAME: Final[str] = ".goneat"

# Schema file discovery.
SCHEMA_FILE_EXTENSIONS: Final[frozenset[str]] = frozenset({".json", ".yaml", ".yml"})

# Validation limits.
DEFAULT_MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024
DEFAULT_BATCH_TIMEOUT_SECONDS: Final[float] = 30.0

# Supported JSON Schema drafts, matched as substrings of ``$schema``.
SUPPORTED_DRAFT_MARKERS: Final[tuple[str, ...]] = ("draft-07", "2020-12")

__all__ = [
    "DEFAULT_BATCH_TIMEOUT_SECONDS",
    "DEFAULT_HOME_DIRNAME",
    "DEFAULT_MAX_FILE_SIZE",
    "ENV_HOME",
    "ENV_LOG_LEVEL",
    "ENV_OFFLINE_SCHEMA_VALIDATION",
    "REPO_CONFIG_DIRNAME",
    "SCHEMA_FILE_EXTENSIONS",
    "SUPPORTED_DRAFT_MARKERS",
]
