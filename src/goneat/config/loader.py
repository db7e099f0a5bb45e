"""
goneat — runtime settings loader.

File: src/goneat/config/loader.py

Purpose
- Resolve effective runtime settings from environment variables and defaults.

What should be included in this file
- Precedence logic: explicit overrides > env (GONEAT_) > defaults.
- Deterministic environment variable mapping and coercion.
- Home directory resolution (``GONEAT_HOME`` or ``~/.goneat``).

Functional requirements
- Offline schema validation is enabled only by the literal value ``true``.
- Invalid log levels fail fast with ``ConfigLoadError``.

Non-functional requirements
- Keep loading deterministic; never touch the filesystem.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

from goneat.constants import (
    DEFAULT_HOME_DIRNAME,
    ENV_HOME,
    ENV_LOG_LEVEL,
    ENV_OFFLINE_SCHEMA_VALIDATION,
)

DEFAULT_LOG_LEVEL: Final[str] = "WARNING"

_OFFLINE_TRUE: Final[str] = "true"


class ConfigLoadError(ValueError):
    """Raised when settings cannot be resolved or coerced."""


@dataclass(frozen=True, slots=True)
class GoneatSettings:
    """Effective runtime settings shared by the schema engine and the CLI."""

    home: Path
    offline_schema_validation: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    def with_overrides(self, **overrides: object) -> GoneatSettings:
        unknown = sorted(set(overrides) - {"home", "offline_schema_validation", "log_level"})
        if unknown:
            raise ConfigLoadError(f"unknown settings override(s): {', '.join(unknown)}")
        updated = replace(self, **overrides)  # type: ignore[arg-type]
        return replace(updated, log_level=_normalize_log_level(updated.log_level))


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
) -> GoneatSettings:
    """Load settings with deterministic precedence: overrides > env > defaults."""

    env_map = dict(os.environ if environ is None else environ)
    settings = GoneatSettings(
        home=goneat_home(env_map),
        offline_schema_validation=offline_mode_enabled(env_map),
        log_level=_normalize_log_level(env_map.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)),
    )
    if overrides:
        settings = settings.with_overrides(**dict(overrides))
    return settings


def goneat_home(environ: Mapping[str, str] | None = None) -> Path:
    """Return ``GONEAT_HOME`` when set, else ``~/.goneat``."""

    env_map = os.environ if environ is None else environ
    configured = env_map.get(ENV_HOME, "").strip()
    if configured:
        return Path(configured).expanduser()
    try:
        return Path.home() / DEFAULT_HOME_DIRNAME
    except RuntimeError as exc:
        raise ConfigLoadError(f"failed to resolve user home directory: {exc}") from exc


def offline_mode_enabled(environ: Mapping[str, str] | None = None) -> bool:
    env_map = os.environ if environ is None else environ
    return env_map.get(ENV_OFFLINE_SCHEMA_VALIDATION, "") == _OFFLINE_TRUE


def _normalize_log_level(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigLoadError(f"{ENV_LOG_LEVEL} must be a non-empty string")
    normalized = value.strip().upper()
    if not isinstance(logging.getLevelName(normalized), int):
        raise ConfigLoadError(f"unsupported log level {value!r}")
    return normalized


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "ConfigLoadError",
    "GoneatSettings",
    "goneat_home",
    "load_settings",
    "offline_mode_enabled",
]
