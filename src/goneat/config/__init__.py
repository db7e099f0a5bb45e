"""
goneat config package public API.

File: src/goneat/config/__init__.py

Purpose
- Export settings loading entrypoints and public error types.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from goneat.config.loader import (
    DEFAULT_LOG_LEVEL,
    ConfigLoadError,
    GoneatSettings,
    goneat_home,
    load_settings,
    offline_mode_enabled,
)

__all__ = [
    "DEFAULT_LOG_LEVEL",
    "ConfigLoadError",
    "GoneatSettings",
    "goneat_home",
    "load_settings",
    "offline_mode_enabled",
]
