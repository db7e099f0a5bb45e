"""
goneat — unit tests for the runtime settings loader

File: tests/unit/config/test_loader.py

Purpose
- Validate deterministic settings resolution from defaults, environment and overrides.

What this test file should cover
- Precedence: overrides > env > defaults.
- Offline mode parsing and home directory resolution.
- Fail-fast behavior for invalid log levels and unknown overrides.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from goneat.config.loader import (
    ConfigLoadError,
    goneat_home,
    load_settings,
    offline_mode_enabled,
)


def test_defaults_without_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = load_settings({})

    assert settings.home == Path.home() / ".goneat"
    assert settings.offline_schema_validation is False
    assert settings.log_level == "WARNING"


def test_environment_values_are_applied(tmp_path: Path) -> None:
    settings = load_settings(
        {
            "GONEAT_HOME": str(tmp_path / "home"),
            "GONEAT_OFFLINE_SCHEMA_VALIDATION": "true",
            "GONEAT_LOG_LEVEL": " debug ",
        }
    )

    assert settings.home == tmp_path / "home"
    assert settings.offline_schema_validation is True
    assert settings.log_level == "DEBUG"


def test_overrides_win_over_environment(tmp_path: Path) -> None:
    settings = load_settings(
        {"GONEAT_LOG_LEVEL": "info", "GONEAT_HOME": str(tmp_path)},
        overrides={"log_level": "error", "offline_schema_validation": True},
    )

    assert settings.log_level == "ERROR"
    assert settings.offline_schema_validation is True
    assert settings.home == tmp_path


@pytest.mark.parametrize("value", ["TRUE", "1", "yes", " true", ""])
def test_offline_mode_requires_literal_true(value: str) -> None:
    assert offline_mode_enabled({"GONEAT_OFFLINE_SCHEMA_VALIDATION": value}) is False


def test_goneat_home_expands_user(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert goneat_home({"GONEAT_HOME": "~/custom"}) == tmp_path / "custom"


def test_invalid_log_level_fails_fast() -> None:
    with pytest.raises(ConfigLoadError, match="unsupported log level"):
        load_settings({"GONEAT_LOG_LEVEL": "chatty"})


def test_unknown_override_is_rejected() -> None:
    with pytest.raises(ConfigLoadError, match="unknown settings override"):
        load_settings({}, overrides={"colour": "blue"})
