"""Unit tests for process exit-code normalization at the CLI boundary."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from goneat.config.loader import ConfigLoadError
from goneat.main import ExitCode, cli_entrypoint
from goneat.schema.errors import SchemaNotFoundError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GONEAT_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("GONEAT_LOG_LEVEL", raising=False)


def _fake_cli(monkeypatch: pytest.MonkeyPatch, outcome: object) -> None:
    def fake_run_cli(argv: Sequence[str] | None = None) -> int:
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]

    monkeypatch.setattr("goneat.ui.cli.run_cli", fake_run_cli)


def test_successful_command_returns_zero() -> None:
    assert cli_entrypoint(["schema", "list", "--json"]) == ExitCode.SUCCESS


def test_argparse_usage_errors_map_to_config_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["schema", "nope"]) == ExitCode.CONFIG_ERROR
    assert "invalid choice" in capsys.readouterr().err


def test_help_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["--help"]) == ExitCode.SUCCESS
    assert "goneat" in capsys.readouterr().out


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (SchemaNotFoundError("schema 'x' not found"), ExitCode.CONFIG_ERROR),
        (ConfigLoadError("bad home"), ExitCode.CONFIG_ERROR),
        (FileNotFoundError("missing.yaml"), ExitCode.CONFIG_ERROR),
        (ValueError("bad value"), ExitCode.CONFIG_ERROR),
        (RuntimeError("unexpected"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_are_routed_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    error: BaseException,
    expected: ExitCode,
) -> None:
    _fake_cli(monkeypatch, error)

    assert cli_entrypoint([]) == expected

    err = capsys.readouterr().err
    if expected is ExitCode.INTERNAL_ERROR:
        assert "Traceback" in err
    else:
        assert err.startswith("error: ")


def test_cause_chain_is_inspected(monkeypatch: pytest.MonkeyPatch) -> None:
    try:
        try:
            raise PermissionError("denied")
        except PermissionError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        _fake_cli(monkeypatch, outer)

    assert cli_entrypoint([]) == ExitCode.CONFIG_ERROR


@pytest.mark.parametrize(
    ("returned", "expected"),
    [(0, 0), (1, 1), (2, 2), (4, 4), (3, 4), (None, 0), ("fatal", 4)],
)
def test_exit_codes_are_normalized(
    monkeypatch: pytest.MonkeyPatch, returned: object, expected: int
) -> None:
    _fake_cli(monkeypatch, SystemExit(returned))
    assert cli_entrypoint([]) == expected
