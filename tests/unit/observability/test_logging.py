"""
goneat — unit tests for structured logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate JSON-lines output, structlog routing and correlation field propagation.

Non-functional requirements
- Deterministic and offline.
"""

from __future__ import annotations

import io
import json
import logging
from uuid import uuid4

import pytest
import structlog

from goneat.observability.logging import (
    LoggingConfig,
    configure_logging,
    correlation_scope,
    get_correlation_context,
)


def _logger_name() -> str:
    return f"goneat.tests.logging.{uuid4().hex}"


def _lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_structlog_events_are_rendered_as_json_lines() -> None:
    stream = io.StringIO()
    name = _logger_name()
    configure_logging(LoggingConfig(level="DEBUG", logger_name=name, stream=stream))

    structlog.get_logger(f"{name}.child").info("schema_suite_validated", total=3, passed=2)

    (event,) = _lines(stream)
    assert event["message"] == "schema_suite_validated"
    assert event["level"] == "INFO"
    assert event["logger"] == f"{name}.child"
    assert event["fields"] == {"passed": 2, "total": 3}
    assert str(event["timestamp"]).endswith("Z")


def test_level_filter_drops_lower_severity_events() -> None:
    stream = io.StringIO()
    name = _logger_name()
    configure_logging(LoggingConfig(level="WARNING", logger_name=name, stream=stream))

    logging.getLogger(name).info("hidden")
    logging.getLogger(name).warning("shown")

    assert [event["message"] for event in _lines(stream)] == ["shown"]


def test_reconfiguring_replaces_previous_handler() -> None:
    first = io.StringIO()
    second = io.StringIO()
    name = _logger_name()
    configure_logging(LoggingConfig(level="INFO", logger_name=name, stream=first))
    configure_logging(LoggingConfig(level="INFO", logger_name=name, stream=second))

    logging.getLogger(name).info("once")

    assert first.getvalue() == ""
    assert len(_lines(second)) == 1


def test_correlation_scope_adds_fields_and_restores() -> None:
    stream = io.StringIO()
    name = _logger_name()
    configure_logging(LoggingConfig(level="INFO", logger_name=name, stream=stream))

    with correlation_scope(run_id="suite-1"):
        assert get_correlation_context() == {"run_id": "suite-1"}
        logging.getLogger(name).info("inside")
    logging.getLogger(name).info("outside")

    inside, outside = _lines(stream)
    assert inside["run_id"] == "suite-1"
    assert "run_id" not in outside
    assert get_correlation_context() == {}


def test_correlation_scope_rejects_blank_values() -> None:
    with pytest.raises(ValueError, match="must not be empty"), correlation_scope(run_id="  "):
        pass


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        configure_logging(LoggingConfig(level="chatty", logger_name=_logger_name()))
