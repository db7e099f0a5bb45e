"""Observability exports."""

from goneat.observability.logging import (
    LoggingConfig,
    configure_logging,
    correlation_scope,
    get_correlation_context,
)

__all__ = [
    "LoggingConfig",
    "configure_logging",
    "correlation_scope",
    "get_correlation_context",
]
