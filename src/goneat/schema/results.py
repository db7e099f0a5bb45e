"""Validation result model and the compiled schema wrapper."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final

import jsonschema.exceptions
import referencing.exceptions

from goneat.schema.documents import parse_data
from goneat.schema.errors import SchemaCompileError

if TYPE_CHECKING:
    from jsonschema.protocols import Validator

ROOT_PATH: Final[str] = "root"

_INSTALL_MUTUALLY_EXCLUSIVE: Final[str] = (
    "Both 'install' and 'install_commands' cannot be present (mutually exclusive). "
    "Use only 'install' for v1.1.0+ package managers, or only 'install_commands' for "
    "legacy scripts."
)
_INSTALL_REQUIRES_V110: Final[str] = (
    "The 'install' property requires schema v1.1.0+. Either upgrade to v1.1.0 schema "
    "or use 'install_commands' instead."
)
_NOT_CONSTRAINT_HINT: Final[str] = (
    "(Schema constraint violation - check for mutually exclusive properties or invalid "
    "combinations)"
)


@dataclass(frozen=True, slots=True)
class ValidationContext:
    source_file: str = ""
    source_type: str = ""
    line_number: int = 0
    severity: str = ""

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.source_file:
            payload["source_file"] = self.source_file
        if self.source_type:
            payload["source_type"] = self.source_type
        if self.line_number:
            payload["line_number"] = self.line_number
        if self.severity:
            payload["severity"] = self.severity
        return payload


@dataclass(frozen=True, slots=True)
class ValidationError:
    """One structural mismatch between data and schema."""

    path: str
    message: str
    context: ValidationContext | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"path": self.path, "message": self.message}
        if self.context is not None:
            payload["context"] = self.context.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: tuple[ValidationError, ...] = ()

    def with_context(self, context: ValidationContext | None) -> ValidationResult:
        """Attach ``context`` to every error of an invalid result with a source file."""

        if self.valid or context is None or not context.source_file:
            return self
        return replace(
            self,
            errors=tuple(replace(error, context=context) for error in self.errors),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"valid": self.valid}
        if self.errors:
            payload["errors"] = [error.to_dict() for error in self.errors]
        return payload


class CompiledSchema:
    """Immutable compiled schema; safe for concurrent read-only validation."""

    __slots__ = ("_schema_id", "_validator")

    def __init__(self, validator: Validator, *, schema_id: str = "") -> None:
        self._validator = validator
        self._schema_id = schema_id

    @property
    def schema_id(self) -> str:
        return self._schema_id

    def validate(self, data: object) -> ValidationResult:
        try:
            raw_errors = sorted(self._validator.iter_errors(data), key=_error_sort_key)
        except referencing.exceptions.Unresolvable as exc:
            raise SchemaCompileError(f"unresolvable $ref: {exc}") from exc
        errors = tuple(_convert_error(error) for error in raw_errors)
        return ValidationResult(valid=not errors, errors=errors)

    def validate_bytes(
        self,
        data_bytes: bytes,
        *,
        context: ValidationContext | None = None,
    ) -> ValidationResult:
        data, source_type = parse_data(data_bytes)
        result = self.validate(data)
        if context is None:
            return result
        return result.with_context(replace(context, source_type=source_type))


def format_error_path(parts: Iterable[object]) -> str:
    return ".".join(str(part) for part in parts) or ROOT_PATH


def improve_message(path: str, error: jsonschema.exceptions.ValidationError) -> str:
    """Rewrite known cryptic validator messages into actionable text."""

    keyword = error.validator
    if path.startswith("tools."):
        if keyword == "not":
            return _INSTALL_MUTUALLY_EXCLUSIVE
        if keyword == "additionalProperties" and "'install'" in error.message:
            return _INSTALL_REQUIRES_V110
    if keyword == "not":
        return f"{error.message} {_NOT_CONSTRAINT_HINT}"
    return error.message


def _convert_error(error: jsonschema.exceptions.ValidationError) -> ValidationError:
    path = format_error_path(error.absolute_path)
    return ValidationError(path=path, message=improve_message(path, error))


def _error_sort_key(error: jsonschema.exceptions.ValidationError) -> tuple[object, ...]:
    return (tuple(str(part) for part in error.absolute_path), str(error.validator), error.message)


__all__ = [
    "ROOT_PATH",
    "CompiledSchema",
    "ValidationContext",
    "ValidationError",
    "ValidationResult",
    "format_error_path",
    "improve_message",
]
