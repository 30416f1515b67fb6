"""
Error types for recordforge schema construction, validation, query
compilation and persistence.
"""

from __future__ import annotations

from typing import Any


class RecordForgeError(Exception):
    """Base exception for all recordforge errors."""


class ConfigurationError(RecordForgeError):
    """
    Raised when the runtime manifest is unusable.

    Examples:
    - Unsupported database type
    - Malformed TOML
    """


class SchemaError(RecordForgeError):
    """
    Raised when a schema cannot be built.

    Examples:
    - Model with zero or several primary fields
    - Enum field without options
    - Relation field without a target model
    - Array field without an element type
    - min greater than max
    """

    def __init__(self, message: str, model: str | None = None, field: str | None = None):
        self.model = model
        self.field = field
        self.message = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.model and self.field:
            return f"{self.model}.{self.field}: {self.message}"
        if self.model:
            return f"{self.model}: {self.message}"
        return self.message


class ModelNotFoundError(RecordForgeError):
    """Raised when an operation names a model the schema does not define."""

    def __init__(self, model: str):
        self.model = model
        super().__init__(f"model {model} not found")


class FieldValidationError(RecordForgeError):
    """
    Raised when a payload violates a field constraint.

    Carries the offending field name and a human-readable reason so callers
    can render a field-level error.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class QueryCompilationError(RecordForgeError):
    """
    Raised when a query or mutation cannot be compiled to SQL.

    Examples:
    - Unknown filter operator
    - Filter, sort or payload key naming a column the model does not have
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class RecordNotFoundError(RecordForgeError):
    """Raised when no row matches the requested identifier."""

    def __init__(self, model: str, id: Any):
        self.model = model
        self.id = id
        super().__init__(f"{model} with id {id!r} not found")


class ConstraintViolationError(RecordForgeError):
    """Raised when a database constraint (unique, FK, not null) is violated."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        constraint_type: str = "integrity",
    ):
        self.field = field
        self.constraint_type = constraint_type  # "unique" | "foreign_key" | "not_null" | "integrity"
        super().__init__(message)


class PermissionDeniedError(RecordForgeError):
    """Raised when the permission check refuses an operation."""

    def __init__(self, model: str, verb: str):
        self.model = model
        self.verb = verb
        super().__init__(f"you don't have permission to {verb} {model}")
