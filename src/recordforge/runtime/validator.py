"""
Payload validation against a schema.

``validate_create`` checks every field except an auto-incrementing primary
key; ``validate_update`` checks only the keys present in the payload and
rejects unknown keys and primary-key writes. Both stop at the first failing
field and raise :class:`FieldValidationError`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any, NoReturn

from recordforge.core.errors import FieldValidationError
from recordforge.runtime.logging import get_validation_logger, log_with_context
from recordforge.specs.entity import FieldSpec, ModelSpec
from recordforge.specs.field_types import FieldType, exhaustive
from recordforge.specs.schema import Schema

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$")

# A check returns None when the value is acceptable, otherwise the reason.
Check = Callable[[FieldSpec, Any], str | None]


def _bound(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# Per-type checks
# =============================================================================


def _check_text(field: FieldSpec, value: Any) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if field.min is not None and len(value) < field.min:
        return f"must be at least {_bound(field.min)} characters"
    if field.max is not None and len(value) > field.max:
        return f"must be at most {_bound(field.max)} characters"
    if field.pattern and re.search(field.pattern, value) is None:
        return "does not match required pattern"
    return None


def _check_number(field: FieldSpec, value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return "must be a number"
    if field.min is not None and value < field.min:
        return f"must be at least {_bound(field.min)}"
    if field.max is not None and value > field.max:
        return f"must be at most {_bound(field.max)}"
    return None


def _check_boolean(field: FieldSpec, value: Any) -> str | None:
    if not isinstance(value, bool):
        return "must be a boolean"
    return None


def _check_email(field: FieldSpec, value: Any) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if not EMAIL_PATTERN.match(value):
        return "must be a valid email address"
    return None


def _check_url(field: FieldSpec, value: Any) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if not URL_PATTERN.match(value):
        return "must be a valid URL"
    return None


def _check_enum(field: FieldSpec, value: Any) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if value not in field.options:
        return f"must be one of: {', '.join(field.options)}"
    return None


def _check_temporal(field: FieldSpec, value: Any) -> str | None:
    # Format is left to the database
    if not isinstance(value, str):
        return "must be a string"
    return None


def _no_check(field: FieldSpec, value: Any) -> str | None:
    return None


CHECKS: Mapping[FieldType, Check] = exhaustive(
    {
        FieldType.TEXT: _check_text,
        FieldType.PASSWORD: _check_text,
        FieldType.NUMBER: _check_number,
        FieldType.BOOLEAN: _check_boolean,
        FieldType.EMAIL: _check_email,
        FieldType.URL: _check_url,
        FieldType.ENUM: _check_enum,
        FieldType.DATETIME: _check_temporal,
        FieldType.DATE: _check_temporal,
        FieldType.TIME: _check_temporal,
        FieldType.ID: _no_check,
        FieldType.PHONE: _no_check,
        FieldType.SLUG: _no_check,
        FieldType.COLOR: _no_check,
        FieldType.FILE: _no_check,
        FieldType.IMAGE: _no_check,
        FieldType.MARKDOWN: _no_check,
        FieldType.JSON: _no_check,
        FieldType.ARRAY: _no_check,
        FieldType.RELATION: _no_check,
        FieldType.CURRENCY: _no_check,
        FieldType.LOCATION: _no_check,
        FieldType.IP: _no_check,
        FieldType.UUID: _no_check,
        FieldType.DURATION: _no_check,
    },
    "validation checks",
)


# =============================================================================
# Validator
# =============================================================================


class Validator:
    """Validates create and update payloads for the models of one schema."""

    def __init__(self, schema: Schema):
        self.schema = schema
        self._logger = get_validation_logger()

    def validate_create(self, model_name: str, payload: Mapping[str, Any]) -> None:
        """
        Validate a create payload.

        Raises:
            ModelNotFoundError: Unknown model
            FieldValidationError: First failing field
        """
        model = self.schema.require_model(model_name)
        for field in model.fields:
            if field.primary and field.is_identifier:
                continue
            if field.name not in payload:
                if field.required:
                    self._fail(model, field.name, "field is required")
                continue
            self.validate_field(model, field, payload[field.name])

    def validate_update(self, model_name: str, payload: Mapping[str, Any]) -> None:
        """
        Validate a partial update payload.

        Raises:
            ModelNotFoundError: Unknown model
            FieldValidationError: Unknown key, primary key write, or first
                failing field
        """
        model = self.schema.require_model(model_name)
        pk = model.primary_field.name
        # Primary key writes are rejected before any other check.
        if pk in payload:
            self._fail(model, pk, "cannot update primary key")

        for name, value in payload.items():
            field = model.get_field(name)
            if field is None:
                self._fail(model, name, "field does not exist")
            self.validate_field(model, field, value)

    def validate_field(self, model: ModelSpec, field: FieldSpec, value: Any) -> None:
        """Validate one present value."""
        if value is None:
            if field.nullable:
                return
            if field.required:
                self._fail(model, field.name, "field is required")
            # Optional but non-nullable: accepted here, the NOT NULL column
            # constraint (if any) decides at write time.
            log_with_context(
                self._logger,
                logging.WARNING,
                "Accepted null for non-nullable optional field",
                model=model.name,
                field=field.name,
            )
            return

        reason = CHECKS[field.type](field, value)
        if reason is not None:
            self._fail(model, field.name, reason)

    def _fail(self, model: ModelSpec, field_name: str, message: str) -> NoReturn:
        log_with_context(
            self._logger,
            logging.DEBUG,
            "Validation failed",
            model=model.name,
            field=field_name,
            reason=message,
        )
        raise FieldValidationError(field_name, message)
