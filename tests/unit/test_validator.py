"""Tests for payload validation."""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from recordforge.core.errors import FieldValidationError, ModelNotFoundError
from recordforge.runtime.validator import Validator
from recordforge.specs.entity import FieldSpec, ModelSpec
from recordforge.specs.field_types import FieldType
from recordforge.specs.schema import build_schema


@pytest.fixture
def validator() -> Validator:
    model = ModelSpec(
        name="Account",
        fields=(
            FieldSpec(name="id", type=FieldType.ID, primary=True),
            FieldSpec(name="name", type=FieldType.TEXT, required=True, min=2, max=10),
            FieldSpec(name="code", type=FieldType.TEXT, pattern=r"[A-Z]{3}"),
            FieldSpec(name="age", type=FieldType.NUMBER, min=0, max=120),
            FieldSpec(name="active", type=FieldType.BOOLEAN),
            FieldSpec(name="email", type=FieldType.EMAIL),
            FieldSpec(name="site", type=FieldType.URL),
            FieldSpec(name="tier", type=FieldType.ENUM, options=("free", "pro")),
            FieldSpec(name="born", type=FieldType.DATE),
            FieldSpec(name="bio", type=FieldType.MARKDOWN, nullable=True),
            FieldSpec(name="phone", type=FieldType.PHONE),
            FieldSpec(name="secret", type=FieldType.PASSWORD, max=8),
        ),
    )
    return Validator(build_schema([model]))


def _error(validator: Validator, payload: dict, *, update: bool = False) -> FieldValidationError:
    check = validator.validate_update if update else validator.validate_create
    with pytest.raises(FieldValidationError) as exc_info:
        check("Account", payload)
    return exc_info.value


class TestRequired:
    def test_missing_required_field(self, validator):
        err = _error(validator, {"age": 3})
        assert (err.field, err.message) == ("name", "field is required")
        assert err.to_dict() == {"field": "name", "message": "field is required"}
        assert str(err) == "name: field is required"

    def test_identifier_is_not_required_on_create(self, validator):
        validator.validate_create("Account", {"name": "Ann"})

    def test_well_formed_unconstrained_field_passes(self, validator):
        validator.validate_create("Account", {"name": "Ann", "phone": "anything at all"})

    def test_unknown_model(self, validator):
        with pytest.raises(ModelNotFoundError):
            validator.validate_create("Ghost", {})


class TestNulls:
    def test_null_for_required_fails(self, validator):
        err = _error(validator, {"name": None})
        assert err.message == "field is required"

    def test_null_for_nullable_passes(self, validator):
        validator.validate_create("Account", {"name": "Ann", "bio": None})

    def test_null_for_optional_non_nullable_passes_with_warning(self, validator, caplog):
        with caplog.at_level(logging.WARNING, logger="recordforge"):
            validator.validate_create("Account", {"name": "Ann", "age": None})
        assert any("non-nullable optional field" in r.getMessage() for r in caplog.records)


class TestText:
    @pytest.mark.parametrize(
        ("value", "message"),
        [
            (5, "must be a string"),
            ("A", "must be at least 2 characters"),
            ("A" * 11, "must be at most 10 characters"),
        ],
    )
    def test_bounds(self, validator, value, message):
        assert _error(validator, {"name": value}).message == message

    def test_length_counts_characters(self, validator):
        validator.validate_create("Account", {"name": "ééééé"})

    def test_pattern_is_searched(self, validator):
        validator.validate_create("Account", {"name": "Ann", "code": "xxABCxx"})
        err = _error(validator, {"name": "Ann", "code": "abc"})
        assert err.message == "does not match required pattern"

    def test_password_uses_text_rules(self, validator):
        err = _error(validator, {"name": "Ann", "secret": "123456789"})
        assert (err.field, err.message) == ("secret", "must be at most 8 characters")


class TestNumber:
    @pytest.mark.parametrize("value", [30, 30.5, Decimal("30")])
    def test_numeric_scalars(self, validator, value):
        validator.validate_create("Account", {"name": "Ann", "age": value})

    @pytest.mark.parametrize("value", ["30", True])
    def test_non_numbers(self, validator, value):
        assert _error(validator, {"name": "Ann", "age": value}).message == "must be a number"

    def test_range(self, validator):
        assert _error(validator, {"name": "Ann", "age": -1}).message == "must be at least 0"
        assert _error(validator, {"name": "Ann", "age": 200}).message == "must be at most 120"


class TestOtherTypes:
    def test_boolean(self, validator):
        assert _error(validator, {"name": "Ann", "active": 1}).message == "must be a boolean"

    def test_email(self, validator):
        validator.validate_create("Account", {"name": "Ann", "email": "ann@example.com"})
        err = _error(validator, {"name": "Ann", "email": "not-an-email"})
        assert err.message == "must be a valid email address"

    def test_url(self, validator):
        validator.validate_create("Account", {"name": "Ann", "site": "https://example.com/x"})
        assert _error(validator, {"name": "Ann", "site": "ftp://x"}).message == "must be a valid URL"

    def test_enum(self, validator):
        validator.validate_create("Account", {"name": "Ann", "tier": "pro"})
        err = _error(validator, {"name": "Ann", "tier": "gold"})
        assert err.message == "must be one of: free, pro"

    def test_temporal_must_be_string(self, validator):
        validator.validate_create("Account", {"name": "Ann", "born": "not parsed here"})
        assert _error(validator, {"name": "Ann", "born": 2020}).message == "must be a string"


class TestUpdate:
    def test_primary_key_update_always_fails(self, validator):
        err = _error(validator, {"name": "Valid", "id": 99}, update=True)
        assert (err.field, err.message) == ("id", "cannot update primary key")

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": 123, "id": 99},
            {"ghost": 1, "id": 99},
            {"name": None, "id": 99},
            {"age": 500, "tier": "gold", "id": 99},
        ],
    )
    def test_primary_key_error_wins_over_earlier_keys(self, validator, payload):
        err = _error(validator, payload, update=True)
        assert (err.field, err.message) == ("id", "cannot update primary key")

    def test_unknown_field(self, validator):
        err = _error(validator, {"ghost": 1}, update=True)
        assert (err.field, err.message) == ("ghost", "field does not exist")

    def test_partial_payload_skips_required(self, validator):
        validator.validate_update("Account", {"age": 5})

    def test_present_fields_are_checked(self, validator):
        err = _error(validator, {"age": 500}, update=True)
        assert err.field == "age"
