"""
SQL dialect boundary.

Everything the DDL synthesizer, the query compiler and the repository need to
know about the target database lives behind :class:`SQLDialect`: identifier
quoting, placeholders, column types, default-literal encoding and value
conversion in both directions. SQLite is the only implemented dialect.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from recordforge.specs.entity import (
    FieldSpec,
    GeneratedAtWrite,
    LiteralDefault,
    OnDeletePolicy,
)
from recordforge.specs.field_types import FieldType, StorageAffinity, exhaustive, storage_affinity


def quote_identifier(name: str) -> str:
    """Quote a SQL identifier, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def escape_string_literal(value: str) -> str:
    """Escape a string for use inside a single-quoted SQL literal."""
    return value.replace("'", "''")


class SQLDialect(ABC):
    """Abstract dialect used by DDL synthesis, query compilation and row mapping."""

    name: str
    placeholder: str
    current_timestamp: str

    def quote_identifier(self, name: str) -> str:
        return quote_identifier(name)

    @abstractmethod
    def column_type(self, field: FieldSpec) -> str:
        """Storage type declared for a field's column."""

    @abstractmethod
    def primary_key_clause(self, field: FieldSpec) -> str:
        """Primary key clause for the model's primary field."""

    @abstractmethod
    def on_delete_clause(self, policy: OnDeletePolicy) -> str:
        """ON DELETE action for a foreign key."""

    def encode_default(self, default: LiteralDefault | GeneratedAtWrite) -> str:
        """
        Encode a column default as a SQL literal.

        The write-time sentinel becomes the dialect's current-timestamp
        keyword. Strings are quoted with escaping, booleans become 1/0,
        numbers are emitted verbatim and anything else is NULL.
        """
        if isinstance(default, GeneratedAtWrite):
            return self.current_timestamp

        value = default.value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, str):
            return f"'{escape_string_literal(value)}'"
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        return "NULL"

    @abstractmethod
    def encode_value(self, field_type: FieldType | None, value: Any) -> Any:
        """Convert a Python value to something the driver can bind."""

    @abstractmethod
    def decode_value(self, field_type: FieldType | None, value: Any) -> Any:
        """Convert a value read from the driver back to a record value."""


# =============================================================================
# SQLite
# =============================================================================

# Base column type per field type. ``True`` in the second slot marks text
# types that narrow to VARCHAR(n) when a small max length is declared.
_SQLITE_COLUMN_TYPES: Mapping[FieldType, tuple[str, bool]] = exhaustive(
    {
        FieldType.TEXT: ("TEXT", True),
        FieldType.NUMBER: ("INTEGER", False),
        FieldType.BOOLEAN: ("BOOLEAN", False),
        FieldType.DATETIME: ("DATETIME", False),
        FieldType.DATE: ("DATETIME", False),
        FieldType.TIME: ("DATETIME", False),
        FieldType.ID: ("INTEGER", False),
        FieldType.EMAIL: ("TEXT", True),
        FieldType.PASSWORD: ("TEXT", True),
        FieldType.PHONE: ("TEXT", True),
        FieldType.URL: ("TEXT", True),
        FieldType.SLUG: ("TEXT", True),
        FieldType.ENUM: ("TEXT", True),
        FieldType.COLOR: ("TEXT", True),
        FieldType.FILE: ("TEXT", False),
        FieldType.IMAGE: ("TEXT", False),
        FieldType.MARKDOWN: ("TEXT", True),
        FieldType.JSON: ("TEXT", True),
        FieldType.ARRAY: ("TEXT", False),
        FieldType.RELATION: ("INTEGER", False),
        FieldType.CURRENCY: ("TEXT", True),
        FieldType.LOCATION: ("TEXT", False),
        FieldType.IP: ("TEXT", True),
        FieldType.UUID: ("TEXT", True),
        FieldType.DURATION: ("TEXT", True),
    },
    "SQLite column types",
)

_VARCHAR_LIMIT = 255

_SQLITE_ON_DELETE: Mapping[OnDeletePolicy, str] = {
    OnDeletePolicy.CASCADE: "ON DELETE CASCADE",
    OnDeletePolicy.RESTRICT: "ON DELETE RESTRICT",
    OnDeletePolicy.SET_NULL: "ON DELETE SET NULL",
}


class SQLiteDialect(SQLDialect):
    """SQLite 3 dialect (stdlib ``sqlite3`` driver)."""

    name = "sqlite"
    placeholder = "?"
    current_timestamp = "CURRENT_TIMESTAMP"

    def column_type(self, field: FieldSpec) -> str:
        base, narrows = _SQLITE_COLUMN_TYPES[field.type]
        if narrows and field.max is not None and field.max < _VARCHAR_LIMIT:
            return f"VARCHAR({int(field.max)})"
        return base

    def primary_key_clause(self, field: FieldSpec) -> str:
        if field.is_identifier:
            return "PRIMARY KEY AUTOINCREMENT"
        return "PRIMARY KEY"

    def on_delete_clause(self, policy: OnDeletePolicy) -> str:
        return _SQLITE_ON_DELETE[policy]

    def encode_value(self, field_type: FieldType | None, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value)
        return value

    def decode_value(self, field_type: FieldType | None, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray)):
            if field_type is None or storage_affinity(field_type) != StorageAffinity.INTEGER:
                value = bytes(value).decode("utf-8", errors="replace")
            else:
                return bytes(value)
        if field_type is None:
            return value

        if field_type == FieldType.BOOLEAN and isinstance(value, int):
            return bool(value)
        if field_type == FieldType.ARRAY and isinstance(value, str) and value.startswith("["):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value
