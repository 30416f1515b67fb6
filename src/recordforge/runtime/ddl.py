"""
DDL synthesis.

Turns a :class:`~recordforge.specs.schema.Schema` into idempotent
``CREATE ... IF NOT EXISTS`` statements, in two phases:

1. :meth:`DDLSynthesizer.table_statements` - one CREATE TABLE per model,
   with column constraints and foreign keys.
2. :meth:`DDLSynthesizer.index_statements` - every CREATE INDEX across the
   whole schema.

Phase 2 must only run once phase 1 has run for every model.
"""

from __future__ import annotations

import logging

from recordforge.runtime.dialect import SQLDialect, SQLiteDialect
from recordforge.specs.entity import FieldSpec, ModelSpec
from recordforge.specs.schema import Schema

logger = logging.getLogger(__name__)


def index_name(model_name: str, field_name: str) -> str:
    """Deterministic index name for a model column."""
    return f"idx_{model_name}_{field_name}"


class DDLSynthesizer:
    """Builds CREATE TABLE / CREATE INDEX statements for a schema."""

    def __init__(self, schema: Schema, dialect: SQLDialect | None = None):
        self.schema = schema
        self.dialect = dialect or SQLiteDialect()

    # -------------------------------------------------------------------------
    # Phase 1: tables
    # -------------------------------------------------------------------------

    def table_statements(self) -> list[str]:
        """CREATE TABLE statements for every model, in schema order."""
        return [self.create_table(model) for model in self.schema]

    def create_table(self, model: ModelSpec) -> str:
        q = self.dialect.quote_identifier
        parts = [self.column_definition(field) for field in model.fields]
        parts.extend(
            self.foreign_key_constraint(field)
            for field in model.fields
            if field.is_relation and field.related_to
        )
        body = ",\n  ".join(parts)
        return f"CREATE TABLE IF NOT EXISTS {q(model.name)} (\n  {body}\n)"

    def column_definition(self, field: FieldSpec) -> str:
        """
        Column definition for one field.

        Example:
            "name" VARCHAR(50) NOT NULL
        """
        parts = [self.dialect.quote_identifier(field.name), self.dialect.column_type(field)]

        if field.primary:
            parts.append(self.dialect.primary_key_clause(field))
        elif field.required and not field.nullable:
            parts.append("NOT NULL")

        if field.unique and not field.primary:
            parts.append("UNIQUE")

        if field.default is not None:
            parts.append(f"DEFAULT {self.dialect.encode_default(field.default)}")

        return " ".join(parts)

    def foreign_key_constraint(self, field: FieldSpec) -> str:
        """
        FOREIGN KEY clause for a relation field.

        References the target model's primary column. The ON DELETE action is
        omitted when the field declares no policy.
        """
        q = self.dialect.quote_identifier
        target_name = field.related_to or ""
        target = self.schema.get_model(target_name)
        target_column = target.primary_field.name if target is not None else "id"

        clause = f"FOREIGN KEY ({q(field.name)}) REFERENCES {q(target_name)}({q(target_column)})"
        if field.on_delete is not None:
            clause += f" {self.dialect.on_delete_clause(field.on_delete)}"
        return clause

    # -------------------------------------------------------------------------
    # Phase 2: indexes
    # -------------------------------------------------------------------------

    def index_statements(self) -> list[str]:
        """CREATE INDEX statements across the whole schema."""
        statements: list[str] = []
        for model in self.schema:
            statements.extend(self.model_indexes(model))
        return statements

    def model_indexes(self, model: ModelSpec) -> list[str]:
        q = self.dialect.quote_identifier
        statements = []
        for field in model.fields:
            if field.primary or field.unique:
                continue  # already backed by an implicit index
            if not (field.index or field.is_relation):
                continue
            statements.append(
                f"CREATE INDEX IF NOT EXISTS {q(index_name(model.name, field.name))} "
                f"ON {q(model.name)} ({q(field.name)})"
            )
        return statements

    def all_statements(self) -> list[str]:
        """Both phases, tables first."""
        return self.table_statements() + self.index_statements()
