"""
Query compiler.

Compiles :class:`~recordforge.specs.query.QueryParams` and CRUD payloads into
parameterized SQL for one dialect. Values are always bound as parameters.
Identifiers are quoted, and only after they have been checked against the
schema, so a filter, sort or payload key naming a column the model does not
have fails here with :class:`QueryCompilationError` instead of reaching the
database.

Every ``compile_*`` method returns a ``(sql, params)`` tuple.

SELECT clause order:
    SELECT * FROM "Model"
    WHERE <filters ANDed> [AND (<search ORed>)]
    ORDER BY <sort fields> | <primary key> DESC
    LIMIT ? OFFSET ?            (only when page_size > 0)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from recordforge.core.errors import QueryCompilationError
from recordforge.runtime.dialect import SQLDialect, SQLiteDialect
from recordforge.specs.entity import FieldSpec, ModelSpec
from recordforge.specs.query import Filter, FilterOperator, QueryParams, SortField
from recordforge.specs.schema import Schema

logger = logging.getLogger(__name__)

Compiled = tuple[str, list[Any]]

_COMPARISON_OPERATORS = frozenset(
    {
        FilterOperator.EQ,
        FilterOperator.NE,
        FilterOperator.NE_ALT,
        FilterOperator.GT,
        FilterOperator.GTE,
        FilterOperator.LT,
        FilterOperator.LTE,
    }
)


def parse_operator(operator: str | None) -> FilterOperator:
    """
    Normalize a filter operator token.

    An empty operator means equality.

    Raises:
        QueryCompilationError: If the operator is not supported
    """
    token = (operator or "").strip().lower()
    if not token:
        return FilterOperator.EQ
    try:
        return FilterOperator(token)
    except ValueError:
        raise QueryCompilationError(f"unknown filter operator '{operator}'") from None


class QueryCompiler:
    """Compiles queries and mutations for the models of one schema."""

    def __init__(self, schema: Schema, dialect: SQLDialect | None = None):
        self.schema = schema
        self.dialect = dialect or SQLiteDialect()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _q(self, name: str) -> str:
        return self.dialect.quote_identifier(name)

    def _field(self, model: ModelSpec, name: str) -> FieldSpec:
        field = model.get_field(name)
        if field is None:
            raise QueryCompilationError(
                f"unknown field '{name}' on model {model.name}", field=name
            )
        return field

    def _encode(self, field: FieldSpec, value: Any) -> Any:
        return self.dialect.encode_value(field.type, value)

    def _log(self, sql: str) -> None:
        logger.debug("Compiled: %s", sql)

    # =========================================================================
    # WHERE
    # =========================================================================

    def filter_clause(self, model: ModelSpec, flt: Filter) -> tuple[str, list[Any]]:
        """Compile one filter into a predicate and its bound values."""
        field = self._field(model, flt.field)
        try:
            operator = parse_operator(flt.operator)
        except QueryCompilationError as exc:
            raise QueryCompilationError(str(exc), field=flt.field) from None

        column = self._q(field.name)
        ph = self.dialect.placeholder

        if operator == FilterOperator.LIKE:
            return f"{column} LIKE {ph}", [f"%{flt.value}%"]

        if operator == FilterOperator.IN:
            values = _as_list(flt.value)
            if not values:
                return "1 = 0", []
            placeholders = ", ".join(ph for _ in values)
            return f"{column} IN ({placeholders})", [self._encode(field, v) for v in values]

        assert operator in _COMPARISON_OPERATORS
        return f"{column} {operator.value} {ph}", [self._encode(field, flt.value)]

    def build_where(
        self,
        model: ModelSpec,
        filters: Iterable[Filter] = (),
        search: str | None = None,
    ) -> tuple[str, list[Any]]:
        """
        Build the WHERE clause shared by SELECT and COUNT.

        Filters are ANDed. A search term ORs one LIKE per searchable field
        of the model and narrows the filtered set rather than replacing it.

        Returns:
            (clause, params) where clause is "" or starts with "WHERE"
        """
        clauses: list[str] = []
        params: list[Any] = []

        for flt in filters:
            clause, values = self.filter_clause(model, flt)
            clauses.append(clause)
            params.extend(values)

        searchable = model.list_view.searchable
        if search and searchable:
            ph = self.dialect.placeholder
            group = " OR ".join(f"{self._q(name)} LIKE {ph}" for name in searchable)
            params.extend(f"%{search}%" for _ in searchable)
            clauses.append(f"({group})" if clauses else group)

        if not clauses:
            return "", params
        return "WHERE " + " AND ".join(clauses), params

    # =========================================================================
    # SELECT / COUNT
    # =========================================================================

    def build_order_by(self, model: ModelSpec, sort: Sequence[SortField]) -> str:
        """
        ORDER BY clause. Without sort fields, newest first by primary key.

        Explicit sorts end with the primary key (descending) unless they
        already name it, so ties never reorder between pages.
        """
        pk = model.primary_field.name
        if not sort:
            return f"ORDER BY {self._q(pk)} DESC"
        parts = []
        names = set()
        for item in sort:
            field = self._field(model, item.field)
            names.add(field.name)
            parts.append(f"{self._q(field.name)} {'DESC' if item.descending else 'ASC'}")
        if pk not in names:
            parts.append(f"{self._q(pk)} DESC")
        return "ORDER BY " + ", ".join(parts)

    def compile_select(self, model_name: str, params: QueryParams | None = None) -> Compiled:
        """
        Compile a list query.

        Args:
            model_name: Model to select from
            params: Filters, search, sort and pagination (defaults apply when None)

        Returns:
            (sql, params)
        """
        model = self.schema.require_model(model_name)
        params = params or QueryParams()

        parts = [f"SELECT * FROM {self._q(model.name)}"]
        where, args = self.build_where(model, params.filters, params.search)
        if where:
            parts.append(where)
        parts.append(self.build_order_by(model, params.sort))

        if params.page_size > 0:
            ph = self.dialect.placeholder
            parts.append(f"LIMIT {ph} OFFSET {ph}")
            args.extend([params.page_size, params.offset])

        sql = " ".join(parts)
        self._log(sql)
        return sql, args

    def compile_count(
        self,
        model_name: str,
        filters: Iterable[Filter] = (),
        search: str | None = None,
    ) -> Compiled:
        """Compile a COUNT(*) over the same WHERE clause a select would use."""
        model = self.schema.require_model(model_name)
        where, args = self.build_where(model, filters, search)
        sql = f"SELECT COUNT(*) FROM {self._q(model.name)}"
        if where:
            sql = f"{sql} {where}"
        self._log(sql)
        return sql, args

    def compile_get(self, model_name: str, id: Any) -> Compiled:
        model = self.schema.require_model(model_name)
        pk = model.primary_field
        sql = f"SELECT * FROM {self._q(model.name)} WHERE {self._q(pk.name)} = {self.dialect.placeholder}"
        self._log(sql)
        return sql, [self._encode(pk, id)]

    # =========================================================================
    # Mutations
    # =========================================================================

    def compile_insert(self, model_name: str, payload: Mapping[str, Any]) -> Compiled:
        """
        Compile an INSERT.

        Column names and placeholders come from one pass over the payload, so
        position ``i`` of the column list always matches bound value ``i``.
        """
        model = self.schema.require_model(model_name)
        table = self._q(model.name)

        columns: list[str] = []
        values: list[Any] = []
        for name, value in payload.items():
            field = self._field(model, name)
            columns.append(self._q(field.name))
            values.append(self._encode(field, value))

        if not columns:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        else:
            placeholders = ", ".join(self.dialect.placeholder for _ in columns)
            sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        self._log(sql)
        return sql, values

    def compile_update(self, model_name: str, id: Any, payload: Mapping[str, Any]) -> Compiled:
        """
        Compile an UPDATE keyed by primary key, with the id bound last.

        Raises:
            QueryCompilationError: Empty payload, unknown column or an
                attempt to set the primary key.
        """
        model = self.schema.require_model(model_name)
        pk = model.primary_field
        ph = self.dialect.placeholder

        assignments: list[str] = []
        values: list[Any] = []
        for name, value in payload.items():
            field = self._field(model, name)
            if field.primary:
                raise QueryCompilationError("cannot update primary key", field=name)
            assignments.append(f"{self._q(field.name)} = {ph}")
            values.append(self._encode(field, value))

        if not assignments:
            raise QueryCompilationError(f"no fields to update on model {model.name}")

        values.append(self._encode(pk, id))
        sql = (
            f"UPDATE {self._q(model.name)} SET {', '.join(assignments)} "
            f"WHERE {self._q(pk.name)} = {ph}"
        )
        self._log(sql)
        return sql, values

    def compile_delete(self, model_name: str, id: Any) -> Compiled:
        model = self.schema.require_model(model_name)
        pk = model.primary_field
        sql = f"DELETE FROM {self._q(model.name)} WHERE {self._q(pk.name)} = {self.dialect.placeholder}"
        self._log(sql)
        return sql, [self._encode(pk, id)]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]
