"""
SQLite repository - persistence layer for recordforge.

This module implements the repository pattern for SQLite database access.
It creates tables from a Schema in two phases (tables, then indexes) and
executes compiled CRUD statements, mapping rows back into plain record dicts.

Each call is a single autocommit statement on a fresh connection unless the
caller passes a connection obtained from :meth:`DatabaseManager.transaction`.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from recordforge.core.errors import (
    ConstraintViolationError,
    RecordForgeError,
    RecordNotFoundError,
)
from recordforge.runtime.ddl import DDLSynthesizer
from recordforge.runtime.dialect import SQLDialect, SQLiteDialect, quote_identifier
from recordforge.runtime.logging import get_store_logger, log_with_context
from recordforge.runtime.query_builder import QueryCompiler
from recordforge.specs.entity import ModelSpec
from recordforge.specs.field_types import FieldType
from recordforge.specs.query import Filter, QueryParams
from recordforge.specs.schema import Schema

if TYPE_CHECKING:
    from recordforge.core.manifest import DatabaseConfig

Record = dict[str, Any]

logger = get_store_logger()

_MEMORY_PATH = ":memory:"


# =============================================================================
# Constraint Violations
# =============================================================================


def _parse_constraint_error(exc: str | Exception) -> tuple[str, str | None]:
    """Parse a SQLite integrity error message to extract type and field.

    Returns:
        (constraint_type, field_name_or_none)
    """
    err = exc if isinstance(exc, str) else str(exc)

    # "UNIQUE constraint failed: User.email"
    for marker, ctype in (
        ("UNIQUE constraint failed:", "unique"),
        ("NOT NULL constraint failed:", "not_null"),
    ):
        if marker in err:
            target = err.split(marker)[-1].strip()
            # "User.email" -> "email"; composite keys name the first column
            first = target.split(",")[0].strip()
            field_name = first.split(".")[-1].strip() if first else None
            return ctype, field_name or None

    if "FOREIGN KEY constraint failed" in err:
        return "foreign_key", None

    return "integrity", None


def _constraint_violation(exc: sqlite3.IntegrityError, table_name: str) -> ConstraintViolationError:
    ctype, field = _parse_constraint_error(exc)
    if ctype == "unique":
        msg = (
            f"A {table_name} with this {field} already exists"
            if field
            else f"Duplicate value violates unique constraint on {table_name}"
        )
    elif ctype == "not_null":
        msg = f"Field '{field}' of {table_name} cannot be null"
    elif ctype == "foreign_key":
        msg = f"Referenced record does not exist for {table_name}"
    else:
        msg = f"Integrity constraint violated on {table_name}: {exc}"

    log_with_context(
        logger,
        logging.WARNING,
        "Constraint violated",
        model=table_name,
        field=field,
        constraint_type=ctype,
    )
    return ConstraintViolationError(msg, field=field, constraint_type=ctype)


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """
    Manages the SQLite database file and schema.

    Handles connection setup, DDL execution and introspection.
    """

    def __init__(
        self,
        db_path: str | Path = "./data.db",
        dialect: SQLDialect | None = None,
        timeout: float = 5.0,
        foreign_keys: bool = True,
    ):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file
            dialect: SQL dialect (SQLite when omitted)
            timeout: Seconds the driver waits on a locked database
            foreign_keys: Enforce foreign key constraints
        """
        self.db_path = Path(db_path) if str(db_path) != _MEMORY_PATH else None
        self.dialect = dialect or SQLiteDialect()
        self.timeout = timeout
        self.foreign_keys = foreign_keys
        self._ensure_directory()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> DatabaseManager:
        """Create a manager from the ``[database]`` manifest section."""
        return cls(config.path, timeout=config.timeout, foreign_keys=config.foreign_keys)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        target = str(self.db_path) if self.db_path is not None else _MEMORY_PATH
        conn = sqlite3.connect(target, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        if self.foreign_keys:
            conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get a database connection context manager.

        Commits on success, rolls back on error, always closes.

        Yields:
            SQLite connection
        """
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run several statements atomically.

        Pass the yielded connection to repository calls; everything commits
        together when the block exits and rolls back if it raises.

        Example:
            with db.transaction() as conn:
                repo.create({"name": "Ann"}, conn=conn)
                repo.create({"name": "Bob"}, conn=conn)
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def scope(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Use the caller's connection if given, otherwise a fresh autocommit one."""
        if conn is not None:
            yield conn
            return
        with self.connection() as fresh:
            yield fresh

    def create_schema(self, schema: Schema) -> None:
        """
        Create all tables, then all indexes.

        Idempotent: every statement is ``IF NOT EXISTS``.
        """
        synthesizer = DDLSynthesizer(schema, self.dialect)
        tables = synthesizer.table_statements()
        indexes = synthesizer.index_statements()

        with self.connection() as conn:
            cursor = conn.cursor()
            for sql in tables:
                logger.debug("DDL: %s", sql)
                cursor.execute(sql)
            logger.info("Created %d table(s)", len(tables))

            for sql in indexes:
                logger.debug("DDL: %s", sql)
                cursor.execute(sql)
            logger.info("Created %d index(es)", len(indexes))

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,)
            )
            return cursor.fetchone() is not None

    def get_table_columns(self, table_name: str) -> list[str]:
        """Get column names for a table."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"PRAGMA table_info({quote_identifier(table_name)})")
            return [row[1] for row in cursor.fetchall()]

    def get_index_names(self, table_name: str) -> list[str]:
        """Get explicitly created index names for a table."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name=? "
                "AND sql IS NOT NULL ORDER BY name",
                (table_name,),
            )
            return [row[0] for row in cursor.fetchall()]


# =============================================================================
# Repository
# =============================================================================


class SQLiteRepository:
    """
    SQLite repository for a single model.

    Provides CRUD operations against SQLite database.
    """

    def __init__(self, db_manager: DatabaseManager, compiler: QueryCompiler, model: ModelSpec):
        """
        Initialize the repository.

        Args:
            db_manager: Database manager instance
            compiler: Query compiler for the schema the model belongs to
            model: Model specification
        """
        self.db = db_manager
        self.compiler = compiler
        self.model = model
        self.table_name = model.name

        # Field type lookup for value decoding
        self._field_types: dict[str, FieldType] = {f.name: f.type for f in model.fields}

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        """Convert a database row to a record dict."""
        decode = self.db.dialect.decode_value
        return {key: decode(self._field_types.get(key), row[key]) for key in row.keys()}

    def _timed(self, operation: str, start: float, rows: int) -> None:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "%s %s: %d row(s) in %.2fms", operation, self.table_name, rows, latency_ms
        )

    def query(
        self, params: QueryParams | None = None, conn: sqlite3.Connection | None = None
    ) -> list[Record]:
        """
        List records matching filters, search, sort and pagination.

        Returns:
            List of records, empty (never None) when nothing matches
        """
        sql, args = self.compiler.compile_select(self.table_name, params)

        start = time.perf_counter()
        with self.db.scope(conn) as c:
            rows = c.execute(sql, args).fetchall()
        self._timed("select", start, len(rows))

        return [self._row_to_record(row) for row in rows]

    def get(self, id: Any, conn: sqlite3.Connection | None = None) -> Record:
        """
        Read a record by primary key.

        Raises:
            RecordNotFoundError: If no row matches
        """
        sql, args = self.compiler.compile_get(self.table_name, id)

        start = time.perf_counter()
        with self.db.scope(conn) as c:
            row = c.execute(sql, args).fetchone()
        self._timed("select", start, 1 if row else 0)

        if row is None:
            raise RecordNotFoundError(self.table_name, id)
        return self._row_to_record(row)

    def create(self, payload: Mapping[str, Any], conn: sqlite3.Connection | None = None) -> Any:
        """
        Insert a record.

        Returns:
            The primary key value: the one supplied in the payload, or the
            row id the database generated
        """
        sql, args = self.compiler.compile_insert(self.table_name, payload)

        start = time.perf_counter()
        try:
            with self.db.scope(conn) as c:
                cursor = c.execute(sql, args)
                row_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise _constraint_violation(exc, self.table_name) from exc
        self._timed("insert", start, 1)

        pk = self.model.primary_field.name
        if payload.get(pk) is not None:
            return payload[pk]
        return row_id

    def update(
        self, id: Any, payload: Mapping[str, Any], conn: sqlite3.Connection | None = None
    ) -> bool:
        """
        Update a record by primary key.

        Returns:
            True if a row was updated, False if none matched
        """
        sql, args = self.compiler.compile_update(self.table_name, id, payload)

        start = time.perf_counter()
        try:
            with self.db.scope(conn) as c:
                rowcount = c.execute(sql, args).rowcount
        except sqlite3.IntegrityError as exc:
            raise _constraint_violation(exc, self.table_name) from exc
        self._timed("update", start, rowcount)

        return rowcount > 0

    def delete(self, id: Any, conn: sqlite3.Connection | None = None) -> bool:
        """
        Delete a record by primary key.

        Returns:
            True if deleted, False if not found
        """
        sql, args = self.compiler.compile_delete(self.table_name, id)

        start = time.perf_counter()
        try:
            with self.db.scope(conn) as c:
                rowcount = c.execute(sql, args).rowcount
        except sqlite3.IntegrityError as exc:
            raise _constraint_violation(exc, self.table_name) from exc
        self._timed("delete", start, rowcount)

        return rowcount > 0

    def count(
        self,
        filters: Iterable[Filter] = (),
        search: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Count records matching the same WHERE clause a query would use."""
        sql, args = self.compiler.compile_count(self.table_name, filters, search)

        start = time.perf_counter()
        with self.db.scope(conn) as c:
            total = int(c.execute(sql, args).fetchone()[0])
        self._timed("count", start, total)

        return total


# =============================================================================
# Repository Factory
# =============================================================================


class RepositoryFactory:
    """
    Factory for creating repositories from a schema.
    """

    def __init__(self, db_manager: DatabaseManager, compiler: QueryCompiler):
        self.db = db_manager
        self.compiler = compiler
        self._repositories: dict[str, SQLiteRepository] = {}

    def create_repository(self, model: ModelSpec) -> SQLiteRepository:
        repo = SQLiteRepository(self.db, self.compiler, model)
        self._repositories[model.name] = repo
        return repo

    def create_all_repositories(self, schema: Schema) -> dict[str, SQLiteRepository]:
        """
        Create repositories for all models.

        Returns:
            Dictionary mapping model names to repositories
        """
        for model in schema:
            self.create_repository(model)
        return self._repositories

    def get_repository(self, model_name: str) -> SQLiteRepository | None:
        """Get a repository by model name."""
        return self._repositories.get(model_name)


# =============================================================================
# Persistence Engine
# =============================================================================


class PersistenceEngine:
    """
    Model-name-keyed persistence contract.

    ``create_schema`` must run once before any other call.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.schema: Schema | None = None
        self._factory: RepositoryFactory | None = None

    def create_schema(self, schema: Schema) -> None:
        """Create storage for the schema and bind repositories to it."""
        self.db.create_schema(schema)
        self.schema = schema
        self._factory = RepositoryFactory(self.db, QueryCompiler(schema, self.db.dialect))
        self._factory.create_all_repositories(schema)

    def repository(self, model_name: str) -> SQLiteRepository:
        """
        Get the repository for a model.

        Raises:
            RecordForgeError: If create_schema has not run
            ModelNotFoundError: If the model is not in the schema
        """
        if self.schema is None or self._factory is None:
            raise RecordForgeError("schema not created; call create_schema() first")
        self.schema.require_model(model_name)
        repo = self._factory.get_repository(model_name)
        assert repo is not None
        return repo

    def query(self, model_name: str, params: QueryParams | None = None) -> list[Record]:
        return self.repository(model_name).query(params)

    def get(self, model_name: str, id: Any) -> Record:
        return self.repository(model_name).get(id)

    def create(self, model_name: str, payload: Mapping[str, Any]) -> Any:
        return self.repository(model_name).create(payload)

    def update(self, model_name: str, id: Any, payload: Mapping[str, Any]) -> bool:
        return self.repository(model_name).update(id, payload)

    def delete(self, model_name: str, id: Any) -> bool:
        return self.repository(model_name).delete(id)

    def count(self, model_name: str, filters: Iterable[Filter] = (), search: str | None = None) -> int:
        return self.repository(model_name).count(filters, search)
