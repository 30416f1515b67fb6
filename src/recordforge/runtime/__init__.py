"""
recordforge runtime: DDL synthesis, query compilation, validation and
SQLite persistence for a Schema.
"""

from recordforge.runtime.ddl import DDLSynthesizer, index_name
from recordforge.runtime.dialect import SQLDialect, SQLiteDialect, quote_identifier
from recordforge.runtime.query_builder import QueryCompiler, parse_operator
from recordforge.runtime.repository import (
    DatabaseManager,
    PersistenceEngine,
    RepositoryFactory,
    SQLiteRepository,
)
from recordforge.runtime.service import (
    CRUDService,
    PermissionChecker,
    drop_empty_passwords,
    strip_password_fields,
)
from recordforge.runtime.validator import Validator

__all__ = [
    "CRUDService",
    "DDLSynthesizer",
    "DatabaseManager",
    "PermissionChecker",
    "PersistenceEngine",
    "QueryCompiler",
    "RepositoryFactory",
    "SQLDialect",
    "SQLiteDialect",
    "SQLiteRepository",
    "Validator",
    "drop_empty_passwords",
    "index_name",
    "parse_operator",
    "quote_identifier",
    "strip_password_fields",
]
