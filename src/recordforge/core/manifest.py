"""
Runtime manifest for recordforge.

Loaded from ``recordforge.toml``::

    [database]
    type = "sqlite"
    path = "./data.db"
    timeout = 5.0
    foreign_keys = true

    [logging]
    dir = ".recordforge/logs"
    level = "INFO"

    [query]
    default_page_size = 20
    max_page_size = 100

Environment variables take precedence over the file:
    RECORDFORGE_DB_PATH    - database.path
    RECORDFORGE_LOG_LEVEL  - logging.level
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from recordforge.core.errors import ConfigurationError
from recordforge.specs.query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    QueryParams,
    parse_query_params,
)

MANIFEST_FILENAME = "recordforge.toml"

DB_PATH_ENV_VAR = "RECORDFORGE_DB_PATH"
LOG_LEVEL_ENV_VAR = "RECORDFORGE_LOG_LEVEL"

SUPPORTED_DATABASE_TYPES = ("sqlite",)


@dataclass
class DatabaseConfig:
    """Database connection configuration."""

    type: str = "sqlite"
    path: str = "./data.db"
    timeout: float = 5.0  # seconds the driver waits on a locked database
    foreign_keys: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration."""

    dir: str = ".recordforge/logs"
    level: str = "INFO"


@dataclass
class QueryConfig:
    """Pagination bounds."""

    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    def parse(self, raw: Mapping[str, str | Sequence[str]]) -> QueryParams:
        """Parse raw query parameters with these pagination bounds."""
        return parse_query_params(
            raw,
            default_page_size=self.default_page_size,
            max_page_size=self.max_page_size,
        )


@dataclass
class RuntimeManifest:
    """Complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    query: QueryConfig = field(default_factory=QueryConfig)


def load_manifest(path: Path | str | None = None) -> RuntimeManifest:
    """
    Load the runtime manifest.

    Args:
        path: TOML file to read. A missing file yields the defaults.

    Returns:
        RuntimeManifest with environment overrides applied

    Raises:
        ConfigurationError: If the file is not valid TOML or names an
            unsupported database type.
    """
    manifest_path = Path(path) if path else Path(MANIFEST_FILENAME)
    data: dict[str, Any] = {}
    if manifest_path.exists():
        try:
            with open(manifest_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {manifest_path}: {exc}") from exc

    manifest = _manifest_from_dict(data)
    _apply_env_overrides(manifest)

    if manifest.database.type not in SUPPORTED_DATABASE_TYPES:
        raise ConfigurationError(f"unsupported database type: {manifest.database.type}")
    if not manifest.database.path:
        raise ConfigurationError("database.path is required for SQLite")

    query = manifest.query
    if not 1 <= query.max_page_size <= MAX_PAGE_SIZE:
        raise ConfigurationError(f"query.max_page_size must be between 1 and {MAX_PAGE_SIZE}")
    if not 1 <= query.default_page_size <= query.max_page_size:
        raise ConfigurationError(
            "query.default_page_size must be between 1 and query.max_page_size"
        )

    return manifest


def _manifest_from_dict(data: dict[str, Any]) -> RuntimeManifest:
    db_data = data.get("database", {})
    log_data = data.get("logging", {})
    query_data = data.get("query", {})

    try:
        return RuntimeManifest(
            database=DatabaseConfig(
                type=db_data.get("type", "sqlite"),
                path=db_data.get("path", "./data.db"),
                timeout=float(db_data.get("timeout", 5.0)),
                foreign_keys=bool(db_data.get("foreign_keys", True)),
            ),
            logging=LoggingConfig(
                dir=log_data.get("dir", ".recordforge/logs"),
                level=str(log_data.get("level", "INFO")).upper(),
            ),
            query=QueryConfig(
                default_page_size=int(query_data.get("default_page_size", DEFAULT_PAGE_SIZE)),
                max_page_size=int(query_data.get("max_page_size", MAX_PAGE_SIZE)),
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid manifest value: {exc}") from exc


def _apply_env_overrides(manifest: RuntimeManifest) -> None:
    db_path = os.environ.get(DB_PATH_ENV_VAR)
    if db_path:
        manifest.database.path = db_path

    log_level = os.environ.get(LOG_LEVEL_ENV_VAR)
    if log_level:
        manifest.logging.level = log_level.upper()
