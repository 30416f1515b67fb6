"""
recordforge - schema-driven persistence.

Turns a declarative model description into a running SQLite persistence
layer:
- specs: field type catalog, model descriptors, Schema, QueryParams
- runtime: DDL synthesis, query compilation, validation, repositories
- core: errors and runtime configuration
"""

from recordforge._version import get_version as _get_version

__version__ = _get_version()

from recordforge.specs.schema import Schema, build_schema, schema_from_config  # noqa: E402

__all__ = ["Schema", "build_schema", "schema_from_config"]
