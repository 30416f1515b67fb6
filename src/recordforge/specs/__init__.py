"""
Schema specification types.

This module exports the field type catalog, model descriptors, the schema
and query parameter types.
"""

from recordforge.specs.entity import (
    GENERATED_AT_WRITE,
    DefaultValue,
    FieldSpec,
    FormView,
    GeneratedAtWrite,
    ListView,
    LiteralDefault,
    ModelSpec,
    OnDeletePolicy,
    PermissionSpec,
)
from recordforge.specs.field_types import (
    CATALOG,
    FieldType,
    FieldTypeInfo,
    StorageAffinity,
    exhaustive,
    storage_affinity,
)
from recordforge.specs.query import (
    Filter,
    FilterOperator,
    QueryParams,
    SortField,
    parse_query_params,
    parse_sort_string,
)
from recordforge.specs.schema import Schema, build_schema, schema_from_config

__all__ = [
    # Field types
    "CATALOG",
    "FieldType",
    "FieldTypeInfo",
    "StorageAffinity",
    "exhaustive",
    "storage_affinity",
    # Model types
    "DefaultValue",
    "FieldSpec",
    "FormView",
    "GENERATED_AT_WRITE",
    "GeneratedAtWrite",
    "ListView",
    "LiteralDefault",
    "ModelSpec",
    "OnDeletePolicy",
    "PermissionSpec",
    # Schema
    "Schema",
    "build_schema",
    "schema_from_config",
    # Queries
    "Filter",
    "FilterOperator",
    "QueryParams",
    "SortField",
    "parse_query_params",
    "parse_sort_string",
]
