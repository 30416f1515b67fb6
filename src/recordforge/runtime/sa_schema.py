"""
SQLAlchemy MetaData bridge for Schema.

Projects recordforge models onto SQLAlchemy Table objects on a shared
MetaData instance, so external tooling (Alembic, diagram generators) can work
from the same definitions the DDL synthesizer uses.

SQLAlchemy Core only, no ORM. This module never executes DDL itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from recordforge.runtime.dialect import SQLiteDialect
from recordforge.specs.entity import (
    FieldSpec,
    GeneratedAtWrite,
    ModelSpec,
    OnDeletePolicy,
)
from recordforge.specs.field_types import StorageAffinity
from recordforge.specs.schema import Schema

if TYPE_CHECKING:
    import sqlalchemy

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lazy imports - sqlalchemy is an optional dependency (sqlalchemy extra)
# ---------------------------------------------------------------------------

_sa_imported = False
_sa: Any = None  # sqlalchemy module


def _ensure_sa() -> Any:
    """Import sqlalchemy on first use and return the module."""
    global _sa_imported, _sa
    if not _sa_imported:
        try:
            import sqlalchemy

            _sa = sqlalchemy
        except ImportError as exc:
            raise RuntimeError(
                "sqlalchemy is required for the SA schema bridge.  "
                "Install it with:  pip install recordforge[sqlalchemy]"
            ) from exc
        _sa_imported = True
    return _sa


_ON_DELETE = {
    OnDeletePolicy.CASCADE: "CASCADE",
    OnDeletePolicy.RESTRICT: "RESTRICT",
    OnDeletePolicy.SET_NULL: "SET NULL",
}

# Literal defaults are rendered exactly as the DDL synthesizer renders them
_DEFAULT_ENCODER = SQLiteDialect()


# ---------------------------------------------------------------------------
# Type mapping
# ---------------------------------------------------------------------------


def _field_type_to_sa(field: FieldSpec) -> Any:
    """Map a field to a SQLAlchemy column type instance."""
    sa = _ensure_sa()
    affinity = field.affinity
    if affinity == StorageAffinity.INTEGER:
        return sa.Integer()
    if affinity == StorageAffinity.BOOLEAN:
        return sa.Boolean()
    if affinity == StorageAffinity.TEMPORAL:
        return sa.DateTime()
    column_type = _DEFAULT_ENCODER.column_type(field)
    if column_type.startswith("VARCHAR"):
        return sa.String(int(field.max or 0))
    return sa.Text()


# ---------------------------------------------------------------------------
# Column builder
# ---------------------------------------------------------------------------


def _field_to_column(field: FieldSpec, model_name: str, schema: Schema) -> Any:
    """Convert a single FieldSpec into a SQLAlchemy ``Column``."""
    sa = _ensure_sa()
    kwargs: dict[str, Any] = {}

    if field.primary:
        kwargs["primary_key"] = True
        kwargs["autoincrement"] = field.is_identifier
    else:
        kwargs["nullable"] = field.nullable or not field.required
        if field.unique:
            kwargs["unique"] = True
        elif field.index or field.is_relation:
            kwargs["index"] = True

    if isinstance(field.default, GeneratedAtWrite):
        kwargs["server_default"] = sa.text("CURRENT_TIMESTAMP")
    elif field.default is not None:
        kwargs["server_default"] = sa.text(_DEFAULT_ENCODER.encode_default(field.default))

    # Foreign key for relation fields
    fk_args: list[Any] = []
    target = schema.get_model(field.related_to) if field.related_to else None
    if field.is_relation and target is not None:
        # Self-reference needs use_alter to break circular DDL dependency
        is_self_ref = target.name == model_name
        fk_args.append(
            sa.ForeignKey(
                f"{target.name}.{target.primary_field.name}",
                ondelete=_ON_DELETE.get(field.on_delete) if field.on_delete else None,
                use_alter=is_self_ref,
                name=f"fk_{model_name}_{field.name}_{target.name}" if is_self_ref else None,
            )
        )

    return sa.Column(field.name, _field_type_to_sa(field), *fk_args, **kwargs)


def _model_to_table(model: ModelSpec, schema: Schema, metadata: Any) -> Any:
    sa = _ensure_sa()
    columns = [_field_to_column(field, model.name, schema) for field in model.fields]
    return sa.Table(model.name, metadata, *columns)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_metadata(schema: Schema) -> sqlalchemy.MetaData:
    """Convert a Schema into a SQLAlchemy ``MetaData``.

    Each model becomes a ``Table`` with columns derived from its fields.
    Relations are expressed via ``ForeignKey`` so that
    ``metadata.sorted_tables`` returns tables in dependency order.

    Args:
        schema: The schema to project.

    Returns:
        A populated ``sqlalchemy.MetaData`` instance.
    """
    sa = _ensure_sa()
    metadata: sqlalchemy.MetaData = cast("sqlalchemy.MetaData", sa.MetaData())
    for model in schema:
        _model_to_table(model, schema, metadata)
    logger.debug("Built SQLAlchemy metadata for %d table(s)", len(schema))
    return metadata


def get_sorted_table_names(schema: Schema) -> list[str]:
    """Return table names in topological (FK-dependency) order.

    Tables that are depended upon come first.
    """
    metadata = build_metadata(schema)
    return [t.name for t in metadata.sorted_tables]
