"""Shared fixtures for recordforge unit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from recordforge.runtime.repository import DatabaseManager, PersistenceEngine
from recordforge.specs.entity import FieldSpec, ListView, ModelSpec, OnDeletePolicy
from recordforge.specs.field_types import FieldType
from recordforge.specs.schema import Schema, build_schema


def make_user_model(**list_view: tuple[str, ...]) -> ModelSpec:
    """User(id, name text required max 50, age number 0..120, role text)."""
    return ModelSpec(
        name="User",
        fields=(
            FieldSpec(name="id", type=FieldType.ID, primary=True),
            FieldSpec(name="name", type=FieldType.TEXT, required=True, max=50),
            FieldSpec(name="age", type=FieldType.NUMBER, min=0, max=120),
            FieldSpec(name="role", type=FieldType.TEXT, nullable=True),
        ),
        list_view=ListView(**list_view),
    )


def make_post_model() -> ModelSpec:
    return ModelSpec(
        name="Post",
        fields=(
            FieldSpec(name="id", type=FieldType.ID, primary=True),
            FieldSpec(name="title", type=FieldType.TEXT, required=True),
            FieldSpec(
                name="author",
                type=FieldType.RELATION,
                related_to="User",
                on_delete=OnDeletePolicy.CASCADE,
            ),
        ),
    )


@pytest.fixture
def user_schema() -> Schema:
    return build_schema([make_user_model(searchable=("name", "role"))])


@pytest.fixture
def blog_schema() -> Schema:
    return build_schema([make_user_model(searchable=("name",)), make_post_model()])


@pytest.fixture
def db(tmp_path: Path) -> DatabaseManager:
    return DatabaseManager(tmp_path / "test.db")


@pytest.fixture
def engine(db: DatabaseManager, user_schema: Schema) -> PersistenceEngine:
    engine = PersistenceEngine(db)
    engine.create_schema(user_schema)
    return engine
