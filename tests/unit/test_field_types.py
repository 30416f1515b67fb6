"""Tests for the field type catalog."""

from __future__ import annotations

import pytest

from recordforge.specs.field_types import (
    CATALOG,
    FieldType,
    StorageAffinity,
    exhaustive,
    is_searchable_by_default,
    is_sortable_by_default,
    storage_affinity,
)


class TestParse:
    def test_known_type(self):
        assert FieldType.parse("email") is FieldType.EMAIL

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError, match="invalid field type 'blob'"):
            FieldType.parse("blob")


class TestStorageAffinity:
    @pytest.mark.parametrize("ft", [FieldType.ID, FieldType.NUMBER, FieldType.RELATION])
    def test_integer_types(self, ft):
        assert storage_affinity(ft) == StorageAffinity.INTEGER

    @pytest.mark.parametrize("ft", [FieldType.DATETIME, FieldType.DATE, FieldType.TIME])
    def test_temporal_types(self, ft):
        assert storage_affinity(ft) == StorageAffinity.TEMPORAL

    def test_boolean(self):
        assert storage_affinity(FieldType.BOOLEAN) == StorageAffinity.BOOLEAN

    def test_everything_else_is_text(self):
        assert storage_affinity(FieldType.JSON) == StorageAffinity.TEXT
        assert storage_affinity(FieldType.ARRAY) == StorageAffinity.TEXT

    def test_catalog_covers_every_type(self):
        assert set(CATALOG) == set(FieldType)


class TestProjectionDefaults:
    def test_searchable_types(self):
        searchable = {ft for ft in FieldType if is_searchable_by_default(ft)}
        assert searchable == {FieldType.TEXT, FieldType.EMAIL, FieldType.NUMBER}

    def test_file_and_image_not_sortable(self):
        assert not is_sortable_by_default(FieldType.FILE)
        assert not is_sortable_by_default(FieldType.IMAGE)
        assert is_sortable_by_default(FieldType.TEXT)


class TestExhaustive:
    def test_missing_entries_fail(self):
        with pytest.raises(RuntimeError, match="demo table has no entry"):
            exhaustive({FieldType.TEXT: 1}, "demo table")

    def test_complete_table_is_read_only(self):
        table = exhaustive({ft: ft.value for ft in FieldType}, "demo table")
        with pytest.raises(TypeError):
            table[FieldType.TEXT] = "x"  # type: ignore[index]
