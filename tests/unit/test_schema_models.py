"""
Unit tests for declaration models.
"""

import pytest
from pydantic import ValidationError

from sqlr.schema.models import (
    ColumnSpec,
    ForeignKeySpec,
    KeySpec,
    RowSpec,
    TableSpec,
    ViewColumn,
    ViewSpec,
)


class TestColumnSpec:
    """Test column declarations."""

    def test_legacy_aliases(self):
        """Test 'null' and 'auto' keys populate the fields."""
        column = ColumnSpec(**{"id": "c1", "name": "id", "type": "int", "null": True, "auto": True})
        assert column.nullable is True
        assert column.auto_increment is True

    def test_defaults(self):
        """Test a minimal column."""
        column = ColumnSpec(name="name", type="varchar(50)")
        assert column.id == ""
        assert column.nullable is False
        assert column.default is None
        assert column.auto_increment is False

    def test_numeric_default_coerced(self):
        """Test numeric defaults in YAML become strings."""
        column = ColumnSpec(id="c1", name="n", type="int", default=0)
        assert column.default == "0"

    @pytest.mark.parametrize(
        "default,expected",
        [(None, True), ("NULL", True), ("null", True), ("0", False), ("''", False)],
    )
    def test_has_null_default(self, default, expected):
        """Test absent and NULL defaults are equivalent."""
        column = ColumnSpec(id="c1", name="n", type="int", default=default)
        assert column.has_null_default is expected

    def test_frozen(self):
        """Test declarations are immutable."""
        column = ColumnSpec(id="c1", name="n", type="int")
        with pytest.raises(ValidationError):
            column.name = "m"

    def test_unknown_field_rejected(self):
        """Test typos in declarations are structural errors."""
        with pytest.raises(ValidationError):
            ColumnSpec(id="c1", name="n", type="int", nulable=True)


class TestKeySpec:
    """Test key declarations."""

    def test_primary_key_named_primary(self):
        """Test an unnamed primary key is named PRIMARY."""
        key = KeySpec(**{"type": "primary key", "columns": ["id"]})
        assert key.name == "PRIMARY"
        assert key.is_primary
        assert key.is_unique

    def test_explicit_primary_name_kept(self):
        """Test an explicit name is not overwritten."""
        key = KeySpec(**{"name": "pk", "type": "primary key", "columns": ["id"]})
        assert key.name == "pk"

    def test_unique_and_plain_index(self):
        """Test uniqueness detection."""
        assert KeySpec(name="u", type="unique", columns=["a"]).is_unique
        assert not KeySpec(name="i", columns=["a"]).is_unique
        assert KeySpec(name="i", columns=["a"]).type == "index"


class TestForeignKeySpec:
    """Test foreign key declarations."""

    def test_legacy_aliases(self):
        """Test 'table', 'keys', 'delete' and 'update' keys."""
        foreign_key = ForeignKeySpec(
            **{
                "name": "fk",
                "columns": ["customer_id"],
                "table": "customers",
                "keys": ["id"],
                "delete": "cascade",
                "update": "set null",
            }
        )
        assert foreign_key.referenced_table == "customers"
        assert foreign_key.referenced_columns == ["id"]
        assert foreign_key.on_delete == "cascade"
        assert foreign_key.on_update == "set null"

    def test_action_defaults(self):
        """Test referential actions default to RESTRICT."""
        foreign_key = ForeignKeySpec(name="fk", columns=["a"], referenced_table="t")
        assert foreign_key.on_delete == "RESTRICT"
        assert foreign_key.on_update == "RESTRICT"


class TestViewAndRows:
    """Test view and row declarations."""

    def test_view_column_from_string(self):
        """Test plain strings are projected columns without alias."""
        view = ViewSpec(name="v", columns=["a", {"name": "b", "alias": "bee"}])
        assert view.columns == [ViewColumn(name="a"), ViewColumn(name="b", alias="bee")]

    def test_row_from_plain_mapping(self):
        """Test rows can be written as plain column/value mappings."""
        row = RowSpec(**{"email": "a@example.com", "status": 2})
        assert row.values == {"email": "a@example.com", "status": "2"}


class TestTableSpec:
    """Test table declarations."""

    def test_from_dict(self, users_table_data):
        """Test the users table declaration."""
        table = TableSpec(**users_table_data)

        assert table.engine == "InnoDB"
        assert table.column_ids == ["c1", "c2"]
        assert [c.nullable for c in table.columns] == [False, True]
        assert table.keys == []
        assert table.auto_increment_columns == []

    def test_foreign_keys_alias(self, full_tables):
        """Test 'foreign-keys' populates foreign_keys."""
        orders = full_tables[1]
        assert [fk.name for fk in orders.foreign_keys] == ["orders_customer_fk"]
        assert [c.name for c in orders.auto_increment_columns] == ["id"]

    def test_missing_name_rejected(self):
        """Test required fields."""
        with pytest.raises(ValidationError):
            TableSpec(id="t1")
