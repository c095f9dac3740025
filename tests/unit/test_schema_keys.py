"""
Unit tests for index and foreign key reconciliation steps.
"""

from sqlr.schema.keys import (
    create_foreign_key,
    drop_key_clause,
    drop_stale_foreign_keys,
    foreign_key_definition,
    foreign_key_signature,
    foreign_key_steps,
    index_steps,
    key_definition,
    key_signature,
    normalize_action,
    reconcile_key,
)
from sqlr.schema.models import KeySpec
from sqlr.schema.statements import Phase


class TestKeyRendering:
    """Test key signatures and definitions."""

    def test_signatures(self, full_tables):
        """Test signatures match the catalog's 'columns|non_unique' form."""
        customers, orders = full_tables
        assert key_signature(customers.keys[0]) == "id|0"
        assert key_signature(customers.keys[1]) == "email|0"
        assert key_signature(orders.keys[1]) == "customer_id|1"
        assert key_signature(KeySpec(name="k", columns=["a", "b"])) == "a,b|1"

    def test_definitions(self, full_tables):
        """Test primary, unique and plain key definitions."""
        customers, orders = full_tables
        assert key_definition(customers.keys[0]) == "PRIMARY KEY (`id`)"
        assert key_definition(customers.keys[1]) == "UNIQUE `customers_email` (`email`)"
        assert key_definition(orders.keys[1]) == "INDEX `orders_customer` (`customer_id`)"

    def test_drop_clauses(self, full_tables):
        """Test the primary key is dropped by kind, others by name."""
        customers = full_tables[0]
        assert drop_key_clause(customers.keys[0]) == "DROP PRIMARY KEY"
        assert drop_key_clause(customers.keys[1]) == "DROP INDEX `customers_email`"


class TestForeignKeyRendering:
    """Test foreign key signatures and definitions."""

    def test_normalize_action(self):
        """Test actions are upper-cased with single spaces."""
        assert normalize_action("set  null") == "SET NULL"
        assert normalize_action("cascade") == "CASCADE"

    def test_signature(self, full_tables):
        """Test the signature matches the catalog form."""
        foreign_key = full_tables[1].foreign_keys[0]
        assert foreign_key_signature(foreign_key) == (
            "orders_customer_fk/customer_id|customers|id|CASCADE|RESTRICT"
        )

    def test_definition(self, full_tables):
        """Test the constraint definition references the target database."""
        foreign_key = full_tables[1].foreign_keys[0]
        assert foreign_key_definition("db", foreign_key) == (
            "ADD CONSTRAINT `orders_customer_fk` FOREIGN KEY (`customer_id`) "
            "REFERENCES `db`.`customers` (`id`) ON DELETE CASCADE ON UPDATE RESTRICT"
        )


class TestIndexSteps:
    """Test index reconciliation."""

    def test_reconcile_primary_key(self, catalog, full_tables):
        """Test a primary key is added, or dropped and re-added when it drifted."""
        step = reconcile_key(catalog, full_tables[0], full_tables[0].keys[0])
        create_or_replace = step.statement.otherwise

        assert step.phase == Phase.INDEXES
        assert "`INDEX_NAME` = 'PRIMARY'" in step.lookups[1].render()
        assert step.statement.condition.render() == "(@tbl is null or @idx <=> 'id|0')"
        assert create_or_replace.condition.render() == "@idx is null"
        assert create_or_replace.then.render() == (
            "concat('ALTER TABLE `db`.`', @tbl, '` ADD PRIMARY KEY (`id`)')"
        )
        assert create_or_replace.otherwise.render() == (
            "concat('ALTER TABLE `db`.`', @tbl, '` DROP PRIMARY KEY, ADD PRIMARY KEY (`id`)')"
        )

    def test_index_steps(self, catalog, full_tables):
        """Test undeclared indexes are dropped before declared ones are reconciled."""
        steps = index_steps(catalog, full_tables[1])

        assert len(steps) == 3
        assert steps[0].description == "drop undeclared indexes of orders"
        assert "`INDEX_NAME` not in ('PRIMARY', 'orders_customer')" in steps[0].lookups[1].render()
        assert all(step.phase == Phase.INDEXES for step in steps)


class TestForeignKeySteps:
    """Test foreign key reconciliation."""

    def test_drop_stale(self, catalog, full_tables):
        """Test stale constraints are dropped before columns change."""
        step = drop_stale_foreign_keys(catalog, full_tables[1])

        assert step.phase == Phase.DROP_FOREIGN_KEYS
        assert (
            "'orders_customer_fk/customer_id|customers|id|CASCADE|RESTRICT'"
            in step.lookups[1].render()
        )

    def test_create(self, catalog, full_tables):
        """Test a missing constraint is added."""
        orders = full_tables[1]
        step = create_foreign_key(catalog, orders, orders.foreign_keys[0])

        assert step.phase == Phase.FOREIGN_KEYS
        assert step.lookups[1].render().startswith("set @fk = exists(")
        assert step.statement.condition.render() == "(@tbl is null or @fk)"
        assert "ADD CONSTRAINT `orders_customer_fk`" in step.statement.render()

    def test_foreign_key_steps(self, catalog, full_tables):
        """Test one step per declared constraint."""
        assert foreign_key_steps(catalog, full_tables[0]) == []
        assert len(foreign_key_steps(catalog, full_tables[1])) == 1
