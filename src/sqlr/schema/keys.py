"""
Index and foreign key reconciliation steps.

Keys and foreign keys have no separate id: the declared name is the
identity, so a renamed key is dropped and recreated.
"""

import logging
from typing import List

from .models import ForeignKeySpec, KeySpec, TableSpec
from .statements import (
    Assign,
    Concat,
    If,
    Phase,
    Step,
    Var,
    all_of,
    any_of,
    equals,
    ident,
    is_not_null,
    is_null,
    unless,
    when,
)
from .tables import SUBQUERY, TABLE, live_table, lookup_table
from ..database.catalog import SchemaCatalog


logger = logging.getLogger(__name__)

INDEX = Var("idx")
FOREIGN_KEY = Var("fk")


def _column_list(columns: List[str]) -> str:
    return ", ".join(ident(column) for column in columns)


def normalize_action(action: str) -> str:
    """'set  null' -> 'SET NULL', as reported by the referential catalog."""
    return " ".join(action.upper().split())


def key_signature(key: KeySpec) -> str:
    """Expected 'col1,col2|non_unique' of a declared key."""
    return f"{','.join(key.columns)}|{0 if key.is_unique else 1}"


def key_definition(key: KeySpec) -> str:
    if key.is_primary:
        return f"PRIMARY KEY ({_column_list(key.columns)})"
    kind = " ".join(key.type.upper().split())
    return f"{kind} {ident(key.name)} ({_column_list(key.columns)})"


def drop_key_clause(key: KeySpec) -> str:
    return "DROP PRIMARY KEY" if key.is_primary else f"DROP INDEX {ident(key.name)}"


def foreign_key_signature(foreign_key: ForeignKeySpec) -> str:
    """'name/cols|table|referenced cols|ON DELETE|ON UPDATE' as read back from the catalog."""
    return "/".join(
        [
            foreign_key.name,
            "|".join(
                [
                    ",".join(foreign_key.columns),
                    foreign_key.referenced_table,
                    ",".join(foreign_key.referenced_columns),
                    normalize_action(foreign_key.on_delete),
                    normalize_action(foreign_key.on_update),
                ]
            ),
        ]
    )


def foreign_key_definition(database: str, foreign_key: ForeignKeySpec) -> str:
    return (
        f"ADD CONSTRAINT {ident(foreign_key.name)} "
        f"FOREIGN KEY ({_column_list(foreign_key.columns)}) "
        f"REFERENCES {ident(database, foreign_key.referenced_table)} "
        f"({_column_list(foreign_key.referenced_columns)}) "
        f"ON DELETE {normalize_action(foreign_key.on_delete)} "
        f"ON UPDATE {normalize_action(foreign_key.on_update)}"
    )


def drop_stale_foreign_keys(catalog: SchemaCatalog, table: TableSpec) -> Step:
    """Drop constraints that are undeclared or whose definition changed."""
    signatures = [foreign_key_signature(fk) for fk in table.foreign_keys]
    return Step(
        phase=Phase.DROP_FOREIGN_KEYS,
        table=table.name,
        description=f"drop stale foreign keys of {table.name}",
        lookups=(
            lookup_table(catalog, table),
            Assign(SUBQUERY.name, catalog.stale_foreign_keys(signatures)),
        ),
        statement=when(
            all_of(is_not_null(TABLE), is_not_null(SUBQUERY)),
            Concat("ALTER TABLE ", live_table(catalog), " ", SUBQUERY),
        ),
    )


def drop_undeclared_indexes(catalog: SchemaCatalog, table: TableSpec) -> Step:
    return Step(
        phase=Phase.INDEXES,
        table=table.name,
        description=f"drop undeclared indexes of {table.name}",
        lookups=(
            lookup_table(catalog, table),
            Assign(
                SUBQUERY.name,
                catalog.undeclared_indexes([key.name for key in table.keys]),
            ),
        ),
        statement=when(
            all_of(is_not_null(TABLE), is_not_null(SUBQUERY)),
            Concat("ALTER TABLE ", live_table(catalog), " ", SUBQUERY),
        ),
    )


def reconcile_key(catalog: SchemaCatalog, table: TableSpec, key: KeySpec) -> Step:
    """Create a missing key, or drop and recreate one whose columns or uniqueness drifted."""
    add = f"ADD {key_definition(key)}"
    return Step(
        phase=Phase.INDEXES,
        table=table.name,
        description=f"ensure key {key.name} on {table.name}",
        lookups=(
            lookup_table(catalog, table),
            Assign(INDEX.name, catalog.index_signature(key.name)),
        ),
        statement=unless(
            any_of(is_null(TABLE), equals(INDEX, key_signature(key))),
            If(
                is_null(INDEX),
                Concat("ALTER TABLE ", live_table(catalog), f" {add}"),
                Concat(
                    "ALTER TABLE ",
                    live_table(catalog),
                    f" {drop_key_clause(key)}, {add}",
                ),
            ),
        ),
    )


def create_foreign_key(
    catalog: SchemaCatalog, table: TableSpec, foreign_key: ForeignKeySpec
) -> Step:
    return Step(
        phase=Phase.FOREIGN_KEYS,
        table=table.name,
        description=f"ensure foreign key {foreign_key.name} on {table.name}",
        lookups=(
            lookup_table(catalog, table),
            Assign(FOREIGN_KEY.name, catalog.foreign_key_exists(foreign_key.name)),
        ),
        statement=unless(
            any_of(is_null(TABLE), FOREIGN_KEY),
            Concat(
                "ALTER TABLE ",
                live_table(catalog),
                f" {foreign_key_definition(catalog.database, foreign_key)}",
            ),
        ),
    )


def index_steps(catalog: SchemaCatalog, table: TableSpec) -> List[Step]:
    steps = [drop_undeclared_indexes(catalog, table)]
    steps.extend(reconcile_key(catalog, table, key) for key in table.keys)
    logger.debug(f"{table.name}: reconciling {len(table.keys)} keys")
    return steps


def foreign_key_steps(catalog: SchemaCatalog, table: TableSpec) -> List[Step]:
    if table.foreign_keys:
        logger.debug(
            f"{table.name}: ensuring foreign keys "
            f"{', '.join(fk.name for fk in table.foreign_keys)}"
        )
    return [create_foreign_key(catalog, table, fk) for fk in table.foreign_keys]
