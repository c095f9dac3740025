"""
Table-level reconciliation steps: database, table creation, renames,
storage engine and deferred table removal.
"""

import logging
from typing import Sequence

from .identity import (
    DROP_PREFIX,
    PLACEHOLDER_COLUMN,
    TwoPhaseRename,
    staging_name,
)
from .models import TableSpec
from .statements import (
    Assign,
    Concat,
    Expr,
    Phase,
    Step,
    Var,
    all_of,
    differs,
    ident,
    is_not_null,
    quote,
    quoted,
    unless,
    when,
)
from ..database.catalog import SchemaCatalog


logger = logging.getLogger(__name__)

TABLE = Var("tbl")
SUBQUERY = Var("sub")


def lookup_table(catalog: SchemaCatalog, table: TableSpec) -> Assign:
    """Resolve the live name of a declared table into @tbl."""
    return Assign(TABLE.name, catalog.table_name(table.id))


def live_table(catalog: SchemaCatalog) -> Expr:
    """`db`.`<live name>` for the table held in @tbl."""
    return quoted(catalog.database, TABLE)


def ensure_database(catalog: SchemaCatalog) -> Step:
    return Step(
        phase=Phase.DATABASE,
        description=f"ensure database {catalog.database}",
        statement=unless(
            catalog.schema_exists(),
            f"CREATE DATABASE {ident(catalog.database)}",
        ),
    )


def stage_table(catalog: SchemaCatalog, table: TableSpec) -> Step:
    """Create the table under its staging name unless its id is already live."""
    logger.debug(f"Table {table.name} tracked by id {table.id}")
    create = (
        f"CREATE TABLE {ident(catalog.database, staging_name(table.name))} "
        f"({ident(PLACEHOLDER_COLUMN)} int unsigned NULL) "
        f"ENGINE={table.engine} COMMENT {quote(table.id)}"
    )
    return Step(
        phase=Phase.STAGE_TABLES,
        table=table.name,
        description=f"ensure table {table.name} exists",
        lookups=(lookup_table(catalog, table),),
        statement=unless(is_not_null(TABLE), create),
    )


def mark_undeclared_tables(catalog: SchemaCatalog, tables: Sequence[TableSpec]) -> Step:
    """Park tables whose id is no longer declared under the drop marker."""
    logger.debug(f"Tables outside {len(tables)} declared ids are marked with {DROP_PREFIX}")
    return Step(
        phase=Phase.MARK_TABLES,
        description="mark undeclared tables for removal",
        lookups=(
            Assign(
                SUBQUERY.name,
                catalog.undeclared_tables([t.id for t in tables], DROP_PREFIX),
            ),
        ),
        statement=when(is_not_null(SUBQUERY), Concat("RENAME TABLE ", SUBQUERY)),
    )


def _table_rename(catalog: SchemaCatalog, table: TableSpec) -> TwoPhaseRename:
    def rename(current: Expr, target: str) -> Expr:
        return Concat(
            "RENAME TABLE ",
            quoted(catalog.database, current),
            " TO ",
            ident(catalog.database, target),
        )

    return TwoPhaseRename(TABLE, table.name, rename)


def stage_table_rename(catalog: SchemaCatalog, table: TableSpec) -> Step:
    return Step(
        phase=Phase.STAGE_RENAMES,
        table=table.name,
        description=f"stage rename of table {table.name}",
        lookups=(lookup_table(catalog, table),),
        statement=_table_rename(catalog, table).stage(),
    )


def finalize_table_rename(catalog: SchemaCatalog, table: TableSpec) -> Step:
    return Step(
        phase=Phase.FINAL_RENAMES,
        table=table.name,
        description=f"rename staged table to {table.name}",
        lookups=(lookup_table(catalog, table),),
        statement=_table_rename(catalog, table).finalize(),
    )


def reconcile_engine(catalog: SchemaCatalog, table: TableSpec) -> Step:
    engine = Var("engine")
    return Step(
        phase=Phase.ENGINES,
        table=table.name,
        description=f"ensure {table.name} uses {table.engine}",
        lookups=(
            lookup_table(catalog, table),
            Assign(engine.name, catalog.table_engine(table.id)),
        ),
        statement=when(
            all_of(is_not_null(TABLE), differs(engine, table.engine)),
            Concat("ALTER TABLE ", live_table(catalog), f" ENGINE={table.engine}"),
        ),
    )


def remove_marked_tables(catalog: SchemaCatalog) -> Step:
    return Step(
        phase=Phase.REMOVE_TABLES,
        description="drop tables marked for removal",
        lookups=(Assign(SUBQUERY.name, catalog.marked_tables(DROP_PREFIX)),),
        statement=when(is_not_null(SUBQUERY), Concat("DROP TABLE ", SUBQUERY)),
    )

