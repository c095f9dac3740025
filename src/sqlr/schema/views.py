"""
View and seed-row reconciliation steps.
"""

import logging
from typing import Dict, List, Sequence

from .models import JoinSpec, RowSpec, TableSpec, ViewColumn, ViewSpec
from .statements import (
    Assign,
    Concat,
    If,
    Lit,
    Lookup,
    Phase,
    Raw,
    Step,
    Var,
    any_of,
    ident,
    is_not_null,
    is_null,
    quote,
    unless,
    when,
)
from .tables import SUBQUERY, TABLE, live_table, lookup_table
from .validator import normalize_join_type
from ..database.catalog import SchemaCatalog


logger = logging.getLogger(__name__)

ROWS = Var("rows")

JOIN_KEYWORDS: Dict[str, str] = {
    "inner": "INNER JOIN",
    "left outer": "LEFT OUTER JOIN",
    "right outer": "RIGHT OUTER JOIN",
}


def _projection(source: str, column: ViewColumn) -> str:
    projected = ident(source, column.name)
    if column.alias:
        projected += f" AS {ident(column.alias)}"
    return projected


def _join_clause(database: str, join: JoinSpec) -> str:
    conditions = [
        f"{ident(c.table, c.column)} = {ident(join.alias, c.joined_column)}"
        for c in join.on
    ] or ["1 = 1"]
    return (
        f"{JOIN_KEYWORDS[normalize_join_type(join.type)]} "
        f"{ident(database, join.table)} AS {ident(join.alias)} "
        f"ON {' AND '.join(conditions)}"
    )


def view_query(database: str, table: TableSpec, view: ViewSpec) -> str:
    """SELECT <base and joined columns> FROM <table> <joins in declared order>."""
    projections = [_projection(table.name, column) for column in view.columns]
    for join in view.joins:
        projections.extend(_projection(join.alias, column) for column in join.columns)

    parts = [
        f"SELECT {', '.join(projections) or '*'}",
        f"FROM {ident(database, table.name)}",
    ]
    parts.extend(_join_clause(database, join) for join in view.joins)
    return " ".join(parts)


def drop_undeclared_views(catalog: SchemaCatalog, tables: Sequence[TableSpec]) -> Step:
    declared = [view.name for table in tables for view in table.views]
    return Step(
        phase=Phase.DROP_VIEWS,
        description="drop undeclared views",
        lookups=(Assign(SUBQUERY.name, catalog.undeclared_views(declared)),),
        statement=when(is_not_null(SUBQUERY), Concat("DROP VIEW ", SUBQUERY)),
    )


def create_view(catalog: SchemaCatalog, table: TableSpec, view: ViewSpec) -> Step:
    """CREATE OR REPLACE the view; replacement converges rather than no-ops."""
    return Step(
        phase=Phase.VIEWS,
        table=table.name,
        description=f"create or replace view {view.name}",
        statement=Lit(
            f"CREATE OR REPLACE VIEW {ident(catalog.database, view.name)} "
            f"AS {view_query(catalog.database, table, view)}"
        ),
    )


def _row_columns(rows: Sequence[RowSpec]) -> List[str]:
    columns: List[str] = []
    for row in rows:
        for column in row.values:
            if column not in columns:
                columns.append(column)
    return columns


def insert_values(rows: Sequence[RowSpec]) -> str:
    """`(cols) VALUES (...), (...)`; absent values become DEFAULT."""
    columns = _row_columns(rows)
    tuples = []
    for row in rows:
        values = [
            quote(row.values[column]) if column in row.values else "DEFAULT"
            for column in columns
        ]
        tuples.append(f"({', '.join(values)})")
    return f"({', '.join(ident(c) for c in columns)}) VALUES {', '.join(tuples)}"


def seed_rows(catalog: SchemaCatalog, table: TableSpec) -> Step:
    """Insert the declared rows only when the table is empty."""
    logger.debug(f"{table.name}: seeding {len(table.rows)} rows into an empty table")
    count = If(
        is_null(TABLE),
        Lit("SELECT 0 INTO @rows"),
        Concat("SELECT count(*) INTO @rows FROM ", live_table(catalog)),
    )
    return Step(
        phase=Phase.ROWS,
        table=table.name,
        description=f"seed {len(table.rows)} rows into {table.name}",
        lookups=(
            lookup_table(catalog, table),
            Assign(ROWS.name, Raw("0")),
            Lookup(count),
        ),
        statement=unless(
            any_of(is_null(TABLE), Raw(f"{ROWS} > 0")),
            Concat(
                "INSERT INTO ",
                live_table(catalog),
                f" {insert_values(table.rows)}",
            ),
        ),
    )


def view_steps(catalog: SchemaCatalog, table: TableSpec) -> List[Step]:
    for view in table.views:
        logger.debug(f"View {view.name}: {view_query(catalog.database, table, view)}")
    return [create_view(catalog, table, view) for view in table.views]
