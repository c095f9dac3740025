"""
Column-level reconciliation steps.

Columns are added under their staging name, columns that lost their id
are parked under the drop marker, and renames go through the same
two-phase staging as tables. Definitions (type, nullability, default,
auto-increment, position) are recomputed in declared order; once one
column moves, every following column is repositioned as well.
"""

import logging
from typing import List, Optional

from .identity import DROP_PREFIX, TwoPhaseRename, staging_name
from .models import ColumnSpec, TableSpec
from .statements import (
    Assign,
    Concat,
    Expr,
    If,
    Lit,
    Phase,
    Raw,
    Statement,
    Step,
    Var,
    all_of,
    any_of,
    differs,
    ident,
    is_not_null,
    is_null,
    quote,
    when,
)
from .tables import SUBQUERY, TABLE, live_table, lookup_table
from ..database.catalog import SchemaCatalog


logger = logging.getLogger(__name__)

COLUMN = Var("col")
MOVED = Var("moved")
INDEXED = Var("indexed")

AUTO_INCREMENT = "AUTO_INCREMENT"


def lookup_column(catalog: SchemaCatalog, column: ColumnSpec) -> Assign:
    return Assign(COLUMN.name, catalog.column_name(column.id))


def column_attributes(column: ColumnSpec) -> str:
    """Type, nullability and default."""
    parts = [column.type, "NULL" if column.nullable else "NOT NULL"]
    if column.default is not None:
        parts.append(f"DEFAULT {column.default}")
    return " ".join(parts)


def column_definition(column: ColumnSpec, auto_increment: Optional[bool] = None) -> str:
    """Full column definition, without its name or position."""
    parts = [column_attributes(column)]
    if column.auto_increment if auto_increment is None else auto_increment:
        parts.append(AUTO_INCREMENT)
    parts.append(f"COMMENT {quote(column.id)}")
    return " ".join(parts)


def position_clause(previous: Optional[ColumnSpec]) -> str:
    return "FIRST" if previous is None else f"AFTER {ident(previous.name)}"


def add_column(catalog: SchemaCatalog, table: TableSpec, column: ColumnSpec) -> Step:
    """Add a missing column under its staging name, tagged with its id."""
    return Step(
        phase=Phase.ADD_COLUMNS,
        table=table.name,
        description=f"ensure column {table.name}.{column.name} exists",
        lookups=(lookup_table(catalog, table), lookup_column(catalog, column)),
        statement=when(
            all_of(is_not_null(TABLE), is_null(COLUMN)),
            Concat(
                "ALTER TABLE ",
                live_table(catalog),
                f" ADD COLUMN {ident(staging_name(column.name))} ",
                column_definition(column, auto_increment=False),
            ),
        ),
    )


def mark_undeclared_columns(catalog: SchemaCatalog, table: TableSpec) -> Step:
    return Step(
        phase=Phase.MARK_COLUMNS,
        table=table.name,
        description=f"mark undeclared columns of {table.name} for removal",
        lookups=(
            lookup_table(catalog, table),
            Assign(
                SUBQUERY.name,
                catalog.undeclared_columns(table.column_ids, DROP_PREFIX),
            ),
        ),
        statement=when(
            all_of(is_not_null(TABLE), is_not_null(SUBQUERY)),
            Concat("ALTER TABLE ", live_table(catalog), " ", SUBQUERY),
        ),
    )


def _column_rename(catalog: SchemaCatalog, column: ColumnSpec) -> TwoPhaseRename:
    def rename(current: Expr, target: str) -> Expr:
        return Concat(
            "ALTER TABLE ",
            live_table(catalog),
            " RENAME COLUMN `",
            current,
            f"` TO {ident(target)}",
        )

    return TwoPhaseRename(COLUMN, column.name, rename, case_sensitive=True)


def stage_column_rename(
    catalog: SchemaCatalog, table: TableSpec, column: ColumnSpec
) -> Step:
    return Step(
        phase=Phase.STAGE_COLUMN_RENAMES,
        table=table.name,
        description=f"stage rename of column {table.name}.{column.name}",
        lookups=(lookup_table(catalog, table), lookup_column(catalog, column)),
        statement=_column_rename(catalog, column).stage(),
    )


def finalize_column_rename(
    catalog: SchemaCatalog, table: TableSpec, column: ColumnSpec
) -> Step:
    return Step(
        phase=Phase.FINAL_COLUMN_RENAMES,
        table=table.name,
        description=f"rename staged column to {table.name}.{column.name}",
        lookups=(lookup_table(catalog, table), lookup_column(catalog, column)),
        statement=_column_rename(catalog, column).finalize(),
    )


def _attribute_lookups(catalog: SchemaCatalog, column: ColumnSpec) -> List[Statement]:
    return [
        Assign("col_type", catalog.column_attribute(column.id, "COLUMN_TYPE")),
        Assign("col_nullable", catalog.column_attribute(column.id, "IS_NULLABLE")),
        Assign("col_default", catalog.column_attribute(column.id, "COLUMN_DEFAULT")),
        Assign("col_extra", catalog.column_attribute(column.id, "EXTRA")),
        Assign("col_position", catalog.column_attribute(column.id, "ORDINAL_POSITION")),
    ]


def _attribute_drift(column: ColumnSpec, expected_auto: Expr) -> List[Expr]:
    """Conditions that are true when a live attribute differs from the declaration."""
    is_auto = Raw(f"({Var('col_extra')} like '%auto_increment%')")
    drift = [
        Raw(f"not (lower({Var('col_type')}) <=> {quote(column.type.lower())})"),
        differs(Var("col_nullable"), "YES" if column.nullable else "NO"),
        (
            is_not_null(Var("col_default"))
            if column.has_null_default
            else differs(Var("col_default"), column.default)
        ),
        Raw(f"not ({is_auto} <=> {expected_auto})"),
    ]
    return drift


def _change_column(
    catalog: SchemaCatalog,
    column: ColumnSpec,
    previous: Optional[ColumnSpec],
    auto_increment: Expr,
) -> Concat:
    """ALTER TABLE ... CHANGE COLUMN with the full definition and position."""
    return Concat(
        "ALTER TABLE ",
        live_table(catalog),
        " CHANGE COLUMN `",
        COLUMN,
        f"` {ident(column.name)} {column_attributes(column)}",
        auto_increment,
        f" COMMENT {quote(column.id)} {position_clause(previous)}",
    )


def reconcile_column_definition(
    catalog: SchemaCatalog,
    table: TableSpec,
    position: int,
    previous: Optional[ColumnSpec],
) -> Step:
    """
    Recompute one column's definition when any attribute or its position drifted.

    @moved carries the position change forward: once a column moves, all
    following columns of the table are repositioned too. Auto-increment
    is expected only once the column leads an index; the attribute is
    completed after index reconciliation.
    """
    column = table.columns[position]
    lookups: List[Statement] = [lookup_table(catalog, table), lookup_column(catalog, column)]
    lookups.extend(_attribute_lookups(catalog, column))

    if column.auto_increment:
        lookups.append(Assign(INDEXED.name, catalog.column_leads_index(COLUMN.name)))
        expected_auto: Expr = INDEXED
        auto_clause: Expr = If(INDEXED, Lit(f" {AUTO_INCREMENT}"), Lit(""))
    else:
        expected_auto = Raw("0")
        auto_clause = Lit("")

    moved_here = differs(Var("col_position"), Raw(str(position + 1)))
    if position == 0:
        lookups.append(Assign(MOVED.name, moved_here))
    else:
        lookups.append(Assign(MOVED.name, any_of(MOVED, moved_here)))

    return Step(
        phase=Phase.COLUMN_DEFINITIONS,
        table=table.name,
        description=f"ensure definition of {table.name}.{column.name}",
        lookups=tuple(lookups),
        statement=when(
            all_of(
                is_not_null(COLUMN),
                any_of(MOVED, *_attribute_drift(column, expected_auto)),
            ),
            _change_column(catalog, column, previous, auto_clause),
        ),
    )


def complete_auto_increment(
    catalog: SchemaCatalog,
    table: TableSpec,
    position: int,
    previous: Optional[ColumnSpec],
) -> Step:
    """Apply AUTO_INCREMENT once the column's index exists."""
    column = table.columns[position]
    lookups: List[Statement] = [lookup_table(catalog, table), lookup_column(catalog, column)]
    lookups.extend(_attribute_lookups(catalog, column))
    return Step(
        phase=Phase.AUTO_INCREMENT,
        table=table.name,
        description=f"ensure {table.name}.{column.name} is auto-increment",
        lookups=tuple(lookups),
        statement=when(
            all_of(
                is_not_null(COLUMN),
                any_of(*_attribute_drift(column, Raw("1"))),
            ),
            _change_column(catalog, column, previous, Lit(f" {AUTO_INCREMENT}")),
        ),
    )


def remove_marked_columns(catalog: SchemaCatalog, table: TableSpec) -> Step:
    return Step(
        phase=Phase.REMOVE_COLUMNS,
        table=table.name,
        description=f"drop columns of {table.name} marked for removal",
        lookups=(
            lookup_table(catalog, table),
            Assign(SUBQUERY.name, catalog.marked_columns(DROP_PREFIX)),
        ),
        statement=when(
            all_of(is_not_null(TABLE), is_not_null(SUBQUERY)),
            Concat("ALTER TABLE ", live_table(catalog), " ", SUBQUERY),
        ),
    )


def definition_steps(catalog: SchemaCatalog, table: TableSpec) -> List[Step]:
    previous = [None] + table.columns[:-1]
    logger.debug(f"{table.name}: reconciling {len(table.columns)} column definitions")
    return [
        reconcile_column_definition(catalog, table, position, previous[position])
        for position in range(len(table.columns))
    ]


def auto_increment_steps(catalog: SchemaCatalog, table: TableSpec) -> List[Step]:
    steps = []
    for column in table.auto_increment_columns:
        position = table.columns.index(column)
        previous = table.columns[position - 1] if position else None
        steps.append(complete_auto_increment(catalog, table, position, previous))
    if steps:
        logger.debug(f"{table.name}: deferring AUTO_INCREMENT on {len(steps)} columns")
    return steps
