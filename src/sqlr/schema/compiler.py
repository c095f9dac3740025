"""
Plan compiler for sqlr.

Validates a declaration, assembles every reconciliation step in
dependency order across all tables, and renders one MySQL script.
Compiling is a pure function of its inputs: nothing is read from or
written to a live database.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .columns import (
    add_column,
    auto_increment_steps,
    definition_steps,
    finalize_column_rename,
    mark_undeclared_columns,
    remove_marked_columns,
    stage_column_rename,
)
from .keys import drop_stale_foreign_keys, foreign_key_steps, index_steps
from .models import ClientSpec, TableSpec
from .statements import ExecutionMode, Phase, Plan, Step
from .tables import (
    ensure_database,
    finalize_table_rename,
    mark_undeclared_tables,
    reconcile_engine,
    remove_marked_tables,
    stage_table,
    stage_table_rename,
)
from .users import client_steps
from .validator import DeclarationValidator
from .views import drop_undeclared_views, seed_rows, view_steps
from ..database.catalog import SchemaCatalog
from ..exceptions import DeclarationError


logger = logging.getLogger(__name__)


class CompileOptions(BaseModel):
    """Execution options baked into the emitted script."""

    report: bool = Field(False, description="Surface each non-trivial statement")
    dry_run: bool = Field(False, description="Compute statements without applying them")

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.from_options(self.report, self.dry_run)


class CompileStatus(str, Enum):
    """Status of a compile call."""

    SUCCESS = "success"
    INVALID = "invalid"


@dataclass
class CompileResult:
    """Result of compiling one declaration."""

    status: CompileStatus
    database: str
    script: Optional[str] = None
    plan: Optional[Plan] = None
    error: Optional[DeclarationError] = None
    compile_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == CompileStatus.SUCCESS

    @property
    def step_count(self) -> int:
        return len(self.plan.steps) if self.plan else 0

    def unwrap(self) -> str:
        """Return the script, or raise the declaration error."""
        if self.error is not None:
            raise self.error
        return self.script or ""


class SchemaCompiler:
    """
    Compiles a schema and permission declaration into a reconciliation script.

    Steps are grouped by phase across all tables, so that for instance
    every column of every table is reconciled before any foreign key is
    created.
    """

    def __init__(
        self,
        database: str,
        tables: Sequence[TableSpec],
        clients: Sequence[ClientSpec] = (),
        options: Optional[CompileOptions] = None,
    ):
        self.database = database
        self.tables = list(tables)
        self.clients = list(clients)
        self.options = options or CompileOptions()
        self.catalog = SchemaCatalog(database)

    def validate(self) -> None:
        DeclarationValidator(self.tables, self.clients, self.database).validate()

    def _per_table(self, *emitters) -> List[Step]:
        steps: List[Step] = []
        for emit in emitters:
            for table in self.tables:
                result = emit(self.catalog, table)
                steps.extend(result if isinstance(result, list) else [result])
        return steps

    def _per_column(self, emit) -> List[Step]:
        return [
            emit(self.catalog, table, column)
            for table in self.tables
            for column in table.columns
        ]

    def subjects(self) -> List[str]:
        """Declared table and view names, the scope of privilege management."""
        names = []
        for table in self.tables:
            names.append(table.name)
            names.extend(view.name for view in table.views)
        return names

    def build_plan(self) -> Plan:
        """Assemble all steps in phase order. Assumes a validated declaration."""
        catalog = self.catalog
        plan = Plan(self.database)

        plan.add([ensure_database(catalog)])
        plan.add(self._per_table(stage_table))
        plan.add([drop_undeclared_views(catalog, self.tables)])
        plan.add([mark_undeclared_tables(catalog, self.tables)])
        plan.add(self._per_table(stage_table_rename))
        plan.add(self._per_table(finalize_table_rename))
        plan.add(self._per_table(reconcile_engine))

        plan.add(self._per_column(add_column))
        plan.add(self._per_table(mark_undeclared_columns))
        plan.add(self._per_column(stage_column_rename))
        plan.add(self._per_column(finalize_column_rename))

        plan.add(self._per_table(drop_stale_foreign_keys))
        plan.add(self._per_table(definition_steps))
        plan.add(self._per_table(index_steps))
        plan.add(self._per_table(auto_increment_steps))
        plan.add(self._per_table(remove_marked_columns))
        plan.add([remove_marked_tables(catalog)])

        plan.add(self._per_table(foreign_key_steps))
        plan.add(self._per_table(view_steps))
        plan.add(seed_rows(catalog, table) for table in self.tables if table.rows)

        subjects = self.subjects()
        for client in self.clients:
            plan.add(client_steps(catalog, client, subjects))

        for phase in Phase:
            count = len(plan.steps_for(phase))
            if count:
                logger.debug(f"{phase.value}: {count} steps")

        return plan

    def compile(self) -> CompileResult:
        """
        Validate and compile.

        Returns:
            CompileResult holding the script, or the first declaration
            error with no script
        """
        start_time = time.perf_counter()
        mode = self.options.mode
        logger.info(
            f"Compiling {len(self.tables)} tables and {len(self.clients)} clients "
            f"for database {self.database} ({mode.value})"
        )

        try:
            self.validate()
        except DeclarationError as e:
            logger.warning(f"Declaration rejected: {e}")
            return CompileResult(
                status=CompileStatus.INVALID,
                database=self.database,
                error=e,
                compile_time_ms=(time.perf_counter() - start_time) * 1000,
            )

        plan = self.build_plan()
        script = plan.render(mode)
        elapsed = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Compiled {len(plan.steps)} steps for database {self.database} "
            f"in {elapsed:.1f}ms"
        )
        return CompileResult(
            status=CompileStatus.SUCCESS,
            database=self.database,
            script=script,
            plan=plan,
            compile_time_ms=elapsed,
        )


def compile_script(
    database: str,
    tables: Sequence[TableSpec],
    clients: Sequence[ClientSpec] = (),
    report: bool = False,
    dry_run: bool = False,
) -> str:
    """Compile a declaration to a script, raising the first DeclarationError."""
    options = CompileOptions(report=report, dry_run=dry_run)
    return SchemaCompiler(database, tables, clients, options).compile().unwrap()
