"""
Statement builder for sqlr reconciliation scripts.

A plan is a list of steps. Each step reads live metadata into session
variables, computes one corrective statement (or the no-op sentinel)
into @qry, and then reports and/or executes it depending on the mode.
Everything is rendered to MySQL text once, at the end.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union


NOOP_STATEMENT = "SELECT 0"
QUERY_VARIABLE = "qry"


def quote(value: str) -> str:
    """Render a MySQL single-quoted string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def ident(*parts: str) -> str:
    """Render a backtick-quoted, dot-separated identifier."""
    return ".".join(f"`{part}`" for part in parts)


class Expr:
    """A SQL expression node."""

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Lit(Expr):
    """A string literal."""

    value: str

    def render(self) -> str:
        return quote(self.value)


@dataclass(frozen=True)
class Raw(Expr):
    """A SQL fragment rendered verbatim."""

    sql: str

    def render(self) -> str:
        return self.sql


@dataclass(frozen=True)
class Var(Expr):
    """A user session variable."""

    name: str

    def render(self) -> str:
        return f"@{self.name}"


ExprLike = Union[Expr, str]


def as_expr(value: ExprLike) -> Expr:
    """Plain strings become literals."""
    return Lit(value) if isinstance(value, str) else value


@dataclass(frozen=True)
class Concat(Expr):
    """concat(...) with adjacent literals merged."""

    parts: Tuple[Expr, ...]

    def __init__(self, *parts: ExprLike):
        merged: List[Expr] = []
        for part in parts:
            part = as_expr(part)
            if isinstance(part, Concat):
                candidates: Sequence[Expr] = part.parts
            else:
                candidates = (part,)
            for candidate in candidates:
                if merged and isinstance(candidate, Lit) and isinstance(merged[-1], Lit):
                    merged[-1] = Lit(merged[-1].value + candidate.value)
                else:
                    merged.append(candidate)
        object.__setattr__(self, "parts", tuple(merged))

    def render(self) -> str:
        if not self.parts:
            return quote("")
        if len(self.parts) == 1:
            return self.parts[0].render()
        return "concat(" + ", ".join(part.render() for part in self.parts) + ")"


def quoted(*parts: ExprLike) -> Concat:
    """Backtick-quoted identifier whose parts may be evaluated at run time."""
    pieces: List[ExprLike] = []
    for position, part in enumerate(parts):
        if position:
            pieces.append(".")
        pieces.extend(["`", part, "`"])
    return Concat(*pieces)


@dataclass(frozen=True)
class If(Expr):
    """if(condition, then, otherwise)."""

    condition: Expr
    then: Expr
    otherwise: Expr

    def render(self) -> str:
        return (
            f"if({self.condition.render()},\n"
            f"    {self.then.render()},\n"
            f"    {self.otherwise.render()})"
        )


NOOP = Lit(NOOP_STATEMENT)


def unless(already_correct: Expr, corrective: ExprLike) -> If:
    """No-op when the live state is already correct, else the corrective statement."""
    return If(already_correct, NOOP, as_expr(corrective))


def when(needs_change: Expr, corrective: ExprLike) -> If:
    return If(needs_change, as_expr(corrective), NOOP)


def is_null(expr: Expr) -> Raw:
    return Raw(f"{expr.render()} is null")


def is_not_null(expr: Expr) -> Raw:
    return Raw(f"{expr.render()} is not null")


def equals(left: Expr, right: ExprLike) -> Raw:
    """Null-safe equality."""
    return Raw(f"{left.render()} <=> {as_expr(right).render()}")


def differs(left: Expr, right: ExprLike) -> Raw:
    return Raw(f"not ({left.render()} <=> {as_expr(right).render()})")


def any_of(*conditions: Expr) -> Raw:
    return Raw("(" + " or ".join(c.render() for c in conditions) + ")")


def all_of(*conditions: Expr) -> Raw:
    return Raw("(" + " and ".join(c.render() for c in conditions) + ")")


def in_list(column: str, values: Iterable[str], negate: bool = False) -> Optional[str]:
    """`column in (...)`; None when there is nothing to compare against."""
    values = list(values)
    if not values:
        return None
    operator = "not in" if negate else "in"
    return f"{column} {operator} ({', '.join(quote(v) for v in values)})"


def starts_with(column: str, prefix: str, negate: bool = False) -> str:
    operator = "<>" if negate else "="
    return f"left({column}, {len(prefix)}) {operator} {quote(prefix)}"


class Statement:
    """A script statement preceding the step's @qry assignment."""

    def render(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Assign(Statement):
    variable: str
    value: Expr

    def render(self) -> str:
        return f"set @{self.variable} = {self.value.render()};"


@dataclass(frozen=True)
class Lookup(Statement):
    """Run a read-only dynamic lookup, e.g. SELECT ... INTO @var."""

    query: Expr
    variable: str = "lookup"

    def render(self) -> str:
        return "\n".join(
            [
                f"set @{self.variable} = {self.query.render()};",
                *_execute_lines(self.variable),
            ]
        )


def _execute_lines(variable: str) -> List[str]:
    return [
        f"prepare stmt from @{variable};",
        "execute stmt;",
        "deallocate prepare stmt;",
    ]


class Phase(str, Enum):
    """Reconciliation phases in emission order."""

    DATABASE = "database"
    STAGE_TABLES = "stage_tables"
    DROP_VIEWS = "drop_views"
    MARK_TABLES = "mark_tables"
    STAGE_RENAMES = "stage_renames"
    FINAL_RENAMES = "final_renames"
    ENGINES = "engines"
    ADD_COLUMNS = "add_columns"
    MARK_COLUMNS = "mark_columns"
    STAGE_COLUMN_RENAMES = "stage_column_renames"
    FINAL_COLUMN_RENAMES = "final_column_renames"
    DROP_FOREIGN_KEYS = "drop_foreign_keys"
    COLUMN_DEFINITIONS = "column_definitions"
    INDEXES = "indexes"
    AUTO_INCREMENT = "auto_increment"
    REMOVE_COLUMNS = "remove_columns"
    REMOVE_TABLES = "remove_tables"
    FOREIGN_KEYS = "foreign_keys"
    VIEWS = "views"
    ROWS = "rows"
    USERS = "users"

    @property
    def order(self) -> int:
        return list(Phase).index(self)


class ExecutionMode(str, Enum):
    """What a step does with its computed statement."""

    EXECUTE = "execute"
    REPORT = "report"
    REPORT_AND_EXECUTE = "report_and_execute"
    SILENT = "silent"

    @classmethod
    def from_options(cls, report: bool, dry_run: bool) -> "ExecutionMode":
        if dry_run:
            return cls.REPORT if report else cls.SILENT
        return cls.REPORT_AND_EXECUTE if report else cls.EXECUTE

    @property
    def reports(self) -> bool:
        return self in (ExecutionMode.REPORT, ExecutionMode.REPORT_AND_EXECUTE)

    @property
    def executes(self) -> bool:
        return self in (ExecutionMode.EXECUTE, ExecutionMode.REPORT_AND_EXECUTE)


@dataclass(frozen=True)
class Step:
    """One self-checking reconciliation unit."""

    phase: Phase
    description: str
    statement: Expr
    lookups: Tuple[Statement, ...] = ()
    table: Optional[str] = None

    def render(self, mode: ExecutionMode) -> str:
        lines = [f"-- [{self.phase.value}] {self.description}"]
        lines.extend(lookup.render() for lookup in self.lookups)
        lines.append(Assign(QUERY_VARIABLE, self.statement).render())
        if mode.reports:
            lines.append(
                f"select @{QUERY_VARIABLE} as `statement` from dual "
                f"where @{QUERY_VARIABLE} <> {quote(NOOP_STATEMENT)};"
            )
        if mode.executes:
            lines.extend(_execute_lines(QUERY_VARIABLE))
        return "\n".join(lines)


@dataclass
class Plan:
    """Ordered reconciliation steps for one database."""

    database: str
    steps: List[Step] = field(default_factory=list)

    def add(self, steps: Iterable[Step]) -> None:
        self.steps.extend(steps)

    def phases(self) -> List[Phase]:
        return [step.phase for step in self.steps]

    def steps_for(self, phase: Phase) -> List[Step]:
        return [step for step in self.steps if step.phase == phase]

    def index_of(self, phase: Phase, table: Optional[str] = None) -> int:
        """Position of the first step of a phase (optionally for one table)."""
        for position, step in enumerate(self.steps):
            if step.phase == phase and (table is None or step.table == table):
                return position
        raise ValueError(f"No {phase.value} step for {table or 'any table'}")

    def render(self, mode: ExecutionMode) -> str:
        blocks = [
            f"-- sqlr reconciliation plan for {ident(self.database)} ({mode.value})",
            "set foreign_key_checks = 0;",
        ]
        checks_restored = False
        for step in self.steps:
            if not checks_restored and step.phase.order >= Phase.FOREIGN_KEYS.order:
                blocks.append("set foreign_key_checks = 1;")
                checks_restored = True
            blocks.append(step.render(mode))
        if not checks_restored:
            blocks.append("set foreign_key_checks = 1;")
        return "\n\n".join(blocks) + "\n"
