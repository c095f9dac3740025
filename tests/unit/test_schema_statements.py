"""
Unit tests for the statement builder.
"""

import pytest

from sqlr.schema.statements import (
    NOOP,
    Assign,
    Concat,
    ExecutionMode,
    If,
    Lit,
    Lookup,
    Phase,
    Plan,
    Raw,
    Step,
    Var,
    all_of,
    any_of,
    differs,
    equals,
    ident,
    in_list,
    is_not_null,
    is_null,
    quote,
    quoted,
    starts_with,
    unless,
    when,
)


class TestLiterals:
    """Test quoting helpers."""

    def test_quote_escapes(self):
        """Test quotes and backslashes are escaped."""
        assert quote("plain") == "'plain'"
        assert quote("it's") == "'it\\'s'"
        assert quote("a\\b") == "'a\\\\b'"

    def test_ident(self):
        """Test dotted backtick identifiers."""
        assert ident("users") == "`users`"
        assert ident("db", "users") == "`db`.`users`"

    def test_nested_literal_quoting(self):
        """Test a literal embedded in a literal survives two levels of quoting."""
        assert Lit(f"SELECT {quote('x')}").render() == "'SELECT \\'x\\''"


class TestExpressions:
    """Test expression nodes."""

    def test_concat_merges_literals(self):
        """Test adjacent literals are merged."""
        expr = Concat("ALTER ", "TABLE ", Var("tbl"), " ENGINE=InnoDB")
        assert expr.render() == "concat('ALTER TABLE ', @tbl, ' ENGINE=InnoDB')"

    def test_concat_flattens(self):
        """Test nested concatenations are flattened."""
        expr = Concat("a", Concat("b", Var("x")), "c")
        assert expr.parts == (Lit("ab"), Var("x"), Lit("c"))

    def test_concat_of_literals_is_a_literal(self):
        """Test a concatenation of literals renders as one literal."""
        assert Concat("a", "b").render() == "'ab'"
        assert Concat().render() == "''"

    def test_quoted_identifier_at_runtime(self):
        """Test backtick quoting around a runtime value."""
        assert quoted("db", Var("tbl")).render() == "concat('`db`.`', @tbl, '`')"

    def test_if(self):
        """Test if() rendering."""
        expr = If(Raw("@a"), Lit("x"), NOOP)
        assert expr.render() == "if(@a,\n    'x',\n    'SELECT 0')"

    def test_unless_and_when(self):
        """Test the no-op sentinel sits on the correct branch."""
        assert unless(Raw("c"), "FIX") == If(Raw("c"), NOOP, Lit("FIX"))
        assert when(Raw("c"), "FIX") == If(Raw("c"), Lit("FIX"), NOOP)

    def test_conditions(self):
        """Test condition helpers."""
        assert is_null(Var("a")).render() == "@a is null"
        assert is_not_null(Var("a")).render() == "@a is not null"
        assert equals(Var("a"), "b").render() == "@a <=> 'b'"
        assert differs(Var("a"), Raw("1")).render() == "not (@a <=> 1)"
        assert any_of(Raw("x"), Raw("y")).render() == "(x or y)"
        assert all_of(Raw("x"), Raw("y")).render() == "(x and y)"

    def test_in_list(self):
        """Test membership filters."""
        assert in_list("c", []) is None
        assert in_list("c", ["a"]) == "c in ('a')"
        assert in_list("c", ["a", "b"], negate=True) == "c not in ('a', 'b')"

    def test_starts_with(self):
        """Test prefix filters."""
        assert starts_with("c", "_sql_") == "left(c, 5) = '_sql_'"
        assert starts_with("c", "_sql_", negate=True) == "left(c, 5) <> '_sql_'"


class TestStatements:
    """Test script statements."""

    def test_assign(self):
        """Test session variable assignment."""
        assert Assign("x", Raw("1")).render() == "set @x = 1;"

    def test_lookup(self):
        """Test a lookup prepares and runs its query."""
        assert Lookup(Lit("SELECT 1 INTO @y")).render() == (
            "set @lookup = 'SELECT 1 INTO @y';\n"
            "prepare stmt from @lookup;\n"
            "execute stmt;\n"
            "deallocate prepare stmt;"
        )


class TestExecutionMode:
    """Test execution mode derivation."""

    @pytest.mark.parametrize(
        "report,dry_run,mode,reports,executes",
        [
            (False, False, ExecutionMode.EXECUTE, False, True),
            (True, False, ExecutionMode.REPORT_AND_EXECUTE, True, True),
            (True, True, ExecutionMode.REPORT, True, False),
            (False, True, ExecutionMode.SILENT, False, False),
        ],
    )
    def test_from_options(self, report, dry_run, mode, reports, executes):
        """Test every option combination."""
        derived = ExecutionMode.from_options(report, dry_run)
        assert derived == mode
        assert derived.reports is reports
        assert derived.executes is executes


@pytest.fixture
def step():
    return Step(
        phase=Phase.ENGINES,
        table="users",
        description="ensure users uses InnoDB",
        lookups=(Assign("engine", Raw("'MyISAM'")),),
        statement=when(Raw("@engine <> 'InnoDB'"), "ALTER TABLE `db`.`users` ENGINE=InnoDB"),
    )


class TestStep:
    """Test step rendering per mode."""

    def test_execute(self, step):
        """Test execute mode runs the computed statement."""
        rendered = step.render(ExecutionMode.EXECUTE)
        lines = rendered.split("\n")

        assert lines[0] == "-- [engines] ensure users uses InnoDB"
        assert lines[1] == "set @engine = 'MyISAM';"
        assert lines[2].startswith("set @qry = if(@engine <> 'InnoDB',")
        assert lines[-3:] == [
            "prepare stmt from @qry;",
            "execute stmt;",
            "deallocate prepare stmt;",
        ]
        assert "select @qry" not in rendered

    def test_report(self, step):
        """Test report mode surfaces non-trivial statements only."""
        rendered = step.render(ExecutionMode.REPORT)
        assert rendered.endswith(
            "select @qry as `statement` from dual where @qry <> 'SELECT 0';"
        )
        assert "prepare stmt" not in rendered

    def test_report_and_execute(self, step):
        """Test both report and execute lines are emitted, report first."""
        rendered = step.render(ExecutionMode.REPORT_AND_EXECUTE)
        assert rendered.index("select @qry") < rendered.index("prepare stmt from @qry")

    def test_silent(self, step):
        """Test a silent step only computes."""
        rendered = step.render(ExecutionMode.SILENT)
        assert "select @qry" not in rendered
        assert "prepare stmt" not in rendered


class TestPhase:
    """Test phase ordering."""

    def test_order_is_declaration_order(self):
        """Test structural dependencies are respected by phase order."""
        assert Phase.DATABASE.order == 0
        assert Phase.ADD_COLUMNS.order < Phase.INDEXES.order
        assert Phase.INDEXES.order < Phase.FOREIGN_KEYS.order
        assert Phase.REMOVE_TABLES.order < Phase.FOREIGN_KEYS.order
        assert Phase.FOREIGN_KEYS.order < Phase.VIEWS.order
        assert Phase.USERS == list(Phase)[-1]


class TestPlan:
    """Test plan assembly and rendering."""

    def _step(self, phase, table=None):
        return Step(phase=phase, description=phase.value, statement=NOOP, table=table)

    def test_foreign_key_checks_restored_before_foreign_keys(self):
        """Test checks are disabled up front and restored before foreign keys."""
        plan = Plan("db")
        plan.add(
            [
                self._step(Phase.DATABASE),
                self._step(Phase.REMOVE_TABLES),
                self._step(Phase.FOREIGN_KEYS, "orders"),
                self._step(Phase.USERS),
            ]
        )
        script = plan.render(ExecutionMode.EXECUTE)

        assert script.startswith("-- sqlr reconciliation plan for `db` (execute)")
        off = script.index("set foreign_key_checks = 0;")
        on = script.index("set foreign_key_checks = 1;")
        assert off < script.index("-- [database]")
        assert script.index("-- [remove_tables]") < on < script.index("-- [foreign_keys]")
        assert script.count("set foreign_key_checks = 1;") == 1

    def test_foreign_key_checks_restored_without_foreign_keys(self):
        """Test checks are restored at the end when no later phase exists."""
        plan = Plan("db", [self._step(Phase.DATABASE)])
        script = plan.render(ExecutionMode.SILENT)
        assert script.rstrip().endswith("set foreign_key_checks = 1;")

    def test_queries(self):
        """Test phase queries."""
        plan = Plan(
            "db",
            [
                self._step(Phase.DATABASE),
                self._step(Phase.INDEXES, "a"),
                self._step(Phase.INDEXES, "b"),
            ],
        )
        assert plan.phases() == [Phase.DATABASE, Phase.INDEXES, Phase.INDEXES]
        assert len(plan.steps_for(Phase.INDEXES)) == 2
        assert plan.index_of(Phase.INDEXES, "b") == 2
        with pytest.raises(ValueError):
            plan.index_of(Phase.USERS)
