"""
Command-line interface for sqlr.
"""

import sys
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import SqlrConfig, configure_logging
from .exceptions import SqlrError
from .schema.compiler import CompileOptions, SchemaCompiler
from .schema.validator import validate_declaration


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SqlrError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}", highlight=False)
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load(ctx: click.Context, config: str) -> SqlrConfig:
    """Load a configuration and set up logging from it."""
    sqlr_config = SqlrConfig.from_yaml(config)
    configure_logging(sqlr_config.logging, debug=ctx.obj.get("debug", False))
    return sqlr_config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """sqlr: Declarative MySQL schema and permission reconciliation."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="sqlr.yaml",
    help="Output declaration file path",
)
@handle_errors
def init(output: str):
    """Write an example declaration file."""
    if Path(output).exists():
        if not click.confirm(f"Declaration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Declaration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the tables and clients in the declaration file")
    console.print(f"2. Run: sqlr validate --config {output}")
    console.print(f"3. Run: sqlr compile --config {output} --output reconcile.sql")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Declaration file path",
)
@click.pass_context
@handle_errors
def validate(ctx, config: str):
    """Validate a declaration file."""
    console.print(f"Validating declaration: {config}")

    sqlr_config = _load(ctx, config)
    error = validate_declaration(
        sqlr_config.tables, sqlr_config.clients, sqlr_config.database
    )
    if error is not None:
        console.print(f"[red]✗[/red] {escape(str(error))}", highlight=False)
        sys.exit(1)

    console.print("[green]✓[/green] Declaration is valid")
    _display_declaration_summary(sqlr_config)


@main.command("compile")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Declaration file path",
)
@click.option("--database", "-d", help="Target database (overrides the file)")
@click.option("--report", is_flag=True, help="Report computed statements")
@click.option("--dry-run", is_flag=True, help="Never apply statements")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Write the script here instead of stdout",
)
@click.pass_context
@handle_errors
def compile_command(
    ctx,
    config: str,
    database: Optional[str],
    report: bool,
    dry_run: bool,
    output: Optional[str],
):
    """Compile a declaration into a reconciliation script."""
    sqlr_config = _load(ctx, config)
    options = CompileOptions(
        report=report or sqlr_config.options.report,
        dry_run=dry_run or sqlr_config.options.dry_run,
    )
    result = SchemaCompiler(
        sqlr_config.resolve_database(database),
        sqlr_config.tables,
        sqlr_config.clients,
        options,
    ).compile()
    script = result.unwrap()

    if output:
        Path(output).write_text(script, encoding="utf-8")
        console.print(
            f"[green]✓[/green] Wrote {result.step_count} steps "
            f"({options.mode.value}) to {output}"
        )
    else:
        click.echo(script, nl=False)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Declaration file path",
)
@click.option("--database", "-d", help="Target database (overrides the file)")
@click.pass_context
@handle_errors
def plan(ctx, config: str, database: Optional[str]):
    """Show the reconciliation steps a declaration compiles to."""
    sqlr_config = _load(ctx, config)
    result = SchemaCompiler(
        sqlr_config.resolve_database(database),
        sqlr_config.tables,
        sqlr_config.clients,
        sqlr_config.options,
    ).compile()
    result.unwrap()

    steps_table = Table(title=f"Reconciliation plan for {result.database}")
    steps_table.add_column("#", style="dim", justify="right")
    steps_table.add_column("Phase", style="cyan")
    steps_table.add_column("Table", style="magenta")
    steps_table.add_column("Description", style="green")

    for position, step in enumerate(result.plan.steps, start=1):
        steps_table.add_row(
            str(position),
            step.phase.value,
            step.table or "-",
            step.description,
        )

    console.print(steps_table)
    console.print(
        f"{result.step_count} steps compiled in {result.compile_time_ms:.1f}ms"
    )


def _create_default_config() -> SqlrConfig:
    """Create an example declaration."""
    from .schema.models import (
        ClientSpec,
        ColumnSpec,
        ForeignKeySpec,
        KeySpec,
        PermissionSpec,
        RowSpec,
        TableSpec,
        ViewSpec,
    )

    users = TableSpec(
        id="t1",
        name="users",
        columns=[
            ColumnSpec(id="c1", name="id", type="int unsigned", auto_increment=True),
            ColumnSpec(id="c2", name="email", type="varchar(255)"),
            ColumnSpec(id="c3", name="active", type="tinyint(1)", default="1"),
        ],
        keys=[
            KeySpec(name="PRIMARY", type="primary key", columns=["id"]),
            KeySpec(name="users_email", type="unique", columns=["email"]),
        ],
        views=[ViewSpec(name="user_emails", columns=["id", "email"])],
        rows=[RowSpec(values={"email": "admin@example.com", "active": "1"})],
    )
    posts = TableSpec(
        id="t2",
        name="posts",
        columns=[
            ColumnSpec(id="c1", name="id", type="int unsigned", auto_increment=True),
            ColumnSpec(id="c2", name="user_id", type="int unsigned"),
            ColumnSpec(id="c3", name="body", type="text", nullable=True),
        ],
        keys=[
            KeySpec(name="PRIMARY", type="primary key", columns=["id"]),
            KeySpec(name="posts_user", type="index", columns=["user_id"]),
        ],
        foreign_keys=[
            ForeignKeySpec(
                name="posts_user_fk",
                columns=["user_id"],
                referenced_table="users",
                referenced_columns=["id"],
                on_delete="CASCADE",
            )
        ],
    )
    client = ClientSpec(
        user="app",
        host="%",
        permissions=[
            PermissionSpec(subject="users", operations=["SELECT"]),
            PermissionSpec(subject="posts", operations=["SELECT", "INSERT", "UPDATE"]),
        ],
    )
    return SqlrConfig(database="app", tables=[users, posts], clients=[client])


def _display_declaration_summary(config: SqlrConfig):
    """Display a summary of the declaration."""
    console.print("\n[blue]Declaration Summary[/blue]")

    tables_table = Table(title=f"Tables ({config.database or 'no database set'})")
    tables_table.add_column("Id", style="cyan")
    tables_table.add_column("Name", style="magenta")
    tables_table.add_column("Columns", style="green")
    tables_table.add_column("Keys", style="yellow")
    tables_table.add_column("Foreign Keys", style="yellow")
    tables_table.add_column("Views", style="blue")
    tables_table.add_column("Rows", style="blue")

    for table in config.tables:
        tables_table.add_row(
            table.id,
            table.name,
            str(len(table.columns)),
            str(len(table.keys)),
            str(len(table.foreign_keys)),
            str(len(table.views)),
            str(len(table.rows)),
        )

    console.print(tables_table)

    if config.clients:
        clients_table = Table(title="Clients")
        clients_table.add_column("User", style="cyan")
        clients_table.add_column("Host", style="magenta")
        clients_table.add_column("Permissions", style="green")

        for client in config.clients:
            clients_table.add_row(
                client.user,
                client.host,
                "; ".join(
                    f"{p.subject}: {', '.join(p.operations)}" for p in client.permissions
                ),
            )

        console.print(clients_table)


if __name__ == "__main__":
    main()
