"""qt-datagen CLI.

Commands:
    qt-datagen extract <query.sql>                      Show extracted constraints
    qt-datagen plan <query.sql> --schema schema.yaml    Required tables and orders
    qt-datagen generate <query.sql> --schema schema.sql Generate validated INSERTs
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from qt_datagen.config import get_settings
from qt_datagen.constraints import ConstraintExtractor, ConstraintSet
from qt_datagen.dependency import DependencyResolver
from qt_datagen.errors import DataGenError
from qt_datagen.pipeline import DataGenPipeline, PipelineResult, render_script
from qt_datagen.schemas import Dialect, SchemaCatalog

console = Console()
logger = logging.getLogger(__name__)

DIALECT_CHOICES = [d.value for d in Dialect]


def read_sql_file(file_path: str) -> str:
    """Read SQL from file."""
    path = Path(file_path)
    if not path.exists():
        raise click.ClickException(f"File not found: {file_path}")
    if path.suffix.lower() not in (".sql", ".txt"):
        raise click.ClickException(f"Expected .sql file, got: {path.suffix}")
    return path.read_text(encoding="utf-8")


def load_catalog(schema_path: str, dialect: str) -> SchemaCatalog:
    try:
        return SchemaCatalog.from_file(schema_path, dialect=dialect)
    except DataGenError as e:
        raise click.ClickException(str(e))


def display_constraints(constraints: ConstraintSet) -> None:
    """Display extracted constraints with rich formatting."""
    if constraints.is_empty:
        console.print("[yellow]No constraints extracted; generation will be unconstrained.[/yellow]")
        return

    table = Table(title=f"Constraints ({constraints.total_count})", show_header=True, header_style="bold")
    table.add_column("Kind", style="cyan", width=12)
    table.add_column("Target", width=24)
    table.add_column("Source", width=60)
    for c in constraints:
        target = f"{c.table_alias}.{c.column}" if c.table_alias else (c.column or "-")
        table.add_row(c.kind.value, target, c.source_text)
    console.print(table)


def display_result(result: PipelineResult, verbose: bool = False) -> None:
    """Display pipeline outcome: report panel, violations, live check."""
    report = result.report
    color = "green" if report.all_passed else "yellow" if result.accepted else "red"
    console.print(Panel(
        f"Pass rate: [bold {color}]{report.pass_rate:.1f}%[/bold {color}] "
        f"({report.passed_checks}/{report.total_checks} checks)\n"
        f"Strategy: {result.strategy} | Attempts: {result.attempts} | "
        f"Statements: {len(result.statements)}",
        title="Generation Result",
        border_style=color,
    ))

    if report.violations or report.schema_violations:
        table = Table(title="Violations", show_header=True, header_style="bold")
        table.add_column("Severity", style="bold", width=10)
        table.add_column("Kind", width=14)
        table.add_column("Column", width=24)
        table.add_column("Expected", width=30)
        table.add_column("Actual", width=20)
        shown = report.violations if verbose else report.violations[:20]
        for v in list(shown) + list(report.schema_violations):
            table.add_row(v.severity.value, v.kind, f"{v.table}.{v.column}", v.expected, v.actual)
        console.print(table)

    if result.live_check is not None:
        live = result.live_check
        if live.error:
            console.print(f"[red]Live check failed:[/red] {live.error}")
        else:
            style = "green" if live.ok else "yellow"
            console.print(f"[{style}]Live check: query returned {live.actual_rows} rows[/{style}]")


@click.group()
@click.version_option(version="0.1.0", prog_name="qt-datagen")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """qt-datagen - query-aware synthetic test data."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s")
    else:
        logging.basicConfig(level=getattr(logging, get_settings().log_level.upper(), logging.WARNING))


@cli.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--dialect", type=click.Choice(DIALECT_CHOICES), default=None, help="SQL dialect")
@click.option("--json", "as_json", is_flag=True, help="Print constraints as JSON")
def extract(file: str, dialect: Optional[str], as_json: bool):
    """Extract typed constraints from a SQL query."""
    sql = read_sql_file(file)
    constraints = ConstraintExtractor(dialect or get_settings().default_dialect).extract(sql)

    if as_json:
        click.echo(json.dumps(constraints.to_dict(), indent=2, default=str))
        return
    console.print(f"\n[bold]Extracting:[/bold] {file}")
    display_constraints(constraints)


@cli.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--schema", "-s", "schema_path", required=True, type=click.Path(exists=True),
              help="Schema catalog (.json, .yaml or .sql DDL)")
@click.option("--dialect", type=click.Choice(DIALECT_CHOICES), default=None, help="SQL dialect")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
def plan(file: str, schema_path: str, dialect: Optional[str], as_json: bool):
    """Show required tables with generation and teardown order."""
    dialect = dialect or get_settings().default_dialect
    sql = read_sql_file(file)
    catalog = load_catalog(schema_path, dialect)
    try:
        result = DependencyResolver(catalog, dialect).resolve(sql)
    except DataGenError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title="Dependency Plan", show_header=True, header_style="bold")
    table.add_column("#", justify="right", width=4)
    table.add_column("Table", width=30)
    table.add_column("FKs", justify="right", width=5)
    table.add_column("In query", width=9)
    for i, name in enumerate(result.generation_order, 1):
        table.add_row(str(i), name, str(result.priority(name)), "yes" if name in result.query_tables else "")
    console.print(table)
    console.print(f"Teardown order: {' -> '.join(result.teardown_order)}")


@cli.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--schema", "-s", "schema_path", required=True, type=click.Path(exists=True),
              help="Schema catalog (.json, .yaml or .sql DDL)")
@click.option("--rows", "-n", type=int, default=None, help="Rows per table")
@click.option("--dialect", type=click.Choice(DIALECT_CHOICES), default=None, help="Target SQL dialect")
@click.option("--seed", type=int, default=None, help="Seed for reproducible output")
@click.option("--output", "-o", type=click.Path(), help="Write the INSERT script here")
@click.option("--live-check", is_flag=True, help="Run the query against the data in DuckDB")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.pass_context
def generate(
    ctx: click.Context,
    file: str,
    schema_path: str,
    rows: Optional[int],
    dialect: Optional[str],
    seed: Optional[int],
    output: Optional[str],
    live_check: bool,
    as_json: bool,
):
    """Generate INSERT statements whose rows satisfy the query.

    Examples:
        qt-datagen generate query.sql --schema schema.yaml
        qt-datagen generate query.sql -s schema.sql -n 20 --dialect postgres
        qt-datagen generate query.sql -s schema.json --seed 42 -o data.sql
    """
    settings = get_settings()
    dialect = dialect or settings.default_dialect
    sql = read_sql_file(file)
    catalog = load_catalog(schema_path, dialect)

    try:
        pipeline = DataGenPipeline(catalog, dialect, settings=settings, seed=seed)
        result = pipeline.run(sql, row_count=rows, live_check=live_check or None)
    except (DataGenError, ValueError) as e:
        raise click.ClickException(str(e))

    script = render_script(result.statements, dialect)
    if output:
        Path(output).write_text(script, encoding="utf-8")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    display_result(result, verbose=ctx.obj.get("verbose", False))
    if output:
        console.print(f"[green]Wrote {len(result.statements)} statements to {output}[/green]")
    else:
        click.echo(script)


if __name__ == "__main__":
    cli()
