"""tabdelta CLI - Command-line interface for incremental table extraction."""

import time
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from tabdelta import __version__
from tabdelta.core.delta_store import DeltaStore
from tabdelta.core.runner import ExtractionRunner
from tabdelta.core.values import format_timestamp
from tabdelta.exceptions import DeltaError, ValidationError
from tabdelta.models.results import RunResult
from tabdelta.utils.log import configure_logging
from tabdelta.utils.run_dir import get_output_dir
from tabdelta.utils.yaml_parser import load_extraction_config, save_yaml

app = typer.Typer(
    name="tabdelta",
    help="tabdelta - Incremental table extraction to compressed files",
    add_completion=True,
)

CONFIG_TEMPLATE = {
    "server": "${TABDELTA_SERVER:-localhost}",
    "instance": None,
    "username": "${TABDELTA_USERNAME:-}",
    "password": "${TABDELTA_PASSWORD:-}",
    "password_encoding": "plain",
    "database": "master",
    "crypto": "true",
    "mode": "blacklist",
    "whitelist": [],
    "blacklist": [],
    "type2": [],
    "timestamps": ["LastModified"],
    "workers": 10,
    "delta_bound": "inclusive",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"tabdelta version {__version__}")
        raise typer.Exit()


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected a date as YYYY-MM-DD, got: {value}")


def _display_result(result: RunResult, verbose: bool = False) -> None:
    """Display run result to console."""
    typer.echo("\n" + "=" * 60)
    if not result.completed:
        typer.secho("Run aborted!", fg=typer.colors.RED, bold=True)
        if result.error_message:
            typer.echo(f"Error: {result.error_message}")
    elif result.success:
        typer.secho("Run succeeded!", fg=typer.colors.GREEN, bold=True)
    else:
        typer.secho("Run completed with failed tables", fg=typer.colors.YELLOW, bold=True)

    typer.echo(f"\nRun date: {result.run_date.isoformat()}")
    typer.echo(f"Run folder: {result.run_dir}")
    if result.previous_run:
        typer.echo(f"Delta from: {result.previous_run.isoformat()}")
    else:
        typer.echo("Delta from: (none, full export)")
    typer.echo(f"Tables discovered: {result.tables_discovered}")
    typer.echo(f"Tables dispatched: {result.tables_dispatched}")
    typer.echo(f"Tables exported: {result.tables_exported}")
    typer.echo(f"Tables failed: {result.tables_failed}")
    typer.echo(f"Tables skipped: {result.tables_skipped}")
    typer.echo(f"Delta records: {result.delta_records}")
    typer.echo(f"Total rows written: {result.total_rows_written:,}")

    if verbose and result.table_results:
        typer.echo("\nTable details:")
        for table_result in result.table_results:
            status = "✓" if table_result.success else "✗"
            typer.echo(
                f"  {status} {table_result.table_name}: "
                f"{table_result.rows_written:,} rows ({table_result.status})"
            )
            if not table_result.success and table_result.error_message:
                typer.echo(f"    Error: {table_result.error_message}")


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """tabdelta - Export relational tables incrementally as gzip CSV."""
    pass


@app.command()
def run(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the YAML or JSON configuration file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    output_dir: Annotated[
        Optional[Path],
        typer.Option("--output-dir", "-o", help="Base output directory (one folder per run)"),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", min=1, help="Export worker pool size"),
    ] = None,
    run_date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Run date as YYYY-MM-DD (defaults to today)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output"),
    ] = False,
) -> None:
    """Run an incremental extraction."""
    started = time.monotonic()
    configure_logging(level="DEBUG" if verbose else None)
    today = _parse_date(run_date)

    try:
        typer.echo(f"Loading configuration: {config_path}")
        config = load_extraction_config(config_path)
        typer.echo(f"Database: {config.database}")
        typer.echo(f"Mode: {config.mode}")

        typer.echo("\nRunning extraction...")
        runner = ExtractionRunner(output_dir=output_dir, workers=workers)
        result = runner.run(config, today=today)

        _display_result(result, verbose)
    except ValidationError as e:
        typer.secho(f"Validation error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.secho(f"Unexpected error: {e}", fg=typer.colors.RED, err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(code=1)
    finally:
        typer.echo(f"\nProgram ran in {time.monotonic() - started:.2f}s")

    # Failed tables do not fail the run; an aborted run does
    if not result.completed:
        raise typer.Exit(code=1)


@app.command()
def validate(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the YAML or JSON configuration file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
) -> None:
    """Validate a configuration file."""
    try:
        typer.echo(f"Validating configuration: {config_path}")
        config = load_extraction_config(config_path)

        typer.secho("✓ Configuration is valid!", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"\nDatabase: {config.database}")
        if config.connection:
            typer.echo("Source: connection URL")
        else:
            typer.echo(f"Server: {config.server_instance}")
        typer.echo(f"Mode: {config.mode}")
        if config.mode == "whitelist":
            typer.echo(f"Whitelist: {', '.join(config.whitelist) or '(empty)'}")
        else:
            typer.echo(f"Blacklist: {', '.join(config.blacklist) or '(empty)'}")
        typer.echo(f"Type 2 tables: {', '.join(config.type2) or '(none)'}")
        typer.echo(f"Delta columns: {', '.join(config.timestamps) or '(none)'}")
        typer.echo(f"Delta bound: {config.delta_bound}")

    except ValidationError as e:
        typer.secho(f"✗ Validation failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command()
def deltas(
    output_dir: Annotated[
        Optional[Path],
        typer.Option("--output-dir", "-o", help="Base output directory (one folder per run)"),
    ] = None,
    run_date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Resolve as of this date, YYYY-MM-DD (defaults to today)"),
    ] = None,
) -> None:
    """Show the delta a run on the given date would start from."""
    today = _parse_date(run_date) or date.today()
    store = DeltaStore(get_output_dir(output_dir))

    try:
        previous, records = store.resolve(today)
    except DeltaError as e:
        typer.secho(f"Delta error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if previous is None:
        typer.echo(f"No delta before {today.isoformat()}; the next run exports every table in full")
        return

    typer.echo(f"Delta from {previous.isoformat()} ({len(records)} tables):")
    for record in records.values():
        typer.echo(
            f"  {record.table_name}.{record.column_name} from "
            f"{format_timestamp(record.max_value)} ({record.row_count:,} rows)"
        )


@app.command()
def init(
    name: Annotated[
        str,
        typer.Argument(help="Name of the configuration file to create"),
    ] = "tabdelta",
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output directory for the configuration file"),
    ] = Path("."),
) -> None:
    """Create a starter configuration file."""
    config_file = output / f"{name}.yaml"
    if config_file.exists():
        typer.secho(f"File already exists: {config_file}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        save_yaml(CONFIG_TEMPLATE, config_file)
    except ValidationError as e:
        typer.secho(f"Failed to create configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Created configuration template: {config_file}")


if __name__ == "__main__":
    app()
