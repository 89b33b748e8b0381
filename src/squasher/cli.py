"""
Command-line interface for squasher.
"""

import logging
import sys
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import LoggingConfig, SquasherConfig, SquashSettings, parse_cutoff_date
from .database.connection import DatabaseManager
from .database.introspection import SchemaInspector
from .exceptions import ConfigurationError, SquashError, SquasherError
from .migrations.ledger import MigrationLedger
from .migrations.planner import RetentionPlanner, SquashPlan
from .migrations.records import MigrationRepository
from .migrations.squash import SquashOrchestrator, SquashResult
from .schema.synthesizer import SchemaDumper


console = Console()
err_console = Console(stderr=True)


def setup_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Route log records to the terminal and, if configured, a rotating file."""
    handlers: List[logging.Handler] = [
        RichHandler(console=err_console, show_path=False, rich_tracebacks=debug)
    ]
    if config.file:
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if debug else config.level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SquashError as e:
            console.print(f"[red]Error:[/red] {e}")
            _display_recovery(e)
            sys.exit(1)
        except SquasherError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load_config(config_path: Optional[str], database_url: Optional[str] = None) -> SquasherConfig:
    """Load YAML configuration if given, else environment/defaults."""
    config = SquasherConfig.from_yaml(config_path) if config_path else SquasherConfig()
    if database_url:
        config.database.url = database_url
    return config


def _debug(ctx: click.Context) -> bool:
    return bool((ctx.obj or {}).get("debug"))


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """squasher: Consolidate old migrations into one schema dump."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--before",
    help="Squash migrations created before this date (YYYY-MM-DD)",
)
@click.option(
    "--keep",
    type=int,
    help="Number of most recent migrations to keep",
)
@click.option(
    "--path",
    type=click.Path(file_okay=False),
    help="Migration directory (overrides configuration)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be squashed without changing anything",
)
@click.option(
    "--no-backup",
    is_flag=True,
    help="Do not back up migrations before deleting them",
)
@click.option(
    "--delete-records",
    is_flag=True,
    help="Remove squashed rows from the migration ledger table",
)
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Do not ask for confirmation",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--database-url",
    help="SQLAlchemy database URL (overrides configuration)",
)
@click.pass_context
@handle_errors
def squash(
    ctx,
    before: Optional[str],
    keep: Optional[int],
    path: Optional[str],
    dry_run: bool,
    no_backup: bool,
    delete_records: bool,
    yes: bool,
    config: Optional[str],
    database_url: Optional[str],
):
    """Squash old migrations into a single schema dump."""
    if before is not None:
        parse_cutoff_date(before)

    squasher_config = _load_config(config, database_url)
    setup_logging(squasher_config.logging, _debug(ctx))
    settings = squasher_config.squash_settings(
        before=before,
        keep=keep,
        path=path,
        no_backup=no_backup,
        delete_records=delete_records,
    )

    console.print("[blue]Migration Squasher[/blue]")
    _display_settings(settings)

    repository = MigrationRepository(settings.migration_dir, settings.migration_extension)
    records = repository.scan()
    if not records:
        console.print(f"[yellow]No migrations found in {settings.migration_dir}[/yellow]")
        return
    _display_statistics(repository.statistics())

    plan = RetentionPlanner().plan(records, settings.cutoff, settings.keep_recent)
    if plan.is_empty:
        console.print("[yellow]No migrations found to squash based on your criteria.[/yellow]")
        return
    _display_plan(plan)

    if dry_run:
        console.print("\n[blue]Dry run:[/blue] no files or records were changed.")
        return

    if not yes and not click.confirm(
        f"Squash {len(plan)} migrations into {settings.schema_file}?", default=False
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        return

    with DatabaseManager.from_config(squasher_config.database) as db:
        inspector = SchemaInspector(db.engine, squasher_config.introspection)
        dumper = SchemaDumper(inspector, settings.excluded_tables)
        ledger = (
            MigrationLedger(db.engine, settings.ledger_table) if settings.delete_records else None
        )
        result = SquashOrchestrator(settings, dumper, ledger).run(plan)

    _display_result(result)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--path",
    type=click.Path(file_okay=False),
    help="Migration directory (overrides configuration)",
)
@click.option(
    "--before",
    help="Cutoff date used for the preview (YYYY-MM-DD)",
)
@click.option(
    "--keep",
    type=int,
    help="Keep count used for the preview",
)
@handle_errors
def status(config: Optional[str], path: Optional[str], before: Optional[str], keep: Optional[int]):
    """Show migration statistics and what a squash would retire."""
    squasher_config = _load_config(config)
    settings = squasher_config.squash_settings(before=before, keep=keep, path=path)

    repository = MigrationRepository(settings.migration_dir, settings.migration_extension)
    records = repository.scan()
    stats = repository.statistics()

    console.print(f"[blue]Migration Status[/blue] ({settings.migration_dir})")
    _display_statistics(stats)
    if not records:
        return

    plan = RetentionPlanner().plan(records, settings.cutoff, settings.keep_recent)
    console.print(
        f"\nBefore {settings.cutoff.isoformat()} keeping {settings.keep_recent}: "
        f"[cyan]{len(plan)}[/cyan] to squash, [green]{len(plan.retained)}[/green] kept"
    )


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--database-url",
    help="SQLAlchemy database URL (overrides configuration)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the schema dump to this file instead of stdout",
)
@click.pass_context
@handle_errors
def dump(ctx, config: Optional[str], database_url: Optional[str], output: Optional[str]):
    """Generate the schema dump without squashing anything."""
    squasher_config = _load_config(config, database_url)
    setup_logging(squasher_config.logging, _debug(ctx))

    with DatabaseManager.from_config(squasher_config.database) as db:
        inspector = SchemaInspector(db.engine, squasher_config.introspection)
        dumper = SchemaDumper(inspector, squasher_config.all_excluded_tables())
        artifact = dumper.generate()

    if artifact.is_empty:
        err_console.print("[yellow]No tables found; the schema dump is empty.[/yellow]")

    if output:
        SchemaDumper.save(artifact, output)
        console.print(
            f"[green]✓[/green] Schema dump for {len(artifact.tables)} tables written to {output}"
        )
    else:
        click.echo(artifact.source, nl=False)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="squasher.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new squasher configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = _create_default_config()
    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the configuration file with your database URL and paths")
    console.print(f"2. Run: squasher validate-config --config {output}")
    console.print(f"3. Run: squasher squash --config {output} --dry-run")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--check-connection",
    is_flag=True,
    help="Also connect to the configured database",
)
@handle_errors
def validate_config(config: str, check_connection: bool):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        squasher_config = SquasherConfig.from_yaml(config)
        settings = squasher_config.squash_settings()
        squasher_config.database.to_url()

        console.print("[green]✓[/green] Configuration is valid")

        _display_settings(settings)

        if check_connection:
            with DatabaseManager.from_config(squasher_config.database) as db:
                info = db.test_connection()
            if info["status"] != "connected":
                console.print(f"[red]✗[/red] Database connection failed: {info['error']}")
                sys.exit(1)
            console.print(f"[green]✓[/green] Connected to {info['dialect']} database {info['database']}")

    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)


def _create_default_config() -> SquasherConfig:
    """Create a default configuration with example connection details."""
    from .config import DatabaseConnection

    return SquasherConfig(
        database=DatabaseConnection(
            driver="postgresql+psycopg2",
            host="${DB_HOST}",
            port=5432,
            database="${DB_DATABASE}",
            user="${DB_USERNAME}",
            password="${DB_PASSWORD}",
        ),
    )


def _display_settings(settings: SquashSettings):
    """Display the effective squash settings."""
    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Cutoff date", settings.cutoff.isoformat())
    table.add_row("Keep recent", str(settings.keep_recent))
    table.add_row("Migration path", str(settings.migration_dir))
    table.add_row("Schema file", settings.schema_file)
    table.add_row("Backup", str(settings.backup_dir) if settings.backup_enabled else "disabled")
    table.add_row("Delete ledger records", "yes" if settings.delete_records else "no")
    table.add_row("Excluded tables", ", ".join(sorted(settings.excluded_tables)) or "-")

    console.print(table)


def _display_statistics(stats: Dict[str, Any]):
    """Display migration counts and date range."""
    table = Table(title="Migrations")
    table.add_column("Total", style="cyan")
    table.add_column("Oldest", style="magenta")
    table.add_column("Newest", style="yellow")

    if stats["total"]:
        table.add_row(
            str(stats["total"]),
            f"{stats['oldest']} ({stats['oldest_date']})",
            f"{stats['newest']} ({stats['newest_date']})",
        )
    else:
        table.add_row("0", "-", "-")

    console.print(table)


def _display_plan(plan: SquashPlan):
    """List the migrations that will be squashed."""
    table = Table(title=f"Migrations to squash ({len(plan)})")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Migration", style="magenta")
    table.add_column("Created", style="green")

    for i, record in enumerate(plan.records, 1):
        table.add_row(str(i), record.filename, record.timestamp.strftime("%Y-%m-%d %H:%M:%S"))

    console.print(table)
    if plan.retained:
        console.print(f"{len(plan.retained)} migrations will be kept.")


def _display_result(result: SquashResult):
    """Summarize a completed squash."""
    console.print(f"\n[green]✓[/green] Squashed {result.count} migrations into {result.schema_path}")
    console.print(f"  Tables in schema dump: {len(result.tables)}")
    if result.backup_dir:
        console.print(f"  Backup: {result.backup_dir}")
    if result.ledger_rows_deleted is not None:
        console.print(f"  Ledger rows removed: {result.ledger_rows_deleted}")


def _display_recovery(error: SquashError):
    """Show which migrations were handled before a squash step failed."""
    console.print(f"[yellow]Failed step:[/yellow] {error.step}")
    if error.processed:
        console.print(f"  Processed: {', '.join(error.processed)}")
    if error.pending:
        console.print(f"  Not processed: {', '.join(error.pending)}")
    if error.backup_dir:
        console.print(f"  Original files are in the backup: {error.backup_dir}")


if __name__ == "__main__":
    main()
