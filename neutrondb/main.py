from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from neutrondb.config import Settings, get_settings
from neutrondb.exceptions import (
    ConnectionError,
    ExecutionError,
    MigrationError,
    ValidationError,
)
from neutrondb.infrastructure.connection import connect
from neutrondb.migrator import MigrationRunner
from neutrondb.reporter import print_results, print_status
from neutrondb.scaffold import generate_migration, generate_model
from neutrondb.utils.logging import configure_logging

app = typer.Typer(help="Neutron persistence CLI: migrations and scaffolding.")


def _settings_for(database: Optional[str]) -> Settings:
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"db_database": database})
    return settings


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_connection}:{settings.db_database} "
        f"(host={settings.db_host} port={settings.db_port or 'default'}) | "
        f"migrations={settings.migrations_path} ledger={settings.migrations_table} "
        f"models={settings.models_path}"
    )


@app.command()
def migrate(
    database: Optional[str] = typer.Option(
        None,
        "--database",
        "-d",
        help="Target database (SQLite path or database name); defaults to DB_DATABASE.",
    ),
) -> None:
    """
    Apply every pending migration in timestamp order, stopping at the first failure.
    """
    settings = _settings_for(database)
    configure_logging(
        level=settings.log_level,
        json_logs=settings.log_json,
        log_file=settings.migration_log_file or None,
    )

    try:
        connection = connect(settings)
    except ConnectionError as exc:
        typer.echo(f"Database connection failed: {exc}", err=True)
        raise typer.Exit(code=1)

    with connection:
        runner = MigrationRunner(
            connection, settings.migrations_path, table=settings.migrations_table
        )
        try:
            results = runner.run()
        except MigrationError as exc:
            print_results(exc.results)
            typer.echo(
                f"Error executing migration: {exc.migration}: {exc.backend_message}", err=True
            )
            raise typer.Exit(code=1)
        except (ConnectionError, ExecutionError, ValidationError, FileNotFoundError) as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)

    print_results(results)


@app.command()
def status(
    database: Optional[str] = typer.Option(
        None, "--database", "-d", help="Target database; defaults to DB_DATABASE."
    ),
) -> None:
    """
    List discovered migrations and whether each has been applied.
    """
    settings = _settings_for(database)
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        with connect(settings) as connection:
            runner = MigrationRunner(
                connection, settings.migrations_path, table=settings.migrations_table
            )
            print_status(runner.status())
    except (ConnectionError, ExecutionError, ValidationError, FileNotFoundError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)


@app.command("generate-migration")
def generate_migration_command(
    name: str = typer.Argument(..., help="Migration name, e.g. create_messages_table."),
    model: bool = typer.Option(False, "--model", "-m", help="Also generate a model module."),
    directory: Optional[Path] = typer.Option(
        None, "--path", help="Migrations directory; defaults to MIGRATIONS_PATH."
    ),
    models_directory: Optional[Path] = typer.Option(
        None, "--models-path", help="Models directory; defaults to MODELS_PATH."
    ),
) -> None:
    """
    Generate a new timestamped migration file and optionally a matching model.
    """
    settings = get_settings()
    try:
        path = generate_migration(name, directory or settings.migrations_path)
    except (ValidationError, FileExistsError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Migration created: {path.name}")

    if model:
        try:
            model_path = generate_model(name, models_directory or settings.models_path)
        except FileExistsError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Model created: {model_path}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
