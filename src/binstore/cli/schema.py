"""
CLI: ``binstore schema`` — schema synchronization commands.
"""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from binstore.core.dialect import get_dialect
from binstore.core.errors import BinstoreError
from binstore.core.logging import configure_logging
from binstore.core.schema import SchemaGenerator, describe
from binstore.core.settings import StorageSettings
from binstore.models import ENTITIES

app = typer.Typer(no_args_is_help=True)

console = Console()
err_console = Console(stderr=True)


@app.command()
def sync(
    url: str | None = typer.Option(
        None, "--url", "-u", help="Connection string (default: BINSTORE_CONNECTION_STRING)"
    ),
    no_seed: bool = typer.Option(False, "--no-seed", help="Skip seeding default part types"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create the database, tables and missing columns, then exit."""
    from binstore.provider import InventoryStorageProvider

    overrides: dict[str, object] = {}
    if url:
        overrides["connection_string"] = url
    if no_seed:
        overrides["seed_defaults"] = False
    try:
        settings = StorageSettings(**overrides)
    except ValueError as e:
        err_console.print(f"[bold red]Error[/bold red] (CONFIG): {e}")
        raise typer.Exit(code=2) from e
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    try:
        provider = InventoryStorageProvider(settings)
    except BinstoreError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e

    with provider:
        result = provider.schema_result

    if json_out:
        typer.echo(json.dumps(result.to_dict()))
        return

    if not result.changed:
        console.print("[green]Schema is up to date.[/green]")
        return

    table = Table(title="Schema Sync")
    table.add_column("Change", style="cyan")
    table.add_column("Object")
    if result.database_created:
        table.add_row("database", provider.connection.database or "")
    for name in result.tables_created:
        table.add_row("table", name)
    for name in result.columns_added:
        table.add_row("column", name)
    console.print(table)


@app.command()
def ddl(
    dialect: str = typer.Option("sqlite", "--dialect", "-d", help="sqlite | postgresql | mssql"),
    database: str | None = typer.Option(
        None, "--database", help="Also emit the create-database statement"
    ),
) -> None:
    """Print the DDL for every entity without connecting."""
    try:
        generator = SchemaGenerator(
            get_dialect(dialect), [describe(entity) for entity in ENTITIES], database=database
        )
    except BinstoreError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=2) from e
    typer.echo(generator.script())
