"""
Root Typer application for the binstore CLI.

The CLI is an operational tool only: it runs schema synchronization as a
deployment step and prints the DDL the engine would apply.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="binstore",
    help="binstore — relational storage engine for the Binner inventory.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from binstore import __version__

        typer.echo(f"binstore {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """binstore CLI — manage the inventory database schema."""


# ── Sub-command registration ─────────────────────────────────────────────

from binstore.cli.schema import app as schema_app  # noqa: E402

app.add_typer(schema_app, name="schema", help="Schema synchronization and DDL.")
