"""notesdb CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from notesdb.cli.ingest import ingest_cmd
from notesdb.cli.query import query_cmd, schema_cmd, search_cmd
from notesdb.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("notesdb")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"notesdb {_installed_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route notesdb log records through Rich; DEBUG with --verbose."""
    logger = logging.getLogger("notesdb")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


app = typer.Typer(
    name="notesdb",
    help=(
        "notesdb — semantic index for a markdown notes directory.\n\n"
        "  notesdb ingest   Sync new, changed and deleted notes into notes.db.\n"
        "  notesdb search   Semantic search over note chunks."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """notesdb — semantic index for a markdown notes directory."""
    configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("status")(status_cmd)
app.command("schema")(schema_cmd)
app.command("query")(query_cmd)
app.command("search")(search_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed notesdb version."""
    typer.echo(f"notesdb {_installed_version()}")


if __name__ == "__main__":
    app()
