"""notesdb schema / query / search — read-only access for agents and humans.

All three commands open the database with ``PRAGMA query_only`` and print
JSON. Errors (rejected statements, SQL errors, embedding failures) are
printed and exit with code 1.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from notesdb.cli.errors import err_config, err_no_db, err_query
from notesdb.config import ConfigError, NotesConfig, load_config, resolve_path
from notesdb.db.connection import Database
from notesdb.ingest.embedder import LiteLLMEmbedder
from notesdb.query import ToolResult, get_schema, run_query, search

console = Console()

_RootOpt = Annotated[Path, typer.Option("--root", "-r", help="Notes root directory.")]
_DbOpt = Annotated[Path | None, typer.Option("--db", help="Path to the notes database.")]


def schema_cmd(root: _RootOpt = Path("."), db: _DbOpt = None) -> None:
    """Print tables, columns and indexes of the notes database."""
    _, conn = _open_read_only(root, db)
    try:
        result = get_schema(conn)
    finally:
        conn.close()
    _print(result)


def query_cmd(
    sql: Annotated[str, typer.Argument(help="SELECT or WITH statement.")],
    root: _RootOpt = Path("."),
    db: _DbOpt = None,
) -> None:
    """Run a read-only SQL query and print the rows as JSON."""
    _, conn = _open_read_only(root, db)
    try:
        result = run_query(conn, sql)
    finally:
        conn.close()
    _print(result)


def search_cmd(
    text: Annotated[str, typer.Argument(help="Natural language search query.")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Maximum number of chunks to return."),
    ] = 5,
    root: _RootOpt = Path("."),
    db: _DbOpt = None,
) -> None:
    """Semantic search over note chunks, closest first."""
    cfg, conn = _open_read_only(root, db)
    embedder = LiteLLMEmbedder(
        model=cfg.embedding.model,
        dimensions=cfg.embedding.dimensions,
        num_retries=cfg.embedding.num_retries,
    )
    try:
        result = search(conn, embedder, text, limit=limit)
    finally:
        conn.close()
    _print(result)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _open_read_only(root: Path, db: Path | None) -> tuple[NotesConfig, sqlite3.Connection]:
    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    db_path = db or resolve_path(root, cfg.paths.db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return cfg, Database(db_path).connect(read_only=True)


def _print(result: ToolResult) -> None:
    if result.is_error:
        console.print(err_query(result.error or ""))
        raise typer.Exit(1)
    console.print_json(result.to_json())
