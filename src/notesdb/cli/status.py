"""notesdb status command.

Shows database stats, tag usage and the number of notes changed since the
last successful ingestion run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from notesdb.cli.errors import err_config, err_no_db
from notesdb.config import ConfigError, load_config, resolve_path
from notesdb.db.connection import Database
from notesdb.db.migrations import current_version
from notesdb.db.repository import Repository
from notesdb.ingest.differ import JsonSnapshotStore, diff

console = Console()


def status_cmd(
    root: Annotated[
        Path,
        typer.Option("--root", "-r", help="Notes root directory."),
    ] = Path("."),
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the notes database."),
    ] = None,
) -> None:
    """Show knowledge base stats and pending changes."""
    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    db_path = db or resolve_path(root, cfg.paths.db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = Database(db_path).connect(read_only=True)
    try:
        repo = Repository(conn)
        counts = repo.count_rows()
        tags = repo.list_tags()
        version = current_version(conn)
    finally:
        conn.close()

    snapshots = JsonSnapshotStore(resolve_path(root, cfg.paths.snapshot))
    pending, _ = diff(root, snapshots.load(), cfg.scan.include, cfg.scan.exclude)

    lines = [
        f"Database:    {db_path}  (schema v{version})",
        f"Documents:   {counts['documents']}",
        f"Chunks:      {counts['chunks']}  |  Embeddings: {counts['embeddings']}",
        f"Tags:        {counts['tags']}  |  Links: {counts['document_tags']}",
        f"Model:       {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
    ]
    if pending:
        lines.append(f"[yellow]Pending:     {len(pending)} change(s) — run notesdb ingest[/]")
    else:
        lines.append("[green]Pending:     none[/]")
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))

    if tags:
        table = Table(title="Tags", expand=False)
        table.add_column("Tag")
        table.add_column("Documents", justify="right")
        for name, documents in tags:
            table.add_row(name, str(documents))
        console.print(table)
