"""notesdb ingest — sync markdown notes into the notes database.

Only files changed since the last successful run are processed:
  created / updated  → front matter, chunks, embeddings, tags
  deleted            → document and all its rows removed

All changes of one run share a single transaction. On failure nothing is
written and the snapshot is not advanced, so re-running retries the same
changes.
"""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from notesdb.cli.errors import (
    err_config,
    err_dimension_mismatch,
    err_ingest_failed,
    err_no_api_key,
    err_no_root,
)
from notesdb.config import ConfigError, NotesConfig, load_config, resolve_path
from notesdb.db.connection import Database
from notesdb.db.schema import initialize
from notesdb.ingest.chunker import RecursiveChunker
from notesdb.ingest.differ import Change, ChangeKind, JsonSnapshotStore, diff
from notesdb.ingest.embedder import LiteLLMEmbedder, validate_api_key
from notesdb.ingest.pipeline import IngestError, IngestPipeline, IngestReport

console = Console()

_KIND_STYLE = {
    ChangeKind.CREATED: "green",
    ChangeKind.UPDATED: "yellow",
    ChangeKind.DELETED: "red",
}


def ingest_cmd(
    root: Annotated[
        Path,
        typer.Option("--root", "-r", help="Notes root directory."),
    ] = Path("."),
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the notes database (created if missing)."),
    ] = None,
    snapshot: Annotated[
        Path | None,
        typer.Option("--snapshot", help="Path to the snapshot of the last successful run."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show pending changes without writing anything."),
    ] = False,
) -> None:
    """Ingest new, changed and deleted notes into the knowledge base."""
    if not root.is_dir():
        console.print(err_no_root(str(root)))
        raise typer.Exit(1)

    cfg = _load(root)
    db_path = db or resolve_path(root, cfg.paths.db)
    snapshots = JsonSnapshotStore(snapshot or resolve_path(root, cfg.paths.snapshot))

    if dry_run:
        changes, _ = diff(root, snapshots.load(), cfg.scan.include, cfg.scan.exclude)
        _show_changes(changes)
        console.print("[dim]Dry run — nothing written to DB[/]")
        return

    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1)

    conn = _open_db(db_path, cfg.embedding.dimensions)
    pipeline = IngestPipeline(
        conn,
        embedder=LiteLLMEmbedder(
            model=cfg.embedding.model,
            dimensions=cfg.embedding.dimensions,
            num_retries=cfg.embedding.num_retries,
        ),
        snapshots=snapshots,
        root=root,
        patterns=cfg.scan.include,
        exclude=cfg.scan.exclude,
        chunker=RecursiveChunker(cfg.chunker.chunk_size, cfg.chunker.overlap),
    )

    started = time.perf_counter()
    try:
        with console.status("Ingesting notes…"):
            report = pipeline.run()
    except IngestError as exc:
        console.print(err_ingest_failed(str(exc)))
        raise typer.Exit(1)
    finally:
        conn.close()

    if not report.changes:
        console.print("📝 No changes detected")
        return

    _show_changes(report.changes)
    _show_report(report, time.perf_counter() - started)


# ------------------------------------------------------------------
# Output
# ------------------------------------------------------------------


def _show_changes(changes: list[Change]) -> None:
    if not changes:
        console.print("📝 No changes detected")
        return
    for change in changes:
        style = _KIND_STYLE[change.kind]
        console.print(f"  [{style}]{change.kind.value:<8}[/] {change.path}")


def _show_report(report: IngestReport, elapsed: float) -> None:
    for path in report.skipped:
        console.print(f"  [dim]↷ Skipped empty note {path}[/]")

    table = Table(title="Ingestion complete", show_header=False, expand=False)
    table.add_column("kind")
    table.add_column("count", justify="right")
    table.add_row("Created", str(report.created))
    table.add_row("Updated", str(report.updated))
    table.add_row("Deleted", str(report.deleted))
    table.add_row("Skipped", str(len(report.skipped)))
    table.add_row("Total", f"{report.total} change(s)")
    console.print(table)
    console.print(f"[green]✓[/] Done in {elapsed:.2f}s")


# ------------------------------------------------------------------
# Config + DB helpers
# ------------------------------------------------------------------


def _load(root: Path) -> NotesConfig:
    try:
        return load_config(root)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def _open_db(db_path: Path, dimensions: int) -> sqlite3.Connection:
    """Open (or create) the notes database and run migrations."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = Database(db_path).connect()
    try:
        initialize(conn, dimensions)
    except ValueError as exc:
        conn.close()
        console.print(err_dimension_mismatch(str(exc)))
        raise typer.Exit(1)
    return conn
