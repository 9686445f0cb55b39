"""notesdb rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from notesdb.cli.errors import err_no_db
    console.print(err_no_db("notes.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = "notes.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  notesdb ingest"
    )


def err_no_root(root: str) -> str:
    """Notes root is missing or not a directory."""
    return (
        f"[red]Error:[/] Notes directory not found: '{root}'\n"
        "  Pass an existing directory with  --root PATH"
    )


def err_config(message: str) -> str:
    """notesdb.yaml (or the global config) is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix notesdb.yaml or ~/.notesdb/config.yaml and retry."
    )


def err_ingest_failed(message: str) -> str:
    """An ingestion run was rolled back."""
    return (
        f"[red]✗ Ingestion failed, rolled back transaction:[/] {message}\n"
        "  Nothing was written and the snapshot was not advanced.\n"
        "  Fix the cause and run  notesdb ingest  again to retry the same changes."
    )


def err_dimension_mismatch(message: str) -> str:
    """Configured embedding dimension differs from the stored vector table."""
    return (
        f"[red]Error:[/] Embedding dimension mismatch.\n"
        f"  {message}\n"
        "  Set embedding.dimensions to match, or delete the database and re-ingest."
    )


def err_no_api_key(message: str) -> str:
    """Hosted embedding provider selected without its API key."""
    return (
        f"[red]Error:[/] {message}\n"
        "  API keys are read from the environment only, never from config files."
    )


def err_query(message: str) -> str:
    """Query surface returned an error result."""
    return f"[red]Error:[/] {message}"
