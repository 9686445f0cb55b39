"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from notesdb.db.migrations import run_migrations
from notesdb.db.vectors import DEFAULT_DIMENSIONS, ensure_vec_table


def initialize(conn: sqlite3.Connection, dimensions: int = DEFAULT_DIMENSIONS) -> None:
    """Run pending migrations and make sure the vec table exists (idempotent)."""
    run_migrations(conn)
    ensure_vec_table(conn, dimensions)
