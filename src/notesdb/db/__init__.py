"""notesdb database layer."""

from notesdb.db.connection import Database, transaction
from notesdb.db.migrations import MIGRATIONS, run_migrations
from notesdb.db.repository import Repository
from notesdb.db.schema import initialize
from notesdb.db.vectors import VEC_TABLE, ensure_vec_table

__all__ = [
    "Database",
    "transaction",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "VEC_TABLE",
    "ensure_vec_table",
]
