"""Read-only query surface over the notes database.

Three operations for an interactive agent:
  get_schema  — tables (DDL + column metadata) and indexes
  run_query   — read-only SQL, restricted to SELECT / WITH statements
  search      — semantic search: embed the query, nearest chunks by distance

Each returns a ToolResult instead of raising, so callers can hand errors back
to the agent as data. Open the connection with
``Database.connect(read_only=True)`` (``PRAGMA query_only``).
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from typing import Any

from notesdb.db.repository import Repository
from notesdb.ingest.embedder import Embedder

_ALLOWED_PREFIXES = ("select", "with")


@dataclass
class ToolResult:
    """Result of a query-surface operation: JSON-ready data or an error message."""

    data: Any = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_json(self) -> str:
        if self.is_error:
            return json.dumps({"error": self.error}, indent=2)
        return json.dumps(self.data, indent=2, default=_json_default)


def get_schema(conn: sqlite3.Connection) -> ToolResult:
    """Describe every table (DDL + columns) and index in the database."""
    try:
        tables = conn.execute(
            """
            SELECT name, sql FROM sqlite_master
            WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """
        ).fetchall()
        indexes = conn.execute(
            """
            SELECT name, sql FROM sqlite_master
            WHERE type = 'index' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """
        ).fetchall()

        schema: dict[str, Any] = {
            "tables": {},
            "indexes": [{"name": i["name"], "sql": i["sql"]} for i in indexes],
        }
        for table in tables:
            columns = conn.execute(
                f"PRAGMA table_info({_quote_identifier(table['name'])})"
            ).fetchall()
            schema["tables"][table["name"]] = {
                "sql": table["sql"],
                "columns": [
                    {
                        "name": c["name"],
                        "type": c["type"],
                        "nullable": not c["notnull"],
                        "default": c["dflt_value"],
                        "primary_key": c["pk"] > 0,
                    }
                    for c in columns
                ],
            }
        return ToolResult(data=schema)
    except sqlite3.Error as exc:
        return ToolResult(error=f"Error retrieving schema: {exc}")


def is_read_only_statement(sql: str) -> bool:
    """True if *sql* starts with SELECT or WITH (case-insensitive, trimmed)."""
    return sql.strip().lower().startswith(_ALLOWED_PREFIXES)


def run_query(conn: sqlite3.Connection, sql: str) -> ToolResult:
    """Execute a SELECT / WITH statement and return its rows as dicts.

    Any other statement is rejected before it reaches the database.
    """
    if not is_read_only_statement(sql):
        return ToolResult(error="Only SELECT and WITH statements are allowed")
    try:
        rows = conn.execute(sql).fetchall()
    except (sqlite3.Error, sqlite3.Warning) as exc:
        return ToolResult(error=f"Error executing query: {exc}")
    return ToolResult(data=[dict(r) for r in rows])


def search(
    conn: sqlite3.Connection,
    embedder: Embedder,
    query: str,
    limit: int = 5,
) -> ToolResult:
    """Return the *limit* chunks nearest to *query*, closest first.

    Each hit holds ``path``, ``content``, ``chunk_index`` and
    ``similarity`` (1 - distance).
    """
    try:
        embedding = embedder.embed([query])[0]
        hits = Repository(conn).search_vec(embedding, limit=limit)
    except Exception as exc:
        return ToolResult(error=f"Error performing semantic search: {exc}")
    return ToolResult(
        data=[
            {
                "path": h.path,
                "content": h.content,
                "chunk_index": h.chunk_index,
                "similarity": h.similarity,
            }
            for h in hits
        ]
    )


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _json_default(value: Any) -> Any:
    # vec0 shadow tables hold raw float32 blobs.
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)
