"""sqlite-vec virtual table management for chunk embeddings."""

from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Sequence

VEC_TABLE = "vec_chunks"
DEFAULT_DIMENSIONS = 768

_DIMENSIONS_RE = re.compile(r"float\[(\d+)\]")

# vec0 tables cannot declare a foreign key to chunks. This trigger mirrors
# ON DELETE CASCADE; the repository also deletes vectors explicitly.
_CREATE_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS delete_chunk_embeddings
AFTER DELETE ON chunks
FOR EACH ROW
BEGIN
    DELETE FROM {VEC_TABLE} WHERE rowid = OLD.id;
END
"""


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int = DEFAULT_DIMENSIONS) -> str:
    """Create the vec_chunks virtual table and its cleanup trigger if missing.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (768 for nomic-embed-text).

    Returns:
        The table name.

    Raises:
        ValueError: If *dimensions* < 1, or the existing table was built for
            a different dimension.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = table_dimensions(conn)
    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
    elif existing != dimensions:
        raise ValueError(
            f"{VEC_TABLE} stores {existing}-dimensional embeddings, "
            f"but {dimensions} were configured."
        )

    conn.execute(_CREATE_TRIGGER)
    return VEC_TABLE


def table_dimensions(conn: sqlite3.Connection) -> int | None:
    """Return the dimension vec_chunks was created with, or None if it is missing."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (VEC_TABLE,)
    ).fetchone()
    if row is None:
        return None
    match = _DIMENSIONS_RE.search(row[0])
    return int(match.group(1)) if match else None


def serialize(embedding: Sequence[float]) -> str:
    """Encode an embedding in the JSON form accepted by vec0 columns."""
    return json.dumps([float(x) for x in embedding])
