"""Repository pattern for all notes database operations.

Single interface for: documents, tags, chunks, vec embeddings.

No method commits. Writes are meant to run inside
``notesdb.db.connection.transaction()`` so that an ingestion run is applied
all-or-nothing.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from notesdb.db.models import Chunk, Document, SearchHit
from notesdb.db.vectors import VEC_TABLE, serialize


class Repository:
    """Data access layer for documents, tags, chunks and their embeddings.

    Wraps an open sqlite3.Connection. The connection (and its transaction
    scope) is owned by the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see notesdb.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(
        self,
        path: str,
        body: str,
        title: str | None = None,
        description: str | None = None,
    ) -> int:
        """Create the document for *path* or overwrite its metadata and body.

        Returns:
            The document id, stable across re-ingests of the same path.
        """
        row = self._conn.execute(
            """
            INSERT INTO documents (path, title, description, body)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                title = excluded.title,
                description = excluded.description,
                body = excluded.body,
                ingested_at = datetime('now')
            RETURNING id
            """,
            (path, title, description, body),
        ).fetchone()
        return row["id"]

    def get_document(self, path: str) -> Document | None:
        """Return the document stored for *path*, or None if not found."""
        row = self._conn.execute(
            "SELECT id, path, title, description, body, ingested_at FROM documents WHERE path = ?",
            (path,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents ordered by path."""
        rows = self._conn.execute(
            "SELECT id, path, title, description, body, ingested_at FROM documents ORDER BY path"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, path: str) -> bool:
        """Delete the document for *path* with its chunks, vectors and tag links.

        Tags themselves are kept, even when no document references them.

        Returns:
            True if a document was removed, False if *path* was not stored.
        """
        row = self._conn.execute(
            "SELECT id FROM documents WHERE path = ?", (path,)
        ).fetchone()
        if row is None:
            return False

        document_id = row["id"]
        self._delete_chunks(document_id)
        self._conn.execute(
            "DELETE FROM document_tags WHERE document_id = ?", (document_id,)
        )
        self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return True

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def replace_tags(self, document_id: int, tag_names: Sequence[str]) -> None:
        """Replace every tag link of *document_id* with links to *tag_names*.

        Tags are matched by exact, case-sensitive name and created on first
        use. Repeated names produce a single link.
        """
        self._conn.execute(
            "DELETE FROM document_tags WHERE document_id = ?", (document_id,)
        )
        for name in dict.fromkeys(tag_names):
            tag_id = self._get_or_create_tag(name)
            self._conn.execute(
                "INSERT OR IGNORE INTO document_tags (document_id, tag_id) VALUES (?, ?)",
                (document_id, tag_id),
            )

    def get_tags(self, document_id: int) -> list[str]:
        """Return the tag names linked to *document_id*, sorted."""
        rows = self._conn.execute(
            """
            SELECT tags.name FROM document_tags
            JOIN tags ON tags.id = document_tags.tag_id
            WHERE document_tags.document_id = ?
            ORDER BY tags.name
            """,
            (document_id,),
        ).fetchall()
        return [r["name"] for r in rows]

    def list_tags(self) -> list[tuple[str, int]]:
        """Return [(tag name, linked document count), ...] sorted by name."""
        rows = self._conn.execute(
            """
            SELECT tags.name, COUNT(document_tags.document_id) AS documents
            FROM tags
            LEFT JOIN document_tags ON document_tags.tag_id = tags.id
            GROUP BY tags.id
            ORDER BY tags.name
            """
        ).fetchall()
        return [(r["name"], r["documents"]) for r in rows]

    def _get_or_create_tag(self, name: str) -> int:
        self._conn.execute(
            "INSERT INTO tags (name) VALUES (?) ON CONFLICT(name) DO NOTHING", (name,)
        )
        return self._conn.execute(
            "SELECT id FROM tags WHERE name = ?", (name,)
        ).fetchone()["id"]

    # ------------------------------------------------------------------
    # Chunks + vec embeddings
    # ------------------------------------------------------------------

    def replace_chunks(
        self,
        document_id: int,
        chunks: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> list[int]:
        """Replace the chunks of *document_id*, storing each with its embedding.

        Chunk ``i`` gets ``chunk_index = i`` and ``embeddings[i]``; the vec
        row shares the chunk's id as its rowid.

        Returns:
            The new chunk ids in chunk order.

        Raises:
            ValueError: If the number of embeddings differs from the number
                of chunks. Nothing is written in that case.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks."
            )

        self._delete_chunks(document_id)

        chunk_ids: list[int] = []
        for index, (content, embedding) in enumerate(zip(chunks, embeddings)):
            cur = self._conn.execute(
                "INSERT INTO chunks (document_id, chunk_index, content) VALUES (?, ?, ?)",
                (document_id, index, content),
            )
            chunk_id = cur.lastrowid
            self._conn.execute(
                f"INSERT INTO {VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
                (chunk_id, serialize(embedding)),
            )
            chunk_ids.append(chunk_id)
        return chunk_ids

    def get_chunks(self, document_id: int) -> list[Chunk]:
        """Return the chunks of *document_id* in chunk order."""
        rows = self._conn.execute(
            """
            SELECT id, document_id, chunk_index, content
            FROM chunks WHERE document_id = ? ORDER BY chunk_index
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def has_embedding(self, chunk_id: int) -> bool:
        row = self._conn.execute(
            f"SELECT 1 FROM {VEC_TABLE} WHERE rowid = ?", (chunk_id,)
        ).fetchone()
        return row is not None

    def search_vec(self, embedding: Sequence[float], limit: int = 5) -> list[SearchHit]:
        """Nearest-neighbour search. Returns hits sorted by ascending distance."""
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        rows = self._conn.execute(
            f"""
            WITH matched_chunks AS (
                SELECT rowid AS chunk_id, distance
                FROM {VEC_TABLE}
                WHERE embedding MATCH ? AND k = ?
            )
            SELECT documents.path, chunks.content, chunks.chunk_index, matched_chunks.distance
            FROM matched_chunks
            JOIN chunks ON chunks.id = matched_chunks.chunk_id
            JOIN documents ON documents.id = chunks.document_id
            ORDER BY matched_chunks.distance
            """,
            (serialize(embedding), limit),
        ).fetchall()
        return [
            SearchHit(
                path=r["path"],
                content=r["content"],
                chunk_index=r["chunk_index"],
                distance=r["distance"],
            )
            for r in rows
        ]

    def _delete_chunks(self, document_id: int) -> None:
        """Delete vectors, then chunks, for *document_id*."""
        chunk_ids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchall()
        ]
        if chunk_ids:
            placeholders = ",".join("?" * len(chunk_ids))
            self._conn.execute(
                f"DELETE FROM {VEC_TABLE} WHERE rowid IN ({placeholders})",  # noqa: S608
                chunk_ids,
            )
        self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def count_rows(self) -> dict[str, int]:
        """Return row counts for documents, tags, links, chunks and embeddings."""
        tables = {
            "documents": "documents",
            "tags": "tags",
            "document_tags": "document_tags",
            "chunks": "chunks",
            "embeddings": VEC_TABLE,
        }
        return {
            label: self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608
            for label, table in tables.items()
        }


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        path=row["path"],
        title=row["title"],
        description=row["description"],
        body=row["body"],
        ingested_at=row["ingested_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
    )
