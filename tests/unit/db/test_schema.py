"""Tests for database schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from notesdb.db.connection import Database
from notesdb.db.schema import initialize
from notesdb.db.vectors import VEC_TABLE, table_dimensions


def _table_columns(conn, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row["name"] for row in rows}


def _table_exists(conn, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def test_documents_columns(tmp_db):
    cols = _table_columns(tmp_db, "documents")
    assert cols == {"id", "path", "title", "description", "body", "ingested_at"}


def test_tags_columns(tmp_db):
    assert _table_columns(tmp_db, "tags") == {"id", "name"}


def test_document_tags_columns(tmp_db):
    assert _table_columns(tmp_db, "document_tags") == {"document_id", "tag_id"}


def test_chunks_columns(tmp_db):
    cols = _table_columns(tmp_db, "chunks")
    assert cols == {"id", "document_id", "chunk_index", "content"}


def test_vec_table_exists(tmp_db):
    assert _table_exists(tmp_db, VEC_TABLE)
    assert table_dimensions(tmp_db) == 4


def test_initialize_idempotent(tmp_db):
    initialize(tmp_db, dimensions=4)
    initialize(tmp_db, dimensions=4)
    assert _table_exists(tmp_db, "documents")


def test_initialize_rejects_other_dimensions(tmp_db):
    with pytest.raises(ValueError, match="4-dimensional"):
        initialize(tmp_db, dimensions=768)


def test_initialize_default_dimensions(tmp_path):
    conn = Database(tmp_path / "fresh.db").connect()
    initialize(conn)
    assert table_dimensions(conn) == 768
    conn.close()


def test_tag_names_unique(tmp_db):
    tmp_db.execute("INSERT INTO tags(name) VALUES ('go')")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("INSERT INTO tags(name) VALUES ('go')")


def test_chunk_index_unique_per_document(tmp_db):
    tmp_db.execute("INSERT INTO documents(path, body) VALUES ('a.md', 'x')")
    tmp_db.execute("INSERT INTO chunks(document_id, chunk_index, content) VALUES (1, 0, 'x')")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO chunks(document_id, chunk_index, content) VALUES (1, 0, 'y')"
        )


def test_chunks_require_existing_document(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO chunks(document_id, chunk_index, content) VALUES (99, 0, 'x')"
        )
