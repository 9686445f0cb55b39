"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

import pytest

from notesdb.db.connection import Database
from notesdb.db.schema import initialize
from notesdb.ingest.embedder import EmbeddingError

TEST_DIMENSIONS = 4


class FakeEmbedder:
    """Deterministic stand-in for the embedding capability.

    Vectors are derived from a hash of the text unless pinned in *vectors*.
    Any batch containing a text with *fail_on* as a substring raises
    EmbeddingError.
    """

    def __init__(
        self,
        dimensions: int = TEST_DIMENSIONS,
        vectors: dict[str, list[float]] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.dimensions = dimensions
        self.vectors = vectors or {}
        self.fail_on = fail_on
        self.calls: list[list[str]] = []

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise EmbeddingError("embedding service unavailable")
        return [self.vectors.get(t) or _hash_vector(t, self.dimensions) for t in texts]


def _hash_vector(text: str, dimensions: int) -> list[float]:
    digest = hashlib.sha256(text.encode()).digest()
    return [0.1 + digest[i] / 255 for i in range(dimensions)]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "notes.db")
    conn = db.connect()
    initialize(conn, dimensions=TEST_DIMENSIONS)
    yield conn
    conn.close()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.notesdb/config.yaml and NOTESDB_* env vars out of tests."""
    monkeypatch.setattr("notesdb.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.delenv("NOTESDB_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("NOTESDB_DB", raising=False)


@pytest.fixture
def notes_root(tmp_path):
    """Notes directory whose notesdb.yaml selects 4-dimensional test embeddings."""
    root = tmp_path / "notes"
    root.mkdir()
    (root / "notesdb.yaml").write_text(
        f"embedding:\n  dimensions: {TEST_DIMENSIONS}\n", encoding="utf-8"
    )
    return root
