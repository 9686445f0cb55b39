"""Domain models for the notes database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Document:
    id: int
    path: str
    body: str
    title: str | None = None
    description: str | None = None
    ingested_at: str | None = None


@dataclass
class Chunk:
    document_id: int
    chunk_index: int
    content: str
    id: int | None = None  # doubles as the vec_chunks rowid


@dataclass
class SearchHit:
    """A chunk matched by vector search, with the path of its document."""

    path: str
    content: str
    chunk_index: int
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance
