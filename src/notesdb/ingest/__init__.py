"""notesdb ingest pipeline — differ, front matter, chunker, embedder, orchestrator."""

from notesdb.ingest.chunker import RecursiveChunker, split_text
from notesdb.ingest.differ import Change, ChangeKind, JsonSnapshotStore, diff
from notesdb.ingest.embedder import EmbeddingError, LiteLLMEmbedder
from notesdb.ingest.frontmatter import FrontMatter, FrontMatterError, extract
from notesdb.ingest.pipeline import IngestError, IngestPipeline, IngestReport, IngestState

__all__ = [
    "Change",
    "ChangeKind",
    "EmbeddingError",
    "FrontMatter",
    "FrontMatterError",
    "IngestError",
    "IngestPipeline",
    "IngestReport",
    "IngestState",
    "JsonSnapshotStore",
    "LiteLLMEmbedder",
    "RecursiveChunker",
    "diff",
    "extract",
    "split_text",
]
