"""Incremental ingestion of a notes directory into the notes database.

One run:
  1. Diff the note files against the snapshot of the last successful run.
  2. Apply every change inside ONE transaction:
       deleted          → delete the document (chunks, vectors, tag links)
       created/updated  → front matter → chunks → one embedding batch →
                          upsert document → replace chunks → replace tags
  3. Commit, then save the new snapshot.

Any error rolls the whole run back and leaves the snapshot untouched, so the
next run retries the same change set from scratch.
"""

from __future__ import annotations

import enum
import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from notesdb.db.connection import transaction
from notesdb.db.repository import Repository
from notesdb.ingest.chunker import RecursiveChunker
from notesdb.ingest.differ import (
    DEFAULT_EXCLUDE,
    DEFAULT_PATTERNS,
    Change,
    ChangeKind,
    Snapshot,
    SnapshotStore,
    diff,
)
from notesdb.ingest.embedder import Embedder, check_vectors
from notesdb.ingest.frontmatter import extract

logger = logging.getLogger(__name__)


class IngestState(str, enum.Enum):
    IDLE = "idle"
    DIFFING = "diffing"
    PROCESSING = "processing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class IngestError(RuntimeError):
    """An ingestion run failed and was rolled back.

    Attributes:
        path: Note being processed when the run failed (None if the failure
            happened outside per-file processing).
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass
class IngestReport:
    """Outcome of a committed run (or of a run with nothing to do)."""

    changes: list[Change] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def count(self, kind: ChangeKind) -> int:
        """Number of applied changes of *kind*; skipped empty notes are not counted."""
        skipped = set(self.skipped)
        return sum(1 for c in self.changes if c.kind is kind and c.path not in skipped)

    @property
    def created(self) -> int:
        return self.count(ChangeKind.CREATED)

    @property
    def updated(self) -> int:
        return self.count(ChangeKind.UPDATED)

    @property
    def deleted(self) -> int:
        return self.count(ChangeKind.DELETED)

    @property
    def total(self) -> int:
        return len(self.changes)


class IngestPipeline:
    """Drive differ → front matter → chunker → embedder → repository.

    Args:
        conn: Open connection with the schema initialised. Must not be inside
            a transaction; the pipeline opens its own.
        embedder: Batch embedding capability.
        snapshots: Where the last successful run's snapshot lives.
        root: Notes root directory.
        patterns: Glob patterns selecting notes under *root*.
        exclude: Path component patterns to skip.
        chunker: Chunker for note bodies (default 1000 / 200 characters).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        embedder: Embedder,
        snapshots: SnapshotStore,
        root: Path | str,
        patterns: Iterable[str] = DEFAULT_PATTERNS,
        exclude: Iterable[str] = DEFAULT_EXCLUDE,
        chunker: RecursiveChunker | None = None,
    ) -> None:
        self._conn = conn
        self._repo = Repository(conn)
        self._embedder = embedder
        self._snapshots = snapshots
        self.root = Path(root)
        self.patterns = list(patterns)
        self.exclude = list(exclude)
        self._chunker = chunker or RecursiveChunker()
        self.state = IngestState.IDLE

    def plan(self) -> tuple[list[Change], Snapshot]:
        """Return the pending changes and the snapshot a successful run would save."""
        return diff(self.root, self._snapshots.load(), self.patterns, self.exclude)

    def run(self) -> IngestReport:
        """Apply all pending changes atomically.

        Returns:
            The report of the committed run.

        Raises:
            IngestError: If anything failed. The transaction has been rolled
                back and the snapshot was not saved.
        """
        self.state = IngestState.DIFFING
        changes, snapshot = self.plan()
        report = IngestReport(changes=changes)

        if not changes:
            logger.info("No changes detected")
            self.state = IngestState.DONE
            return report

        logger.info("Processing %d change(s)", len(changes))
        self.state = IngestState.PROCESSING
        current: str | None = None
        try:
            with transaction(self._conn):
                try:
                    for change in changes:
                        current = change.path
                        self._apply(change, report)
                except Exception:
                    self.state = IngestState.FAILED
                    raise
                current = None
                self.state = IngestState.COMMITTING
        except Exception as exc:
            self.state = IngestState.ROLLED_BACK
            where = f" while processing {current}" if current else ""
            logger.error("Ingestion failed%s, rolled back transaction: %s", where, exc)
            raise IngestError(f"Ingestion failed{where}: {exc}", path=current) from exc

        try:
            self._snapshots.save(snapshot)
        except Exception as exc:
            self.state = IngestState.FAILED
            raise IngestError(
                f"Changes were committed but the snapshot could not be saved: {exc}. "
                "The next run will re-apply them."
            ) from exc

        self.state = IngestState.DONE
        logger.info(
            "Ingestion complete: %d created, %d updated, %d deleted, %d skipped",
            report.created,
            report.updated,
            report.deleted,
            len(report.skipped),
        )
        return report

    # ------------------------------------------------------------------
    # Per-file processing
    # ------------------------------------------------------------------

    def _apply(self, change: Change, report: IngestReport) -> None:
        if change.kind is ChangeKind.DELETED:
            logger.info("Deleting %s", change.path)
            self._repo.delete_document(change.path)
            return

        logger.info("Processing %s: %s", change.kind.value, change.path)
        raw = (self.root / change.path).read_text(encoding="utf-8")
        meta, body = extract(raw)
        chunks = self._chunker.split(body)

        if not chunks:
            logger.info("Skipping empty note %s", change.path)
            # An update that emptied the note must not leave the old version behind.
            self._repo.delete_document(change.path)
            report.skipped.append(change.path)
            return

        logger.debug("Embedding %d chunk(s) for %s", len(chunks), change.path)
        embeddings = self._embedder.embed(chunks)
        check_vectors(embeddings, len(chunks), self._embedder.dimensions)

        document_id = self._repo.upsert_document(
            change.path, body, title=meta.title, description=meta.description
        )
        self._repo.replace_chunks(document_id, chunks, embeddings)
        self._repo.replace_tags(document_id, meta.tags)
