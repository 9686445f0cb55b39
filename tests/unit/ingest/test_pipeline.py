"""Tests for the ingestion pipeline (differ → front matter → chunker → embedder → store)."""

from __future__ import annotations

import pytest

from conftest import FakeEmbedder
from notesdb.db.repository import Repository
from notesdb.ingest.chunker import RecursiveChunker
from notesdb.ingest.differ import ChangeKind, MemorySnapshotStore
from notesdb.ingest.pipeline import IngestError, IngestPipeline, IngestState


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "notes"
    path.mkdir()
    return path


@pytest.fixture
def snapshots():
    return MemorySnapshotStore()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


def _pipeline(tmp_db, root, snapshots, embedder, **kwargs) -> IngestPipeline:
    return IngestPipeline(tmp_db, embedder, snapshots, root, **kwargs)


def _write(root, name: str, text: str) -> None:
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


# ------------------------------------------------------------------
# Happy path
# ------------------------------------------------------------------

def test_ingest_single_note(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", '---\ntitle: "A"\ntags: "x"\n---\nhello world')

    report = _pipeline(tmp_db, root, snapshots, embedder).run()

    assert (report.created, report.updated, report.deleted) == (1, 0, 0)
    doc = repo.get_document("a.md")
    assert doc.title == "A"
    assert doc.description is None
    assert doc.body == "hello world"
    assert repo.get_tags(doc.id) == ["x"]
    chunks = repo.get_chunks(doc.id)
    assert [(c.chunk_index, c.content) for c in chunks] == [(0, "hello world")]
    assert repo.has_embedding(chunks[0].id)
    assert embedder.calls == [["hello world"]]


def test_snapshot_saved_after_commit(tmp_db, root, snapshots, embedder):
    _write(root, "a.md", "hello")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    assert snapshots.saves == 1
    assert list(snapshots.snapshot) == ["a.md"]


def test_one_embedding_batch_per_note(tmp_db, root, snapshots, embedder):
    _write(root, "a.md", "para one\n\npara two\n\npara three")
    chunker = RecursiveChunker(chunk_size=12, overlap=0)

    _pipeline(tmp_db, root, snapshots, embedder, chunker=chunker).run()

    assert embedder.calls == [["para one", "para two", "para three"]]


def test_nested_paths_stored_relative(tmp_db, root, snapshots, embedder, repo):
    _write(root, "projects/plan.md", "the plan")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    assert [d.path for d in repo.list_documents()] == ["projects/plan.md"]


def test_excluded_directories_ignored(tmp_db, root, snapshots, embedder, repo):
    _write(root, "node_modules/pkg/readme.md", "vendored")
    _write(root, "a.md", "mine")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    assert [d.path for d in repo.list_documents()] == ["a.md"]


def test_update_replaces_content_and_tags(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntitle: Old\ntags: [go, sql]\n---\nold body")
    _pipeline(tmp_db, root, snapshots, embedder).run()

    _write(root, "a.md", "---\ntags: [rust]\n---\nnew body")
    report = _pipeline(tmp_db, root, snapshots, embedder).run()

    assert report.updated == 1
    doc = repo.get_document("a.md")
    assert doc.title is None
    assert doc.body == "new body"
    assert repo.get_tags(doc.id) == ["rust"]
    assert [c.content for c in repo.get_chunks(doc.id)] == ["new body"]
    assert repo.count_rows()["embeddings"] == 1


def test_delete_removes_document_but_keeps_tags(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntags: [go]\n---\nbody")
    _pipeline(tmp_db, root, snapshots, embedder).run()

    (root / "a.md").unlink()
    report = _pipeline(tmp_db, root, snapshots, embedder).run()

    assert report.deleted == 1
    assert repo.get_document("a.md") is None
    counts = repo.count_rows()
    assert counts["chunks"] == 0
    assert counts["embeddings"] == 0
    assert counts["document_tags"] == 0
    assert repo.list_tags() == [("go", 0)]
    assert snapshots.snapshot == {}


def test_tags_shared_across_notes(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntags: [go]\n---\na")
    _write(root, "b.md", "---\ntags: [go]\n---\nb")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    assert repo.list_tags() == [("go", 2)]


def test_reingest_is_idempotent(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntags: [go]\n---\nhello")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    before = repo.count_rows()

    # Lost snapshot: every note is re-ingested as created.
    report = _pipeline(tmp_db, root, MemorySnapshotStore(), embedder).run()

    assert report.created == 1
    assert repo.count_rows() == before


# ------------------------------------------------------------------
# No-op runs
# ------------------------------------------------------------------

def test_no_changes_skips_transaction_and_snapshot(tmp_db, root, snapshots, embedder):
    _write(root, "a.md", "hello")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    embedder.calls.clear()

    pipeline = _pipeline(tmp_db, root, snapshots, embedder)
    report = pipeline.run()

    assert report.total == 0
    assert pipeline.state is IngestState.DONE
    assert embedder.calls == []
    assert snapshots.saves == 1


def test_empty_root(tmp_db, root, snapshots, embedder):
    report = _pipeline(tmp_db, root, snapshots, embedder).run()
    assert report.total == 0
    assert snapshots.saves == 0


def test_plan_has_no_side_effects(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "hello")
    changes, snapshot = _pipeline(tmp_db, root, snapshots, embedder).plan()
    assert [(c.path, c.kind) for c in changes] == [("a.md", ChangeKind.CREATED)]
    assert list(snapshot) == ["a.md"]
    assert repo.list_documents() == []
    assert snapshots.saves == 0


# ------------------------------------------------------------------
# Empty notes
# ------------------------------------------------------------------

def test_empty_body_skipped(tmp_db, root, snapshots, embedder, repo):
    _write(root, "empty.md", "---\ntitle: Nothing\ntags: [go]\n---\n   \n")

    report = _pipeline(tmp_db, root, snapshots, embedder).run()

    assert report.skipped == ["empty.md"]
    assert (report.created, report.updated, report.total) == (0, 0, 1)
    assert repo.get_document("empty.md") is None
    assert repo.count_rows()["tags"] == 0
    assert embedder.calls == []
    assert "empty.md" in snapshots.snapshot


def test_note_emptied_by_update_is_removed(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "content")
    _pipeline(tmp_db, root, snapshots, embedder).run()

    _write(root, "a.md", "")
    report = _pipeline(tmp_db, root, snapshots, embedder).run()

    assert report.skipped == ["a.md"]
    assert report.updated == 0
    assert repo.get_document("a.md") is None
    assert repo.count_rows()["chunks"] == 0


# ------------------------------------------------------------------
# Failures roll back the whole run
# ------------------------------------------------------------------

def test_embedding_failure_rolls_back_run(tmp_db, root, snapshots, repo):
    _write(root, "a.md", "first note")
    _write(root, "b.md", "second note FAIL")
    embedder = FakeEmbedder(fail_on="FAIL")
    pipeline = _pipeline(tmp_db, root, snapshots, embedder)

    with pytest.raises(IngestError, match="b.md") as exc_info:
        pipeline.run()

    assert exc_info.value.path == "b.md"
    assert pipeline.state is IngestState.ROLLED_BACK
    assert repo.list_documents() == []
    assert repo.count_rows()["embeddings"] == 0
    assert snapshots.saves == 0


def test_failure_preserves_previous_state(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntags: [go]\n---\noriginal")
    _pipeline(tmp_db, root, snapshots, embedder).run()
    saved = dict(snapshots.snapshot)
    before = repo.count_rows()

    _write(root, "a.md", "---\ntags: [rust]\n---\nchanged")
    _write(root, "z.md", "broken FAIL")
    with pytest.raises(IngestError):
        _pipeline(tmp_db, root, snapshots, FakeEmbedder(fail_on="FAIL")).run()

    doc = repo.get_document("a.md")
    assert doc.body == "original"
    assert repo.get_tags(doc.id) == ["go"]
    assert repo.count_rows() == before
    assert snapshots.snapshot == saved


def test_failed_run_is_retried_next_time(tmp_db, root, snapshots, repo):
    _write(root, "a.md", "note FAIL")
    with pytest.raises(IngestError):
        _pipeline(tmp_db, root, snapshots, FakeEmbedder(fail_on="FAIL")).run()

    report = _pipeline(tmp_db, root, snapshots, FakeEmbedder()).run()

    assert report.created == 1
    assert repo.get_document("a.md") is not None


def test_mismatched_embedding_count_fails(tmp_db, root, snapshots, repo):
    class ShortEmbedder(FakeEmbedder):
        def embed(self, texts):
            return super().embed(texts)[:-1]

    _write(root, "a.md", "hello")
    with pytest.raises(IngestError, match="Expected 1 embeddings, got 0"):
        _pipeline(tmp_db, root, snapshots, ShortEmbedder()).run()
    assert repo.list_documents() == []


def test_wrong_dimension_vectors_fail(tmp_db, root, snapshots, repo):
    class NarrowEmbedder(FakeEmbedder):
        def embed(self, texts):
            return [v[:2] for v in super().embed(texts)]

    _write(root, "a.md", "hello")
    with pytest.raises(IngestError, match="dimensions"):
        _pipeline(tmp_db, root, snapshots, NarrowEmbedder()).run()
    assert repo.list_documents() == []


def test_invalid_utf8_fails_run(tmp_db, root, snapshots, embedder, repo):
    (root / "bad.md").write_bytes(b"\xff\xfe\xfa not utf-8")
    with pytest.raises(IngestError) as exc_info:
        _pipeline(tmp_db, root, snapshots, embedder).run()
    assert exc_info.value.path == "bad.md"
    assert snapshots.saves == 0


def test_malformed_front_matter_fails_run(tmp_db, root, snapshots, embedder, repo):
    _write(root, "a.md", "---\ntitle: [unclosed\n---\nbody")
    with pytest.raises(IngestError, match="Malformed front matter"):
        _pipeline(tmp_db, root, snapshots, embedder).run()
    assert repo.list_documents() == []


def test_snapshot_save_failure_reported(tmp_db, root, embedder, repo):
    class BrokenStore(MemorySnapshotStore):
        def save(self, snapshot):
            raise OSError("disk full")

    _write(root, "a.md", "hello")
    pipeline = _pipeline(tmp_db, root, BrokenStore(), embedder)

    with pytest.raises(IngestError, match="snapshot could not be saved"):
        pipeline.run()
    # The transaction itself was committed.
    assert repo.get_document("a.md") is not None
    assert pipeline.state is IngestState.FAILED


def test_snapshot_save_unexpected_error_wrapped(tmp_db, root, embedder, repo):
    class BadStore(MemorySnapshotStore):
        def save(self, snapshot):
            raise TypeError("snapshot is not serializable")

    _write(root, "a.md", "hello")
    pipeline = _pipeline(tmp_db, root, BadStore(), embedder)

    with pytest.raises(IngestError, match="not serializable") as exc_info:
        pipeline.run()
    assert isinstance(exc_info.value.__cause__, TypeError)
    assert repo.get_document("a.md") is not None
    assert pipeline.state is IngestState.FAILED


# ------------------------------------------------------------------
# State machine
# ------------------------------------------------------------------

def test_state_transitions_on_success(tmp_db, root, snapshots):
    seen: list[IngestState] = []

    class SpyEmbedder(FakeEmbedder):
        def embed(self, texts):
            seen.append(pipeline.state)
            return super().embed(texts)

    _write(root, "a.md", "hello")
    pipeline = _pipeline(tmp_db, root, snapshots, SpyEmbedder())
    assert pipeline.state is IngestState.IDLE

    pipeline.run()

    assert seen == [IngestState.PROCESSING]
    assert pipeline.state is IngestState.DONE


def test_state_values():
    assert [s.value for s in IngestState] == [
        "idle",
        "diffing",
        "processing",
        "committing",
        "done",
        "failed",
        "rolled_back",
    ]
