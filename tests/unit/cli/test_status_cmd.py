"""Tests for the notesdb status and version commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from conftest import FakeEmbedder
from notesdb.cli.main import app

runner = CliRunner()


def _status(root: Path):
    return runner.invoke(app, ["status", "--root", str(root)])


# ---------------------------------------------------------------------------
# notesdb --version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "notesdb" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "notesdb" in result.output


# ---------------------------------------------------------------------------
# notesdb status
# ---------------------------------------------------------------------------


def test_status_no_db(notes_root: Path) -> None:
    result = _status(notes_root)
    assert result.exit_code == 1
    assert "notesdb ingest" in result.output


def test_status_after_ingest(notes_root: Path) -> None:
    (notes_root / "a.md").write_text("---\ntags: [go]\n---\nhello", encoding="utf-8")
    with patch("notesdb.cli.ingest.LiteLLMEmbedder", return_value=FakeEmbedder()):
        runner.invoke(app, ["ingest", "--root", str(notes_root)])

    result = _status(notes_root)

    assert result.exit_code == 0, result.output
    assert "Knowledge Base" in result.output
    assert "Documents:   1" in result.output
    assert "Pending:     none" in result.output
    assert "go" in result.output


def test_status_reports_pending_changes(notes_root: Path) -> None:
    (notes_root / "a.md").write_text("hello", encoding="utf-8")
    with patch("notesdb.cli.ingest.LiteLLMEmbedder", return_value=FakeEmbedder()):
        runner.invoke(app, ["ingest", "--root", str(notes_root)])
    (notes_root / "b.md").write_text("new", encoding="utf-8")

    result = _status(notes_root)

    assert result.exit_code == 0
    assert "1 change(s)" in result.output
