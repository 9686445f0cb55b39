"""File-set snapshot differ.

A snapshot maps each matched note path (POSIX, relative to the notes root)
to the SHA-256 of its bytes. ``diff()`` compares the current file set with a
previous snapshot and reports what was created, updated or deleted. It has no
side effects: the caller persists the new snapshot through a
:class:`SnapshotStore` only once the changes are durably applied.
"""

from __future__ import annotations

import enum
import fnmatch
import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

Snapshot = dict[str, str]

DEFAULT_PATTERNS: tuple[str, ...] = ("**/*.md",)
DEFAULT_EXCLUDE: tuple[str, ...] = ("node_modules", ".git")


class ChangeKind(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class Change:
    path: str
    kind: ChangeKind


class SnapshotStore(Protocol):
    """Persistence for the snapshot of the last successful ingestion run."""

    def load(self) -> Snapshot: ...

    def save(self, snapshot: Snapshot) -> None: ...


class JsonSnapshotStore:
    """Snapshot persisted as a JSON object in a single file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Snapshot:
        """Return the stored snapshot; a missing or unreadable file counts as empty.

        An empty snapshot makes the next run re-ingest every note, which is
        safe because ingestion is idempotent.
        """
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring snapshot %s: expected a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def save(self, snapshot: Snapshot) -> None:
        """Write *snapshot* atomically (temp file + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh, sort_keys=True, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class MemorySnapshotStore:
    """In-memory snapshot store, for dry runs and tests."""

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self.snapshot: Snapshot = dict(snapshot or {})
        self.saves = 0

    def load(self) -> Snapshot:
        return dict(self.snapshot)

    def save(self, snapshot: Snapshot) -> None:
        self.snapshot = dict(snapshot)
        self.saves += 1


def diff(
    root: Path | str,
    previous: Snapshot | None,
    patterns: Iterable[str] = DEFAULT_PATTERNS,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
) -> tuple[list[Change], Snapshot]:
    """Compare the files under *root* matching *patterns* with *previous*.

    Args:
        root: Notes root directory; snapshot paths are relative to it.
        previous: Snapshot of the last successful run (None or {} on first run).
        patterns: Glob patterns relative to *root*.
        exclude: fnmatch patterns; a file is skipped if any component of its
            relative path matches one.

    Returns:
        ``(changes, snapshot)``: changes sorted by path, and the snapshot of
        the current file set.
    """
    previous = previous or {}
    current = scan(root, patterns, exclude)

    changes: list[Change] = []
    for path in sorted(current.keys() | previous.keys()):
        if path not in previous:
            changes.append(Change(path, ChangeKind.CREATED))
        elif path not in current:
            changes.append(Change(path, ChangeKind.DELETED))
        elif current[path] != previous[path]:
            changes.append(Change(path, ChangeKind.UPDATED))
    return changes, current


def scan(
    root: Path | str,
    patterns: Iterable[str] = DEFAULT_PATTERNS,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
) -> Snapshot:
    """Return ``{relative path: sha256}`` for every matching file under *root*."""
    root = Path(root)
    excludes = list(exclude)
    snapshot: Snapshot = {}
    for pattern in patterns:
        for file in root.glob(pattern):
            if not file.is_file():
                continue
            rel = file.relative_to(root)
            if any(fnmatch.fnmatch(part, pat) for part in rel.parts for pat in excludes):
                continue
            snapshot[rel.as_posix()] = _compute_hash(file)
    return snapshot


def _compute_hash(path: Path) -> str:
    """SHA-256 fingerprint of the file content."""
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            h.update(block)
    return h.hexdigest()
