"""YAML front matter extraction for markdown notes.

A note may start with a YAML block fenced by ``---`` lines::

    ---
    title: Deploy checklist
    description: Steps before every release
    tags: [ops, release]
    ---
    Body text...

Only ``title``, ``description`` and ``tags`` are kept. Everything after the
closing fence is the body. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

# Opening fence on the first line, closing fence (--- or ...) on its own line.
_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


class FrontMatterError(ValueError):
    """Raised when a note's front matter block is not valid YAML mapping syntax."""


@dataclass
class FrontMatter:
    title: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)


def extract(raw: str) -> tuple[FrontMatter, str]:
    """Split *raw* note text into front matter metadata and body.

    Returns:
        ``(FrontMatter, body)``. Without a front matter block the metadata is
        empty and the body is *raw* unchanged.

    Raises:
        FrontMatterError: If the block is malformed YAML or not a mapping.
    """
    text = raw[1:] if raw.startswith("\ufeff") else raw
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return FrontMatter(), raw

    try:
        data = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Malformed front matter: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Front matter must be a mapping, got {type(data).__name__}."
        )

    meta = FrontMatter(
        title=_as_text(data.get("title")),
        description=_as_text(data.get("description")),
        tags=_as_tags(data.get("tags")),
    )
    return meta, text[match.end():]


def _as_text(value: Any) -> str | None:
    # Unquoted YAML scalars like `title: 2024` load as int/date.
    if value is None or isinstance(value, (dict, list)):
        return None
    return value if isinstance(value, str) else str(value)


def _as_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return list(dict.fromkeys(v for v in value if isinstance(v, str)))
    return []
