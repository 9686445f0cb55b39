"""notesdb configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (NOTESDB_EMBEDDING_MODEL, NOTESDB_DB)
  3. notesdb.yaml in the notes root
  4. Global ~/.notesdb/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Config files must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from notesdb.ingest.chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP
from notesdb.ingest.differ import DEFAULT_EXCLUDE, DEFAULT_PATTERNS
from notesdb.ingest.embedder import DEFAULT_DIMENSIONS, DEFAULT_MODEL

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".notesdb" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "notesdb.yaml"

# Fields that suggest an API key.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["paths", "scan", "embedding", "chunker"])


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class PathsCfg:
    """Database and snapshot locations, relative to the notes root (notesdb.yaml: paths:)."""

    db: str = "notes.db"
    snapshot: str = ".glob-diff/notes.json"


@dataclass
class ScanCfg:
    """Which files are notes (notesdb.yaml: scan:)."""

    include: list[str] = field(default_factory=lambda: list(DEFAULT_PATTERNS))
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (notesdb.yaml: embedding:)."""

    model: str = DEFAULT_MODEL
    dimensions: int = DEFAULT_DIMENSIONS
    num_retries: int = 3


@dataclass
class ChunkerCfg:
    """Chunk size and overlap in characters (notesdb.yaml: chunker:)."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP


@dataclass
class NotesConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    paths: PathsCfg = field(default_factory=PathsCfg)
    scan: ScanCfg = field(default_factory=ScanCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config '{path}' must be a mapping at the top level.")
    return data


def _validate(cfg: NotesConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.chunker.chunk_size < 1:
        raise ConfigError(f"chunker.chunk_size must be >= 1, got {cfg.chunker.chunk_size}")
    if not 0 <= cfg.chunker.overlap < cfg.chunker.chunk_size:
        raise ConfigError(
            f"chunker.overlap must be in [0, {cfg.chunker.chunk_size}), got {cfg.chunker.overlap}"
        )
    if not cfg.scan.include:
        raise ConfigError("scan.include must list at least one glob pattern")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _str_list(value: Any, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _cfg_from_dict(data: dict[str, Any]) -> NotesConfig:
    """Build a *NotesConfig* from a merged raw YAML dict."""
    cfg = NotesConfig()

    if "paths" in data:
        p = data["paths"] or {}
        cfg.paths = PathsCfg(
            db=str(p.get("db", cfg.paths.db)),
            snapshot=str(p.get("snapshot", cfg.paths.snapshot)),
        )

    if "scan" in data:
        s = data["scan"] or {}
        cfg.scan = ScanCfg(
            include=_str_list(s.get("include"), cfg.scan.include),
            exclude=_str_list(s.get("exclude"), cfg.scan.exclude),
        )

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "chunker" in data:
        c = data["chunker"] or {}
        cfg.chunker = ChunkerCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunker.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunker.overlap)),
        )

    return cfg


def _apply_env_overrides(cfg: NotesConfig) -> NotesConfig:
    """Apply NOTESDB_* environment variable overrides."""
    if model := os.environ.get("NOTESDB_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db := os.environ.get("NOTESDB_DB"):
        cfg.paths.db = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    notes_root: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> NotesConfig:
    """Load and return a merged *NotesConfig*.

    Applies layers in order: global → notes root → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        notes_root: Directory to search for *notesdb.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: On malformed YAML, API-key-like fields, or invalid values.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = notes_root if notes_root is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if path.exists():
            raw = _read_yaml(path)
            _check_no_api_keys(raw, path)
            _warn_unknown_keys(raw, path)
            merged = _deep_merge(merged, raw)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def resolve_path(notes_root: Path, value: str | Path) -> Path:
    """Resolve a configured path against *notes_root* unless it is absolute."""
    path = Path(value).expanduser()
    return path if path.is_absolute() else notes_root / path
