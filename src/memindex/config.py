"""memindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at the call site, not in this module)
  2. Environment variables  (MEMINDEX_EMBEDDING_PROVIDER, MEMINDEX_EMBEDDING_MODEL)
  3. Per-workspace memindex.yaml
  4. Global ~/.memindex/config.yaml  (no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
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

from memindex.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".memindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "memindex.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like tokens, max_entries, debounce_ms.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "index", "watch", "search"]
)

_PROVIDERS: frozenset[str] = frozenset(["ollama", "openai", "auto"])

__all__ = [
    "ConfigError",
    "EmbeddingCfg",
    "ChunkingCfg",
    "IndexCfg",
    "WatchCfg",
    "SearchCfg",
    "MemIndexConfig",
    "load_config",
    "ensure_global_config",
]


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (memindex.yaml: embedding:).

    Attributes:
        provider: ``ollama``, ``openai`` or ``auto``.
        model: Model name without provider prefix; empty = provider default.
        dimensions: Vector size; fixed into the vector table and checked
            against the provider on start.
        base_url: Provider base URL override (Ollama host, OpenAI proxy).
        timeout: Request timeout in seconds.
    """

    provider: str = "ollama"
    model: str = ""
    dimensions: int = 768
    base_url: str | None = None
    timeout: float = 60.0


@dataclass
class ChunkingCfg:
    """Chunk size and overlap in approximate tokens (memindex.yaml: chunking:)."""

    tokens: int = 500
    overlap: int = 50


@dataclass
class IndexCfg:
    """Index store configuration (memindex.yaml: index:)."""

    db_path: str = ".memory/index.sqlite"  # relative to the workspace
    fts: bool = True
    vector: bool = True
    embedding_cache: bool = True
    cache_max_entries: int = 10_000


@dataclass
class WatchCfg:
    """Filesystem watch configuration (memindex.yaml: watch:)."""

    enabled: bool = True
    debounce_ms: int = 5_000


@dataclass
class SearchCfg:
    """Search defaults used by the memory service (memindex.yaml: search:)."""

    max_results: int = 6
    min_score: float = 0.35


@dataclass
class MemIndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    watch: WatchCfg = field(default_factory=WatchCfg)
    search: SearchCfg = field(default_factory=SearchCfg)

    def db_path_for(self, workspace_dir: Path) -> Path:
        """Resolve index.db_path against *workspace_dir* (absolute paths kept)."""
        path = Path(self.index.db_path).expanduser()
        return path if path.is_absolute() else workspace_dir / path


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
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
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


def _validate(cfg: MemIndexConfig) -> None:
    """Raise ConfigError for values that can never work at runtime."""
    if cfg.embedding.provider not in _PROVIDERS:
        raise ConfigError(
            f"embedding.provider must be one of {', '.join(sorted(_PROVIDERS))}, "
            f"got '{cfg.embedding.provider}'"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError(
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}"
        )
    if cfg.chunking.tokens < 1:
        raise ConfigError(f"chunking.tokens must be >= 1, got {cfg.chunking.tokens}")
    if cfg.chunking.overlap < 0:
        raise ConfigError(f"chunking.overlap must be >= 0, got {cfg.chunking.overlap}")
    if cfg.watch.debounce_ms < 0:
        raise ConfigError(f"watch.debounce_ms must be >= 0, got {cfg.watch.debounce_ms}")
    if not 0.0 <= cfg.search.min_score <= 1.0:
        raise ConfigError(f"search.min_score must be in [0, 1], got {cfg.search.min_score}")


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


def _cfg_from_dict(data: dict[str, Any]) -> MemIndexConfig:
    """Build a *MemIndexConfig* from a merged raw YAML dict."""
    cfg = MemIndexConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                provider=str(e.get("provider", cfg.embedding.provider)).lower(),
                model=str(e.get("model") or cfg.embedding.model),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                base_url=e.get("base_url") or cfg.embedding.base_url,
                timeout=float(e.get("timeout", cfg.embedding.timeout)),
            )

        if "chunking" in data:
            c = data["chunking"] or {}
            cfg.chunking = ChunkingCfg(
                tokens=int(c.get("tokens", cfg.chunking.tokens)),
                overlap=int(c.get("overlap", cfg.chunking.overlap)),
            )

        if "index" in data:
            i = data["index"] or {}
            cfg.index = IndexCfg(
                db_path=str(i.get("db_path", cfg.index.db_path)),
                fts=bool(i.get("fts", cfg.index.fts)),
                vector=bool(i.get("vector", cfg.index.vector)),
                embedding_cache=bool(i.get("embedding_cache", cfg.index.embedding_cache)),
                cache_max_entries=int(
                    i.get("cache_max_entries", cfg.index.cache_max_entries)
                ),
            )

        if "watch" in data:
            w = data["watch"] or {}
            cfg.watch = WatchCfg(
                enabled=bool(w.get("enabled", cfg.watch.enabled)),
                debounce_ms=int(w.get("debounce_ms", cfg.watch.debounce_ms)),
            )

        if "search" in data:
            s = data["search"] or {}
            cfg.search = SearchCfg(
                max_results=int(s.get("max_results", cfg.search.max_results)),
                min_score=float(s.get("min_score", cfg.search.min_score)),
            )
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: MemIndexConfig) -> MemIndexConfig:
    """Apply MEMINDEX_* environment variable overrides."""
    if provider := os.environ.get("MEMINDEX_EMBEDDING_PROVIDER"):
        cfg.embedding.provider = provider.lower()
    if model := os.environ.get("MEMINDEX_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    workspace_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MemIndexConfig:
    """Load and return a merged *MemIndexConfig*.

    Applies layers in order: global → per-workspace → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        workspace_dir: Directory to search for *memindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *MemIndexConfig*.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = workspace_dir if workspace_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-workspace config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.memindex/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# memindex global configuration — defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  provider: ollama\n"
            "  model: nomic-embed-text\n"
            "  dimensions: 768\n"
            "\n"
            "chunking:\n"
            "  tokens: 500\n"
            "  overlap: 50\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
