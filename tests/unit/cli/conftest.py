"""Fixtures for CLI tests: a workspace with notes and a fake embedding backend."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml


def _write_config(workspace: Path, *, vector: bool = False, **sections) -> None:
    data = {
        "embedding": {"provider": "ollama", "model": "fake-embed", "dimensions": 8},
        "chunking": {"tokens": 50, "overlap": 5},
        "index": {"vector": vector},
    }
    data.update(sections)
    (workspace / "memindex.yaml").write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture
def cli_workspace(workspace) -> Path:
    """Workspace with two notes and a vector-less config."""
    (workspace / "MEMORY.md").write_text("# Root\nPrefers tea over coffee.", encoding="utf-8")
    (workspace / "memory" / "2026-01-02.md").write_text(
        "## Standup\nShipped the parser rewrite.", encoding="utf-8"
    )
    _write_config(workspace)
    return workspace


@pytest.fixture
def write_config():
    """Rewrite memindex.yaml: write_config(workspace, vector=True, search={...})."""
    return _write_config


@pytest.fixture
def fake_backend(fake_provider):
    """Route create_embedding_provider to the in-memory fake."""
    with patch(
        "memindex.index.manager.create_embedding_provider", return_value=fake_provider
    ) as factory:
        yield factory
