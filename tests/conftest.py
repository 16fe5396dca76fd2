"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import math
from pathlib import Path

import pytest

from memindex.db.connection import Database
from memindex.db.models import EmbeddingResult
from memindex.db.schema import initialize

FAKE_DIMS = 8


class FakeProvider:
    """Deterministic bag-of-words embedder. Counts every text it embeds."""

    def __init__(
        self,
        dimensions: int = FAKE_DIMS,
        name: str = "fake",
        model: str = "fake-embed",
        *,
        reports_dimensions: bool = True,
    ):
        self.name = name
        self.model = model
        self.provider_key = None
        self._dims = dimensions
        if reports_dimensions:
            self.dimensions = dimensions
        self.calls = 0
        self.texts: list[str] = []
        self.fail_with: Exception | None = None

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self._dims
        for word in text.lower().split():
            idx = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dims
            vec[idx] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        if norm == 0:
            vec[0] = 1.0
            return vec
        return [v / norm for v in vec]

    def embed(self, text: str) -> EmbeddingResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls += 1
        self.texts.append(text)
        vec = self._vector(text)
        return EmbeddingResult(embedding=vec, dims=len(vec), model=self.model)

    def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        return [self.embed(t) for t in texts]


def _vec_loadable() -> bool:
    db = Database(":memory:")
    conn = db.connect()
    conn.close()
    return db.vec_available


VEC_AVAILABLE = _vec_loadable()


@pytest.fixture
def require_vec():
    """Skip the test when the sqlite-vec extension cannot be loaded."""
    if not VEC_AVAILABLE:
        pytest.skip("sqlite-vec extension not loadable in this interpreter")


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_factory():
    """The FakeProvider class, for tests needing several providers."""
    return FakeProvider


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Empty workspace directory with a memory/ subtree."""
    ws = tmp_path / "workspace"
    (ws / "memory").mkdir(parents=True)
    return ws


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch):
    """Keep ~/.memindex and MEMINDEX_* from leaking into tests."""
    monkeypatch.setattr(
        "memindex.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml"
    )
    monkeypatch.delenv("MEMINDEX_EMBEDDING_PROVIDER", raising=False)
    monkeypatch.delenv("MEMINDEX_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("MEMINDEX_WORKSPACE", raising=False)
