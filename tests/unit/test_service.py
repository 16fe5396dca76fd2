"""Tests for MemoryService: config-driven startup, search and save_memory."""

from __future__ import annotations

from datetime import datetime

import pytest

from memindex.config import MemIndexConfig
from memindex.errors import EmbeddingDimensionError, ManagerClosedError
from memindex.service import MemoryService

NOW = datetime(2026, 3, 14, 9, 26)


@pytest.fixture
def config(fake_provider) -> MemIndexConfig:
    cfg = MemIndexConfig()
    cfg.embedding.dimensions = fake_provider.dimensions
    cfg.chunking.tokens = 50
    cfg.chunking.overlap = 5
    cfg.index.vector = False
    cfg.watch.enabled = False
    return cfg


@pytest.fixture
def service(workspace, config, fake_provider):
    svc = MemoryService(workspace, config, provider=fake_provider)
    yield svc
    svc.stop()


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------

def test_start_indexes_workspace(service, workspace):
    (workspace / "MEMORY.md").write_text("# Root\nremember this", encoding="utf-8")

    report = service.start()

    assert service.is_started
    assert report.indexed == 1
    assert service.get_stats().file_count == 1
    assert (workspace / ".memory" / "index.sqlite").exists()


def test_start_twice_returns_none(service):
    service.start()
    assert service.start() is None


def test_stop_then_operations(service):
    service.start()
    service.stop()
    assert not service.is_started
    assert service.search_memories("anything") == []
    with pytest.raises(ManagerClosedError):
        service.sync()


def test_not_started(service):
    assert service.search_memories("anything") == []
    assert service.get_stats().file_count == 0
    with pytest.raises(ManagerClosedError):
        service.reindex()


def test_failed_start_leaves_service_stopped(workspace, config, provider_factory, require_vec):
    config.index.vector = True
    config.embedding.dimensions = 16
    svc = MemoryService(workspace, config, provider=provider_factory(dimensions=8))

    with pytest.raises(EmbeddingDimensionError):
        svc.start()
    assert not svc.is_started


def test_context_manager(workspace, config, fake_provider):
    with MemoryService(workspace, config, provider=fake_provider) as svc:
        assert svc.is_started
    assert not svc.is_started


def test_config_loaded_from_workspace(workspace):
    (workspace / "memindex.yaml").write_text("search:\n  max_results: 2\n", encoding="utf-8")
    svc = MemoryService(workspace)
    assert svc.config.search.max_results == 2


# ------------------------------------------------------------------
# Search
# ------------------------------------------------------------------

def test_search_memories_uses_config(service, workspace, config, require_vec):
    config.index.vector = True
    config.search.min_score = 0.0
    config.search.max_results = 1
    (workspace / "MEMORY.md").write_text("coffee preferences", encoding="utf-8")
    (workspace / "memory" / "b.md").write_text("garden plans", encoding="utf-8")
    service.start()

    results = service.search_memories("coffee preferences")

    assert [r.path for r in results] == ["MEMORY.md"]
    assert len(service.search_memories("garden", max_results=5)) == 2


def test_search_memories_blank_query(service):
    service.start()
    assert service.search_memories("   ") == []


# ------------------------------------------------------------------
# save_memory
# ------------------------------------------------------------------

def test_save_memory_writes_daily_file(service, workspace):
    path = service.save_memory("Likes oat milk.", now=NOW)

    assert path == workspace / "memory" / "2026-03-14.md"
    assert path.read_text(encoding="utf-8") == "## 09:26\n\nLikes oat milk.\n"


def test_save_memory_title_and_tags(service):
    path = service.save_memory(
        "  Deploy on Fridays is banned.  ", title="Ops", tags=["ops", "#policy"], now=NOW
    )
    assert path.read_text(encoding="utf-8") == (
        "## Ops\nTags: #ops #policy\n\nDeploy on Fridays is banned.\n"
    )


def test_save_memory_appends(service):
    service.save_memory("first", title="One", now=NOW)
    path = service.save_memory("second", title="Two", now=NOW)

    assert path.read_text(encoding="utf-8") == "## One\n\nfirst\n\n## Two\n\nsecond\n"


def test_save_memory_creates_memory_dir(tmp_path, config, fake_provider):
    ws = tmp_path / "fresh"
    ws.mkdir()
    svc = MemoryService(ws, config, provider=fake_provider)

    path = svc.save_memory("note", now=NOW)

    assert path.parent == ws / "memory"
    assert path.exists()


def test_save_memory_rejects_empty(service):
    with pytest.raises(ValueError, match="empty"):
        service.save_memory("  \n ")


def test_saved_memory_is_indexed_on_sync(service):
    service.start()
    service.save_memory("remember the milk", now=NOW)

    report = service.sync()

    assert report.indexed == 1
    assert service.get_stats().file_count == 1


def test_search_memories_zero_max_results(service, workspace, config, require_vec):
    config.index.vector = True
    config.search.min_score = 0.0
    (workspace / "MEMORY.md").write_text("coffee preferences", encoding="utf-8")
    service.start()

    assert service.search_memories("coffee", max_results=0) == []
    assert len(service.search_memories("coffee")) == 1
