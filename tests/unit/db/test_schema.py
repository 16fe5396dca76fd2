"""Tests for schema initialization and the IndexMeta record."""

from __future__ import annotations

from unittest.mock import patch

from memindex.db.connection import Database
from memindex.db.models import IndexMeta
from memindex.db.schema import (
    FTS_TABLE,
    META_KEY,
    fts_table_exists,
    initialize,
    load_index_meta,
    save_index_meta,
)


def _conn(tmp_path):
    return Database(tmp_path / "index.sqlite", load_vec=False).connect()


def test_initialize_idempotent(tmp_path):
    conn = _conn(tmp_path)
    first = initialize(conn)
    second = initialize(conn)
    assert first == second
    conn.close()


def test_initialize_creates_fts(tmp_path):
    conn = _conn(tmp_path)
    status = initialize(conn)
    assert status.fts_available is True
    assert fts_table_exists(conn)
    conn.close()


def test_initialize_without_fts(tmp_path):
    conn = _conn(tmp_path)
    status = initialize(conn, fts_enabled=False)
    assert status.fts_available is False
    assert not fts_table_exists(conn)
    conn.close()


def test_fts_creation_failure_degrades(tmp_path, caplog):
    """A SQLite build without FTS5 keeps working; the failure is reported."""
    conn = _conn(tmp_path)
    broken = f"CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING no_such_fts(text)"
    with patch("memindex.db.schema._CREATE_CHUNKS_FTS", broken):
        status = initialize(conn)

    assert status.fts_available is False
    assert "no_such_fts" in status.fts_error
    assert "Full-text search not available" in caplog.text
    assert not fts_table_exists(conn)
    conn.close()


# --- IndexMeta ---

def test_load_index_meta_missing(tmp_db):
    assert load_index_meta(tmp_db) is None


def test_index_meta_round_trip(tmp_db):
    meta = IndexMeta(
        model="nomic-embed-text",
        provider="ollama",
        chunk_tokens=500,
        chunk_overlap=50,
        provider_key="http://localhost:11434",
        vector_dims=768,
    )
    save_index_meta(tmp_db, meta)
    assert load_index_meta(tmp_db) == meta


def test_save_index_meta_upserts_single_row(tmp_db):
    save_index_meta(tmp_db, IndexMeta("a", "ollama", 500, 50))
    save_index_meta(tmp_db, IndexMeta("b", "openai", 400, 40))
    count = tmp_db.execute("SELECT COUNT(*) FROM meta").fetchone()[0]
    assert count == 1
    assert load_index_meta(tmp_db).model == "b"


def test_index_meta_omits_none_fields(tmp_db):
    save_index_meta(tmp_db, IndexMeta("m", "ollama", 500, 50))
    raw = tmp_db.execute("SELECT value FROM meta WHERE key = ?", (META_KEY,)).fetchone()[0]
    assert "provider_key" not in raw
    assert "vector_dims" not in raw


def test_load_index_meta_unreadable(tmp_db, caplog):
    tmp_db.execute(
        "INSERT INTO meta (key, value) VALUES (?, ?)", (META_KEY, "{not json")
    )
    tmp_db.commit()
    assert load_index_meta(tmp_db) is None
    assert "unreadable" in caplog.text
