"""Tests for the Database connection layer."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest

from memindex.db.connection import Database


def test_connect_creates_file_and_parent_dirs(tmp_path):
    db_path = tmp_path / ".memory" / "index.sqlite"
    db = Database(db_path)
    conn = db.connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path, require_vec):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert db.vec_available is True
    assert db.vec_error is None
    assert version.startswith("v")


def test_load_vec_disabled(tmp_path):
    db = Database(tmp_path / "index.sqlite", load_vec=False)
    conn = db.connect()
    conn.close()
    assert db.vec_available is False


def test_vec_load_failure_degrades(tmp_path, caplog):
    """A failing extension load is logged, not raised."""
    db = Database(tmp_path / "index.sqlite")
    with patch(
        "memindex.db.connection.sqlite_vec.load",
        side_effect=sqlite3.OperationalError("no such module"),
    ):
        conn = db.connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.close()
    assert db.vec_available is False
    assert "no such module" in db.vec_error
    assert "Vector search not available" in caplog.text


def test_wal_journal_mode(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_row_factory_set(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_in_memory_database():
    db = Database(":memory:")
    conn = db.connect()
    assert conn.execute("SELECT 1").fetchone()[0] == 1
    conn.close()


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")
