"""Tests for the sqlite-vec chunk vector table."""

from __future__ import annotations

import pytest

from memindex.db.connection import Database
from memindex.db.vectors import (
    VEC_TABLE,
    drop_vec_table,
    ensure_vec_table,
    vec_available,
    vec_table_dims,
    vec_table_exists,
)


def test_ensure_vec_table_creates_table(tmp_db, require_vec):
    table = ensure_vec_table(tmp_db, dimensions=768)
    assert table == VEC_TABLE
    assert vec_table_exists(tmp_db)


def test_ensure_vec_table_idempotent(tmp_db, require_vec):
    ensure_vec_table(tmp_db, dimensions=8)
    ensure_vec_table(tmp_db, dimensions=8)
    assert vec_table_dims(tmp_db) == 8


def test_vec_table_dims_parsed_from_schema(tmp_db, require_vec):
    ensure_vec_table(tmp_db, dimensions=1536)
    assert vec_table_dims(tmp_db) == 1536


def test_vec_table_dims_missing_table(tmp_db):
    assert vec_table_dims(tmp_db) is None


def test_drop_and_recreate_with_new_dims(tmp_db, require_vec):
    ensure_vec_table(tmp_db, dimensions=8)
    drop_vec_table(tmp_db)
    assert not vec_table_exists(tmp_db)
    ensure_vec_table(tmp_db, dimensions=16)
    assert vec_table_dims(tmp_db) == 16


def test_drop_missing_table_is_noop(tmp_db):
    drop_vec_table(tmp_db)
    assert not vec_table_exists(tmp_db)


@pytest.mark.parametrize("dims", [0, -1])
def test_ensure_vec_table_rejects_bad_dims(tmp_db, dims):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(tmp_db, dimensions=dims)


def test_vec_available_false_without_extension(tmp_path):
    conn = Database(tmp_path / "plain.sqlite", load_vec=False).connect()
    assert vec_available(conn) is False
    conn.close()


def test_vec_available_true_with_extension(tmp_db, require_vec):
    assert vec_available(tmp_db) is True
