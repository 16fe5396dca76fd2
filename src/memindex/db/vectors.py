"""sqlite-vec virtual table management for chunk embeddings."""

from __future__ import annotations

import re
import sqlite3

VEC_TABLE = "chunks_vec"


def vec_available(conn: sqlite3.Connection) -> bool:
    """Return True if the sqlite-vec functions are loaded on *conn*."""
    try:
        conn.execute("SELECT vec_version()").fetchone()
    except sqlite3.Error:
        return False
    return True


def vec_table_exists(conn: sqlite3.Connection, table: str = VEC_TABLE) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def ensure_vec_table(
    conn: sqlite3.Connection, dimensions: int, table: str = VEC_TABLE
) -> str:
    """Create the vec0 table with a fixed *dimensions* if it doesn't already exist.

    The table is keyed by ``chunks.rowid``. Its dimensionality cannot change
    after creation; use drop_vec_table() first when the model changes.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (e.g. 768 for nomic-embed-text).
        table: Table name (defaults to chunks_vec).

    Returns:
        The table name.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    if not vec_table_exists(conn, table):
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()

    return table


def drop_vec_table(conn: sqlite3.Connection, table: str = VEC_TABLE) -> None:
    """Drop the vec table (no-op if it does not exist)."""
    conn.execute(f"DROP TABLE IF EXISTS {table}")
    conn.commit()


def vec_table_dims(conn: sqlite3.Connection, table: str = VEC_TABLE) -> int | None:
    """Return the dimensionality declared for *table*, or None if absent."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    if row is None or row[0] is None:
        return None
    match = re.search(r"float\[(\d+)\]", row[0])
    return int(match.group(1)) if match else None
