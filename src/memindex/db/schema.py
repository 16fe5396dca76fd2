"""Schema initialization, optional FTS5 table, and IndexMeta persistence."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass

from memindex.db.models import IndexMeta

logger = logging.getLogger(__name__)

FTS_TABLE = "chunks_fts"
META_KEY = "memory_index_meta_v1"

# Rows are inserted explicitly by the repository alongside each chunk.
_CREATE_CHUNKS_FTS = f"""
CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
    text,
    id UNINDEXED,
    path UNINDEXED,
    source UNINDEXED,
    model UNINDEXED,
    start_line UNINDEXED,
    end_line UNINDEXED
)
"""


@dataclass(frozen=True)
class SchemaStatus:
    fts_available: bool
    fts_error: str | None = None


def initialize(conn: sqlite3.Connection, *, fts_enabled: bool = True) -> SchemaStatus:
    """Initialize the database schema via the migration runner (idempotent).

    The FTS5 table is created best-effort: if the SQLite build lacks FTS5 the
    failure is logged and reported in the returned status.
    """
    from memindex.db.migrations import run_migrations

    run_migrations(conn)

    if not fts_enabled:
        return SchemaStatus(fts_available=False)

    try:
        conn.execute(_CREATE_CHUNKS_FTS)
        conn.commit()
    except sqlite3.OperationalError as exc:
        logger.warning("Full-text search not available: %s", exc)
        return SchemaStatus(fts_available=False, fts_error=str(exc))
    return SchemaStatus(fts_available=True)


def fts_table_exists(conn: sqlite3.Connection) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (FTS_TABLE,)
    ).fetchone()
    return row is not None


def save_index_meta(conn: sqlite3.Connection, meta: IndexMeta) -> None:
    """Upsert the IndexMeta record."""
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (META_KEY, json.dumps(meta.to_dict(), sort_keys=True)),
    )
    conn.commit()


def load_index_meta(conn: sqlite3.Connection) -> IndexMeta | None:
    """Return the stored IndexMeta, or None if missing or unreadable."""
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (META_KEY,)).fetchone()
    if row is None:
        return None
    try:
        return IndexMeta.from_dict(json.loads(row[0]))
    except (ValueError, KeyError, TypeError):
        logger.warning("Ignoring unreadable index meta record")
        return None
