"""Forward-only migration runner for the memory index schema.

The FTS table (chunks_fts) and the vector table (chunks_vec) are NOT
migration-managed: both depend on optional SQLite capabilities and are
created by memindex.db.schema / memindex.db.vectors.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS files (
    path    TEXT PRIMARY KEY,
    source  TEXT NOT NULL DEFAULT 'memory',
    hash    TEXT NOT NULL,
    mtime   INTEGER NOT NULL,
    size    INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
    id          TEXT PRIMARY KEY,
    path        TEXT NOT NULL,
    source      TEXT NOT NULL DEFAULT 'memory',
    start_line  INTEGER NOT NULL,
    end_line    INTEGER NOT NULL,
    hash        TEXT NOT NULL,
    model       TEXT NOT NULL,
    text        TEXT NOT NULL,
    embedding   TEXT NOT NULL,
    updated_at  INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS embedding_cache (
    provider        TEXT NOT NULL,
    model           TEXT NOT NULL,
    provider_key    TEXT NOT NULL DEFAULT '',
    hash            TEXT NOT NULL,
    embedding       TEXT NOT NULL,
    dims            INTEGER,
    updated_at      INTEGER NOT NULL,
    PRIMARY KEY (provider, model, provider_key, hash)
);
"""

# Run on every startup, after legacy columns have been back-filled.
_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_chunks_path ON chunks(path);
CREATE INDEX IF NOT EXISTS idx_chunks_source ON chunks(source);
CREATE INDEX IF NOT EXISTS idx_embedding_cache_updated_at ON embedding_cache(updated_at);
"""

# Columns added after the first release; older databases lack them.
_LEGACY_COLUMNS: list[tuple[str, str, str]] = [
    ("files", "source", "TEXT NOT NULL DEFAULT 'memory'"),
    ("chunks", "source", "TEXT NOT NULL DEFAULT 'memory'"),
]

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version, including
    databases written before schema_version existed.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()

    for table, column, definition in _LEGACY_COLUMNS:
        ensure_column(conn, table, column, definition)

    conn.executescript(_INDEXES_SQL)
    conn.commit()


def ensure_column(
    conn: sqlite3.Connection, table: str, column: str, definition: str
) -> bool:
    """Add *column* to *table* if it is missing. Returns True if it was added."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if any(r[1] == column for r in rows):
        return False
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
    conn.commit()
    return True
