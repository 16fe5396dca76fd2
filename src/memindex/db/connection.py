"""SQLite connection layer with optional sqlite-vec extension."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import sqlite_vec

logger = logging.getLogger(__name__)


class Database:
    """Per-workspace SQLite database with best-effort sqlite-vec support.

    If the sqlite-vec extension cannot be loaded (interpreter built without
    extension loading, missing binary, ...) the connection is still returned
    and ``vec_available`` is False; callers run without vector search.
    """

    def __init__(self, db_path: Path | str, *, load_vec: bool = True) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
            load_vec: Try to load sqlite-vec on connect.
        """
        self.db_path = Path(db_path)
        self.load_vec = load_vec
        self.vec_available = False
        self.vec_error: str | None = None
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, try to load sqlite-vec, and return the connection.

        The connection may be shared with the watcher thread; all writes are
        serialized by the index manager.
        """
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.load_vec:
            self._load_vec(conn)
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def _load_vec(self, conn: sqlite3.Connection) -> None:
        try:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        except (AttributeError, sqlite3.Error) as exc:
            # AttributeError: Python built without SQLITE_ENABLE_LOAD_EXTENSION.
            self.vec_available = False
            self.vec_error = str(exc)
            logger.warning("Vector search not available: %s", exc)
            return
        self.vec_available = True
        self.vec_error = None

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
