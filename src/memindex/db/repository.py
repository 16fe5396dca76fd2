"""Repository pattern for all memory index database operations.

Single interface for: files, chunks, FTS5 search, vec embeddings, the
embedding cache, and per-source statistics. The FTS and vec tables are
optional; the repository only touches them when the corresponding flag is set.
"""

from __future__ import annotations

import json
import re
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager

from memindex.db.models import MEMORY_SOURCE, ChunkRecord, FileEntry, IndexStats
from memindex.db.schema import FTS_TABLE
from memindex.db.vectors import VEC_TABLE

_CHUNK_COLUMNS = "rowid, id, path, source, start_line, end_line, hash, model, text, updated_at"


class Repository:
    """Data access layer for all memory index entities.

    Wraps an open sqlite3.Connection. Every write commits immediately unless it
    runs inside ``transaction()``, in which case the whole block commits or
    rolls back together. The connection is owned by the caller.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        fts_enabled: bool = False,
        vec_enabled: bool = False,
    ) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see memindex.db.schema.initialize).
            fts_enabled: Keep chunks_fts in sync with chunk inserts/deletes.
            vec_enabled: chunks_vec exists and sqlite-vec is loaded.
        """
        self._conn = conn
        self.fts_enabled = fts_enabled
        self.vec_enabled = vec_enabled
        self._in_tx = False

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes into one atomic unit. Nested calls join the outer one."""
        if self._in_tx:
            yield
            return
        self._in_tx = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._in_tx = False

    def _commit(self) -> None:
        if not self._in_tx:
            self._conn.commit()

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def get_file_hash(self, path: str, source: str = MEMORY_SOURCE) -> str | None:
        """Return the stored content hash for *path*, or None if untracked."""
        row = self._conn.execute(
            "SELECT hash FROM files WHERE path = ? AND source = ?", (path, source)
        ).fetchone()
        return row["hash"] if row else None

    def upsert_file(self, entry: FileEntry, source: str = MEMORY_SOURCE) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO files (path, source, hash, mtime, size)
            VALUES (?, ?, ?, ?, ?)
            """,
            (entry.path, source, entry.hash, int(entry.mtime_ms), entry.size),
        )
        self._commit()

    def list_file_paths(self, source: str = MEMORY_SOURCE) -> list[str]:
        rows = self._conn.execute(
            "SELECT path FROM files WHERE source = ? ORDER BY path", (source,)
        ).fetchall()
        return [r["path"] for r in rows]

    def delete_file(self, path: str, source: str = MEMORY_SOURCE) -> None:
        """Delete a file row together with all of its chunk, FTS and vec rows."""
        with self.transaction():
            self.delete_chunks_by_path(path, source)
            self._conn.execute(
                "DELETE FROM files WHERE path = ? AND source = ?", (path, source)
            )

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: ChunkRecord) -> int:
        """Insert chunk + sync FTS5 index. Returns the new rowid."""
        cur = self._conn.execute(
            """
            INSERT INTO chunks
                (id, path, source, start_line, end_line, hash, model, text, embedding, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.path,
                chunk.source,
                chunk.start_line,
                chunk.end_line,
                chunk.hash,
                chunk.model,
                chunk.text,
                chunk.embedding_json,
                chunk.updated_at,
            ),
        )
        rowid = cur.lastrowid
        if self.fts_enabled:
            self._conn.execute(
                f"""
                INSERT INTO {FTS_TABLE} (text, id, path, source, model, start_line, end_line)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    chunk.text,
                    chunk.id,
                    chunk.path,
                    chunk.source,
                    chunk.model,
                    chunk.start_line,
                    chunk.end_line,
                ),
            )
        self._commit()
        chunk.rowid = rowid
        return rowid

    def get_chunk(self, chunk_id: str) -> ChunkRecord | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS}, embedding FROM chunks WHERE id = ?", (chunk_id,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks_by_path(
        self, path: str, source: str = MEMORY_SOURCE
    ) -> list[ChunkRecord]:
        """Return the chunks of *path* ordered by start line."""
        rows = self._conn.execute(
            f"""
            SELECT {_CHUNK_COLUMNS} FROM chunks
            WHERE path = ? AND source = ? ORDER BY start_line, rowid
            """,
            (path, source),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def delete_chunks_by_path(self, path: str, source: str = MEMORY_SOURCE) -> int:
        """Delete chunks + FTS + vec entries for *path*. Returns chunks deleted."""
        rows = self._conn.execute(
            "SELECT rowid, id FROM chunks WHERE path = ? AND source = ?", (path, source)
        ).fetchall()
        if rows:
            self._delete_derived([r["rowid"] for r in rows], [r["id"] for r in rows])
        cur = self._conn.execute(
            "DELETE FROM chunks WHERE path = ? AND source = ?", (path, source)
        )
        self._commit()
        return cur.rowcount

    def delete_source(self, source: str = MEMORY_SOURCE) -> None:
        """Delete every file, chunk, FTS and vec row belonging to *source*."""
        with self.transaction():
            rows = self._conn.execute(
                "SELECT rowid, id FROM chunks WHERE source = ?", (source,)
            ).fetchall()
            if rows:
                self._delete_derived([r["rowid"] for r in rows], [r["id"] for r in rows])
            self._conn.execute("DELETE FROM chunks WHERE source = ?", (source,))
            self._conn.execute("DELETE FROM files WHERE source = ?", (source,))

    def _delete_derived(self, rowids: list[int], ids: list[str]) -> None:
        # FTS and vec tables have no cascade from chunks.
        if self.vec_enabled:
            placeholders = ",".join("?" * len(rowids))
            self._conn.execute(
                f"DELETE FROM {VEC_TABLE} WHERE rowid IN ({placeholders})", rowids
            )
        if self.fts_enabled:
            placeholders = ",".join("?" * len(ids))
            self._conn.execute(
                f"DELETE FROM {FTS_TABLE} WHERE id IN ({placeholders})", ids
            )

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def add_embedding(self, rowid: int, embedding: list[float]) -> None:
        """Insert an embedding into chunks_vec with explicit rowid = chunk rowid."""
        self._conn.execute(
            f"INSERT INTO {VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
            (rowid, json.dumps(embedding)),
        )
        self._commit()

    def count_embeddings(self) -> int:
        if not self.vec_enabled:
            return 0
        return self._conn.execute(f"SELECT COUNT(*) FROM {VEC_TABLE}").fetchone()[0]

    def search_vec(
        self, embedding: list[float], limit: int = 5, source: str = MEMORY_SOURCE
    ) -> list[tuple[ChunkRecord, float]]:
        """Nearest-neighbour search. Returns (chunk, distance) sorted by distance."""
        rows = self._conn.execute(
            f"""
            SELECT c.rowid AS rowid, c.id, c.path, c.source, c.start_line, c.end_line,
                   c.hash, c.model, c.text, c.updated_at, v.distance AS distance
            FROM (
                SELECT rowid, distance FROM {VEC_TABLE}
                WHERE embedding MATCH ? AND k = ?
            ) AS v
            JOIN chunks AS c ON c.rowid = v.rowid
            WHERE c.source = ?
            ORDER BY v.distance
            """,
            (json.dumps(embedding), limit, source),
        ).fetchall()
        return [(_row_to_chunk(r), float(r["distance"])) for r in rows]

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(
        self, query: str, limit: int = 5, source: str = MEMORY_SOURCE
    ) -> list[tuple[ChunkRecord, float]]:
        """BM25 full-text search. Returns (chunk, bm25) sorted best-first.

        bm25() returns negative values; lower (more negative) = better match.
        Query terms are OR-ed so any keyword can match.
        """
        if not self.fts_enabled:
            return []
        # FTS5 MATCH rejects punctuation like commas as syntax errors.
        terms = re.sub(r"[^\w\s]", " ", query).split()
        if not terms:
            return []
        fts_query = " OR ".join(f'"{t}"' for t in terms)
        fts_rows = self._conn.execute(
            f"""
            SELECT id, bm25({FTS_TABLE}) AS score FROM {FTS_TABLE}
            WHERE {FTS_TABLE} MATCH ? AND source = ?
            ORDER BY score LIMIT ?
            """,
            (fts_query, source, limit),
        ).fetchall()

        results: list[tuple[ChunkRecord, float]] = []
        for fts_row in fts_rows:
            chunk = self.get_chunk(fts_row["id"])
            if chunk is not None:
                results.append((chunk, fts_row["score"]))
        return results

    # ------------------------------------------------------------------
    # Embedding cache
    # ------------------------------------------------------------------

    def get_cached_embedding(
        self, provider: str, model: str, provider_key: str | None, text_hash: str
    ) -> list[float] | None:
        row = self._conn.execute(
            """
            SELECT embedding FROM embedding_cache
            WHERE provider = ? AND model = ? AND provider_key = ? AND hash = ?
            """,
            (provider, model, provider_key or "", text_hash),
        ).fetchone()
        return json.loads(row["embedding"]) if row else None

    def put_cached_embedding(
        self,
        provider: str,
        model: str,
        provider_key: str | None,
        text_hash: str,
        embedding: list[float],
    ) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO embedding_cache
                (provider, model, provider_key, hash, embedding, dims, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                provider,
                model,
                provider_key or "",
                text_hash,
                json.dumps(embedding),
                len(embedding),
                _now_ms(),
            ),
        )
        self._commit()

    def count_cached_embeddings(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM embedding_cache").fetchone()[0]

    def prune_embedding_cache(self, max_entries: int) -> int:
        """Delete the oldest cache rows beyond *max_entries*. Returns rows deleted."""
        excess = self.count_cached_embeddings() - max_entries
        if excess <= 0:
            return 0
        cur = self._conn.execute(
            """
            DELETE FROM embedding_cache WHERE rowid IN (
                SELECT rowid FROM embedding_cache ORDER BY updated_at ASC LIMIT ?
            )
            """,
            (excess,),
        )
        self._commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def count_files(self, source: str = MEMORY_SOURCE) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM files WHERE source = ?", (source,)
        ).fetchone()[0]

    def count_chunks(self, source: str = MEMORY_SOURCE) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE source = ?", (source,)
        ).fetchone()[0]

    def total_size(self, source: str = MEMORY_SOURCE) -> int:
        return self._conn.execute(
            "SELECT COALESCE(SUM(size), 0) FROM files WHERE source = ?", (source,)
        ).fetchone()[0]

    def stats(self, source: str = MEMORY_SOURCE) -> IndexStats:
        """Return file count, chunk count and total file size for *source*."""
        return IndexStats(
            file_count=self.count_files(source),
            chunk_count=self.count_chunks(source),
            total_size=self.total_size(source),
        )


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_to_chunk(row: sqlite3.Row) -> ChunkRecord:
    keys = row.keys()
    return ChunkRecord(
        rowid=row["rowid"],
        id=row["id"],
        path=row["path"],
        source=row["source"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        hash=row["hash"],
        model=row["model"],
        text=row["text"],
        embedding=json.loads(row["embedding"]) if "embedding" in keys else [],
        updated_at=row["updated_at"],
    )
