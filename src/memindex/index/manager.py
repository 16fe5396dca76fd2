"""MemoryIndexManager: incremental indexing and vector search for one workspace.

Lifecycle: construct (opens + migrates the store) → start() (dimension check,
sync or drift reindex, optional watching) → stop() (idempotent, closes store).

All mutating operations (sync, index_file, reindex) hold one re-entrant lock
per manager, so a manual sync() and a watcher-triggered sync() never
interleave. Each file's delete + reinsert is one SQLite transaction; its
embeddings are computed before the transaction opens, so a provider failure
leaves the file's previous rows untouched.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

from memindex.db.connection import Database
from memindex.db.models import (
    MEMORY_SOURCE,
    ChunkRecord,
    EmbeddingResult,
    FileEntry,
    IndexMeta,
    IndexStats,
    MemoryChunk,
    ProgressUpdate,
    SearchResult,
)
from memindex.db.repository import Repository
from memindex.db.schema import initialize, load_index_meta, save_index_meta
from memindex.db.vectors import drop_vec_table, ensure_vec_table, vec_table_dims
from memindex.errors import (
    EmbeddingDimensionError,
    EmbeddingProviderError,
    ManagerClosedError,
)
from memindex.index.search import keyword_results, vector_results
from memindex.index.watcher import DebouncedWatcher
from memindex.ingest.chunker import ChunkConfig, chunk_markdown
from memindex.ingest.discovery import (
    build_file_entry,
    hash_text,
    list_memory_files,
    normalize_rel_path,
    read_text,
)
from memindex.ingest.embeddings import (
    EmbeddingCache,
    EmbeddingProvider,
    create_embedding_provider,
)

if TYPE_CHECKING:
    from memindex.config import MemIndexConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]

DEFAULT_DB_PATH = Path(".memory") / "index.sqlite"
_DIMENSION_PROBE = "memindex dimension probe"


@dataclass
class SyncReport:
    """Per-file outcome counts of one sync() pass."""

    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.indexed + self.skipped + self.failed


class MemoryIndexManager:
    """Owns the index store, embedding cache and watcher for one workspace.

    Args:
        workspace_dir: Root holding MEMORY.md / memory.md and memory/.
        provider: Embedding provider (see memindex.ingest.embeddings).
        db_path: SQLite file; defaults to <workspace>/.memory/index.sqlite.
        chunk_config: Chunk size/overlap in approximate tokens.
        dimensions: Vector size fixed into the vector table. Checked against
            the provider on start().
        fts_enabled: Maintain the FTS5 keyword-search table.
        vector_enabled: Try to use sqlite-vec for vector search.
        embedding_cache: Reuse stored vectors for identical chunk text.
        cache_max_entries: Prune the embedding cache beyond this many rows.
        watch_enabled: start() begins watching the workspace.
        watch_debounce_ms: Quiet period before a watcher-triggered sync.
    """

    def __init__(
        self,
        workspace_dir: Path | str,
        provider: EmbeddingProvider,
        *,
        db_path: Path | str | None = None,
        chunk_config: ChunkConfig | None = None,
        dimensions: int = 768,
        fts_enabled: bool = True,
        vector_enabled: bool = True,
        embedding_cache: bool = True,
        cache_max_entries: int | None = 10_000,
        watch_enabled: bool = True,
        watch_debounce_ms: int = 5_000,
    ) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.workspace_dir = Path(workspace_dir)
        self.provider = provider
        self.db_path = Path(db_path) if db_path is not None else self.workspace_dir / DEFAULT_DB_PATH
        self.chunk_config = chunk_config or ChunkConfig()
        self.dimensions = dimensions
        self.watch_enabled = watch_enabled
        self.watch_debounce_ms = watch_debounce_ms

        self._lock = threading.RLock()
        self._started = False
        self._closed = False
        self._watcher: DebouncedWatcher | None = None

        self._db = Database(self.db_path, load_vec=vector_enabled)
        self._conn = self._db.connect()
        status = initialize(self._conn, fts_enabled=fts_enabled)

        vec_enabled = vector_enabled and self._db.vec_available
        rebuilt_vec = self._prepare_vec_table() if vec_enabled else False

        self._repo = Repository(
            self._conn, fts_enabled=status.fts_available, vec_enabled=vec_enabled
        )
        self._needs_rebuild = rebuilt_vec and self._repo.count_chunks() > 0
        self._cache = EmbeddingCache(
            self._repo,
            provider,
            enabled=embedding_cache,
            max_entries=cache_max_entries,
            dims=dimensions if vec_enabled else None,
        )

    @classmethod
    def from_config(
        cls,
        workspace_dir: Path | str,
        config: MemIndexConfig,
        provider: EmbeddingProvider | None = None,
    ) -> MemoryIndexManager:
        """Build a manager from a loaded MemIndexConfig.

        Raises:
            ConfigError: If the configured provider is unknown or unusable.
        """
        workspace = Path(workspace_dir)
        return cls(
            workspace,
            provider or create_embedding_provider(config.embedding),
            db_path=config.db_path_for(workspace),
            chunk_config=ChunkConfig(
                tokens=config.chunking.tokens, overlap=config.chunking.overlap
            ),
            dimensions=config.embedding.dimensions,
            fts_enabled=config.index.fts,
            vector_enabled=config.index.vector,
            embedding_cache=config.index.embedding_cache,
            cache_max_entries=config.index.cache_max_entries,
            watch_enabled=config.watch.enabled,
            watch_debounce_ms=config.watch.debounce_ms,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def vector_available(self) -> bool:
        return self._repo.vec_enabled

    @property
    def fts_available(self) -> bool:
        return self._repo.fts_enabled

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    @property
    def index_meta(self) -> IndexMeta | None:
        """The IndexMeta currently stored in the database (None when closed)."""
        if self._closed:
            return None
        return load_index_meta(self._conn)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        progress: ProgressCallback | None = None,
        *,
        force_reindex: bool = False,
    ) -> SyncReport | None:
        """Validate dimensions, bring the index up to date, then start watching.

        A stored IndexMeta that differs from the current configuration
        (provider, model, chunking, vector dims) triggers a full reindex
        instead of an incremental sync, as does *force_reindex*. Calling
        start() twice is a no-op and returns None.

        Raises:
            ManagerClosedError: If the manager was stopped.
            EmbeddingDimensionError: Provider dims differ from ``dimensions``.
        """
        with self._lock:
            self._check_open()
            if self._started:
                return None

            self._validate_dimensions()
            current = self._current_meta()
            stored = load_index_meta(self._conn)
            if force_reindex:
                report = self.reindex(progress)
            elif self._needs_rebuild or (stored is not None and stored != current):
                logger.info(
                    "Index configuration changed (%s -> %s); rebuilding",
                    stored,
                    current,
                )
                report = self.reindex(progress)
            else:
                report = self.sync(progress)
            save_index_meta(self._conn, current)
            self._needs_rebuild = False
            self._started = True

        if self.watch_enabled:
            self.enable_watch()
        return report

    def stop(self) -> None:
        """Stop watching and close the store. Safe to call more than once.

        An in-flight sync is not interrupted; the store closes once it ends.
        """
        if self._closed:
            return
        self._closed = True
        self.disable_watch()
        with self._lock:
            self._started = False
            self._conn.close()
        logger.debug("Index manager stopped for %s", self.workspace_dir)

    def __enter__(self) -> MemoryIndexManager:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def sync(self, progress: ProgressCallback | None = None) -> SyncReport:
        """Index new and changed files, then drop rows for removed files.

        Change detection compares content hashes only. A file that cannot be
        read is skipped with a warning and its existing rows are kept; a file
        that disappears mid-pass is treated as removed.

        Raises:
            ManagerClosedError: If the manager was stopped.
            EmbeddingProviderError: The provider failed; the pass is aborted.
        """
        with self._lock:
            self._check_open()
            report = SyncReport()
            paths = list_memory_files(self.workspace_dir)
            total = len(paths)
            active: set[str] = set()

            for completed, abs_path in enumerate(paths, start=1):
                label = self._rel_path(abs_path)
                try:
                    entry = build_file_entry(abs_path, self.workspace_dir)
                except FileNotFoundError:
                    logger.warning("File disappeared during sync: %s", label)
                except OSError as exc:
                    logger.warning("Skipping unreadable file %s: %s", label, exc)
                    active.add(label)
                    report.failed += 1
                else:
                    active.add(entry.path)
                    if self._repo.get_file_hash(entry.path) == entry.hash:
                        report.skipped += 1
                    elif self.index_file(entry) is None:
                        report.failed += 1
                    else:
                        report.indexed += 1
                _notify(progress, completed, total, label)

            for stale in sorted(set(self._repo.list_file_paths()) - active):
                logger.info("Removing %s from index", stale)
                self._repo.delete_file(stale)
                report.removed += 1

            logger.debug(
                "Sync done: %d indexed, %d unchanged, %d removed, %d failed",
                report.indexed,
                report.skipped,
                report.removed,
                report.failed,
            )
            return report

    def index_file(self, entry: FileEntry) -> int | None:
        """(Re)index one file atomically. Returns the chunk count.

        Returns None, leaving the stored rows untouched, when the file can no
        longer be read.

        Raises:
            ManagerClosedError: If the manager was stopped.
            EmbeddingProviderError: The provider failed.
            EmbeddingDimensionError: The provider returned vectors of the wrong size.
        """
        with self._lock:
            self._check_open()
            try:
                content = read_text(entry.abs_path)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", entry.path, exc)
                return None

            chunks = chunk_markdown(content, self.chunk_config)
            embeddings = self._embed_chunks(chunks)
            now = int(time.time() * 1000)

            with self._repo.transaction():
                self._repo.delete_chunks_by_path(entry.path)
                # Hash the text actually indexed; the file may have changed since discovery.
                self._repo.upsert_file(replace(entry, hash=hash_text(content)))
                for chunk, result in zip(chunks, embeddings):
                    record = ChunkRecord(
                        id=str(uuid.uuid4()),
                        path=entry.path,
                        source=MEMORY_SOURCE,
                        start_line=chunk.start_line,
                        end_line=chunk.end_line,
                        hash=chunk.hash,
                        model=self.provider.model,
                        text=chunk.text,
                        embedding=result.embedding,
                        updated_at=now,
                    )
                    rowid = self._repo.add_chunk(record)
                    self._add_vector(rowid, result, entry.path)

            logger.debug("Indexed %s (%d chunks)", entry.path, len(chunks))
            return len(chunks)

    def reindex(self, progress: ProgressCallback | None = None) -> SyncReport:
        """Delete every memory-sourced row and sync from an empty index."""
        with self._lock:
            self._check_open()
            self._repo.delete_source(MEMORY_SOURCE)
            return self.sync(progress)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self, query: str, top_k: int = 5, min_score: float | None = None
    ) -> list[SearchResult]:
        """Vector search. Never raises: failures and an empty index yield []."""
        if self._closed or top_k <= 0 or not self._repo.vec_enabled:
            return []
        try:
            if self._repo.count_embeddings() == 0:
                return []
            result = self.provider.embed(query)
            if result.dims != self.dimensions:
                logger.warning(
                    "Query embedding has %d dims, index has %d; skipping search",
                    result.dims,
                    self.dimensions,
                )
                return []
            hits = self._repo.search_vec(result.embedding, limit=top_k)
            return vector_results(hits, top_k=top_k, min_score=min_score)
        except Exception:
            logger.exception("Memory search failed for query %r", query)
            return []

    def search_keyword(self, query: str, top_k: int = 5) -> list[SearchResult]:
        """BM25 full-text search. Never raises: failures yield []."""
        if self._closed or top_k <= 0 or not self._repo.fts_enabled:
            return []
        try:
            return keyword_results(self._repo.search_fts(query, limit=top_k), top_k=top_k)
        except Exception:
            logger.exception("Keyword search failed for query %r", query)
            return []

    def get_stats(self) -> IndexStats:
        """File/chunk counts and total size; all zero once the store is closed."""
        if self._closed:
            return IndexStats()
        try:
            return self._repo.stats(MEMORY_SOURCE)
        except sqlite3.Error:
            return IndexStats()

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def enable_watch(self) -> None:
        """Start the debounced watcher (no-op if already watching)."""
        self._check_open()
        if self.is_watching:
            return
        self._watcher = DebouncedWatcher(
            self.workspace_dir,
            self._sync_from_watcher,
            debounce_seconds=self.watch_debounce_ms / 1000,
        )
        self._watcher.start()

    def disable_watch(self) -> None:
        """Stop watching and drop any pending debounced sync."""
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def _sync_from_watcher(self) -> None:
        if self._closed:
            return
        try:
            self.sync()
        except ManagerClosedError:
            logger.debug("Manager stopped before debounced sync ran")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise ManagerClosedError(f"Index manager for {self.workspace_dir} is stopped")

    def _rel_path(self, abs_path: Path) -> str:
        return normalize_rel_path(os.path.relpath(abs_path, self.workspace_dir))

    def _prepare_vec_table(self) -> bool:
        """Create the vector table; recreate it if its dims differ. Returns True if (re)created."""
        existing = vec_table_dims(self._conn)
        if existing == self.dimensions:
            return False
        if existing is not None:
            logger.warning(
                "Vector table has %d dims, configured %d; recreating it",
                existing,
                self.dimensions,
            )
            drop_vec_table(self._conn)
        ensure_vec_table(self._conn, self.dimensions)
        return True

    def _current_meta(self) -> IndexMeta:
        return IndexMeta(
            model=self.provider.model,
            provider=self.provider.name,
            chunk_tokens=self.chunk_config.tokens,
            chunk_overlap=self.chunk_config.overlap,
            provider_key=getattr(self.provider, "provider_key", None),
            vector_dims=self.dimensions if self._repo.vec_enabled else None,
        )

    def _validate_dimensions(self) -> None:
        if not self._repo.vec_enabled:
            return
        actual = getattr(self.provider, "dimensions", None)
        if actual is None:
            actual = self._cache.embed_texts([_DIMENSION_PROBE])[0].dims
        if actual != self.dimensions:
            raise EmbeddingDimensionError(self.dimensions, actual, self.provider.model)

    def _embed_chunks(self, chunks: list[MemoryChunk]) -> list[EmbeddingResult]:
        if not chunks:
            return []
        results = self._cache.embed_texts([c.text for c in chunks])
        if len(results) != len(chunks):
            raise EmbeddingProviderError(
                f"Expected {len(chunks)} embeddings, got {len(results)}"
            )
        if self._repo.vec_enabled:
            for result in results:
                if result.dims != self.dimensions:
                    raise EmbeddingDimensionError(
                        self.dimensions, result.dims, self.provider.model
                    )
        return results

    def _add_vector(self, rowid: int, result: EmbeddingResult, path: str) -> None:
        if not self._repo.vec_enabled:
            return
        try:
            self._repo.add_embedding(rowid, result.embedding)
        except sqlite3.Error as exc:
            logger.warning("Vector insert failed for %s (rowid %d): %s", path, rowid, exc)


def _notify(
    progress: ProgressCallback | None, completed: int, total: int, label: str
) -> None:
    if progress is not None:
        progress(ProgressUpdate(completed=completed, total=total, label=label))
