"""MemoryService: config-driven facade over one MemoryIndexManager.

Used by the CLI and by host applications that want "search my notes" and
"remember this" without wiring the manager themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from memindex.config import MemIndexConfig, load_config
from memindex.db.models import IndexStats, SearchResult
from memindex.errors import ManagerClosedError
from memindex.index.manager import MemoryIndexManager, ProgressCallback, SyncReport
from memindex.ingest.discovery import MEMORY_DIR
from memindex.ingest.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)


class MemoryService:
    """Owns the index manager for *workspace_dir* between start() and stop().

    Args:
        workspace_dir: Workspace root.
        config: Loaded configuration; read from the workspace when omitted.
        provider: Embedding provider override (tests, custom backends).
    """

    def __init__(
        self,
        workspace_dir: Path | str,
        config: MemIndexConfig | None = None,
        provider: EmbeddingProvider | None = None,
    ) -> None:
        self.workspace_dir = Path(workspace_dir)
        self.config = config if config is not None else load_config(self.workspace_dir)
        self._provider = provider
        self.manager: MemoryIndexManager | None = None

    @property
    def is_started(self) -> bool:
        return self.manager is not None

    def start(
        self,
        progress: ProgressCallback | None = None,
        *,
        force_reindex: bool = False,
    ) -> SyncReport | None:
        """Open the index and bring it up to date.

        Returns the report of the initial sync (or reindex), or None when the
        service was already started.
        """
        if self.manager is not None:
            return None
        manager = MemoryIndexManager.from_config(
            self.workspace_dir, self.config, provider=self._provider
        )
        try:
            report = manager.start(progress, force_reindex=force_reindex)
        except Exception:
            manager.stop()
            raise
        self.manager = manager
        return report

    def stop(self) -> None:
        if self.manager is not None:
            self.manager.stop()
            self.manager = None

    def __enter__(self) -> MemoryService:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def search_memories(
        self, query: str, max_results: int | None = None
    ) -> list[SearchResult]:
        """Vector search filtered by the configured min_score. [] when not started."""
        if self.manager is None or not query.strip():
            return []
        if max_results is None:
            max_results = self.config.search.max_results
        return self.manager.search(
            query,
            top_k=max_results,
            min_score=self.config.search.min_score,
        )

    def save_memory(
        self,
        content: str,
        title: str | None = None,
        tags: list[str] | None = None,
        *,
        now: datetime | None = None,
    ) -> Path:
        """Append a Markdown entry to today's memory/YYYY-MM-DD.md file.

        The index picks the file up on the next sync (or via the watcher).

        Returns:
            Path of the file written.

        Raises:
            ValueError: If *content* is empty.
        """
        if not content.strip():
            raise ValueError("Memory content is empty")
        now = now or datetime.now()

        memory_dir = self.workspace_dir / MEMORY_DIR
        memory_dir.mkdir(parents=True, exist_ok=True)
        path = memory_dir / f"{now:%Y-%m-%d}.md"

        lines = [f"## {title or now.strftime('%H:%M')}"]
        if tags:
            lines.append("Tags: " + " ".join(f"#{t.lstrip('#')}" for t in tags))
        lines += ["", content.strip(), ""]
        entry = "\n".join(lines)

        prefix = ""
        if path.exists() and path.stat().st_size > 0:
            prefix = "\n"
        with path.open("a", encoding="utf-8") as fh:
            fh.write(prefix + entry)

        logger.info("Saved memory to %s", path)
        return path

    def get_stats(self) -> IndexStats:
        if self.manager is None:
            return IndexStats()
        return self.manager.get_stats()

    def sync(self, progress: ProgressCallback | None = None) -> SyncReport:
        return self._require_manager().sync(progress)

    def reindex(self, progress: ProgressCallback | None = None) -> SyncReport:
        return self._require_manager().reindex(progress)

    def _require_manager(self) -> MemoryIndexManager:
        if self.manager is None:
            raise ManagerClosedError("Memory service is not started; call start() first")
        return self.manager
