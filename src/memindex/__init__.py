"""memindex — local semantic memory index over a workspace of Markdown notes."""

from memindex.errors import (
    ConfigError,
    EmbeddingDimensionError,
    EmbeddingProviderError,
    ManagerClosedError,
    MemIndexError,
)
from memindex.index.manager import MemoryIndexManager
from memindex.service import MemoryService

__all__ = [
    "ConfigError",
    "EmbeddingDimensionError",
    "EmbeddingProviderError",
    "ManagerClosedError",
    "MemIndexError",
    "MemoryIndexManager",
    "MemoryService",
]
