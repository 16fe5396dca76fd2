"""Index manager, search scoring and the debounced workspace watcher."""

from memindex.index.manager import MemoryIndexManager, SyncReport
from memindex.index.search import distance_to_score, rank_to_score
from memindex.index.watcher import DebouncedWatcher

__all__ = [
    "MemoryIndexManager",
    "SyncReport",
    "DebouncedWatcher",
    "distance_to_score",
    "rank_to_score",
]
