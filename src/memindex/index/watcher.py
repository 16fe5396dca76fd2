"""Debounced filesystem watcher for memory sources (watchdog).

The watchdog observer thread only pushes change notifications into a bounded
queue. One debounce thread drains the queue and, once no new notification
has arrived for ``debounce_seconds``, invokes the callback exactly once, so
a burst of edits costs a single sync.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from memindex.ingest.discovery import (
    MEMORY_DIR,
    MEMORY_EXTENSION,
    is_memory_path,
    normalize_rel_path,
)

logger = logging.getLogger(__name__)

_STOP = object()
_WATCHED_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class _MemoryEventHandler(FileSystemEventHandler):
    """Forwards add/change/remove events for memory sources to the watcher."""

    def __init__(self, watcher: DebouncedWatcher) -> None:
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _WATCHED_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        for raw in paths:
            if raw and self.watcher.is_relevant(os.fsdecode(raw), event.is_directory):
                self.watcher.notify(os.fsdecode(raw))
                return


class DebouncedWatcher:
    """Watch a workspace and call *on_change* after each quiet period.

    Args:
        workspace_dir: Workspace root; the root note files and memory/ subtree
            below it are tracked.
        on_change: Called from the debounce thread, never concurrently with
            itself.
        debounce_seconds: Quiet period before *on_change* fires.
        max_pending: Queue bound; overflow is dropped because a run is
            already scheduled.
    """

    def __init__(
        self,
        workspace_dir: Path | str,
        on_change: Callable[[], None],
        *,
        debounce_seconds: float = 5.0,
        max_pending: int = 1024,
    ) -> None:
        self.workspace_dir = Path(workspace_dir)
        self.on_change = on_change
        self.debounce_seconds = debounce_seconds
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max_pending)
        self._stopping = threading.Event()
        self._observer: Observer | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the debounce thread and, if the workspace exists, the observer."""
        if self.is_running:
            logger.warning("Watcher already running for %s", self.workspace_dir)
            return

        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._debounce_loop, name="memindex-debounce", daemon=True
        )
        self._thread.start()

        if not self.workspace_dir.is_dir():
            logger.warning("Workspace does not exist, not watching: %s", self.workspace_dir)
            return

        # Recursive so that a memory/ directory created later is picked up too.
        observer = Observer()
        observer.schedule(
            _MemoryEventHandler(self), str(self.workspace_dir), recursive=True
        )
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(
            "Watching %s (debounce %.1fs)", self.workspace_dir, self.debounce_seconds
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop watching and discard any pending (not yet fired) change."""
        self._stopping.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None
        if self._thread is not None:
            try:
                self._queue.put_nowait(_STOP)
            except queue.Full:
                pass  # the loop checks _stopping after every item
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
            self._thread = None
        self._drain()

    def is_relevant(self, abs_path: str, is_directory: bool = False) -> bool:
        """Return True if *abs_path* is a root note file, memory/ itself or inside it."""
        # FSEvents reports resolved paths (/private/var/... on macOS).
        for root in (self.workspace_dir, self.workspace_dir.resolve()):
            try:
                rel = os.path.relpath(abs_path, root)
            except ValueError:
                continue  # different drive on Windows
            if rel == os.pardir or rel.startswith(os.pardir + os.sep):
                continue
            rel = normalize_rel_path(rel)
            if is_directory and rel == MEMORY_DIR:
                return True
            if is_memory_path(rel):
                return is_directory or rel.endswith(MEMORY_EXTENSION)
        return False

    def notify(self, path: str | None = None) -> None:
        """Record a change; resets the debounce window."""
        if self._stopping.is_set():
            return
        logger.debug("Change detected: %s", path)
        try:
            self._queue.put_nowait(path)
        except queue.Full:
            pass  # a run is already pending; more notifications change nothing

    def _debounce_loop(self) -> None:
        while not self._stopping.is_set():
            item = self._queue.get()
            if item is _STOP or self._stopping.is_set():
                return
            # Keep absorbing notifications until the window stays quiet.
            while True:
                try:
                    item = self._queue.get(timeout=self.debounce_seconds)
                except queue.Empty:
                    break
                if item is _STOP or self._stopping.is_set():
                    return
            try:
                self.on_change()
            except Exception:
                logger.exception("Debounced sync failed")

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return
