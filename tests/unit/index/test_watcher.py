"""Tests for the debounced workspace watcher."""

from __future__ import annotations

import shutil
import threading
import time

import pytest
from watchdog.events import FileCreatedEvent, FileModifiedEvent

from memindex.index.watcher import DebouncedWatcher, _MemoryEventHandler


class _Counter:
    def __init__(self):
        self.count = 0
        self.event = threading.Event()

    def __call__(self):
        self.count += 1
        self.event.set()


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def counter():
    return _Counter()


@pytest.fixture
def watcher(workspace, counter):
    w = DebouncedWatcher(workspace, counter, debounce_seconds=0.2)
    yield w
    w.stop()


# ------------------------------------------------------------------
# Debounce
# ------------------------------------------------------------------

def test_burst_coalesces_into_one_call(watcher, counter):
    watcher.start()
    for i in range(10):
        watcher.notify(f"memory/{i}.md")
        time.sleep(0.01)
    assert counter.event.wait(3.0)
    time.sleep(0.4)
    assert counter.count == 1


def test_separate_bursts_fire_separately(watcher, counter):
    watcher.start()
    watcher.notify()
    assert _wait_for(lambda: counter.count == 1)
    watcher.notify()
    assert _wait_for(lambda: counter.count == 2)


def test_stop_discards_pending_change(workspace, counter):
    w = DebouncedWatcher(workspace, counter, debounce_seconds=0.5)
    w.start()
    w.notify()
    w.stop()
    time.sleep(0.7)
    assert counter.count == 0
    assert not w.is_running


def test_notify_after_stop_is_ignored(workspace, counter):
    w = DebouncedWatcher(workspace, counter, debounce_seconds=0.05)
    w.start()
    w.stop()
    w.notify()
    time.sleep(0.2)
    assert counter.count == 0


def test_full_queue_drops_notifications(workspace, counter):
    w = DebouncedWatcher(workspace, counter, debounce_seconds=0.2, max_pending=2)
    for _ in range(10):
        w.notify()  # no consumer yet; overflow must not raise
    w.start()
    assert _wait_for(lambda: counter.count == 1)
    w.stop()


def test_callback_error_is_logged_and_loop_survives(workspace, caplog):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("sync exploded")

    w = DebouncedWatcher(workspace, flaky, debounce_seconds=0.05)
    w.start()
    w.notify()
    assert _wait_for(lambda: len(calls) == 1)
    w.notify()
    assert _wait_for(lambda: len(calls) == 2)
    w.stop()
    assert "Debounced sync failed" in caplog.text


def test_start_twice_is_noop(watcher):
    watcher.start()
    thread = watcher._thread
    watcher.start()
    assert watcher._thread is thread


# ------------------------------------------------------------------
# Event filtering
# ------------------------------------------------------------------

def test_is_relevant(watcher, workspace):
    assert watcher.is_relevant(str(workspace / "MEMORY.md"))
    assert watcher.is_relevant(str(workspace / "memory.md"))
    assert watcher.is_relevant(str(workspace / "memory" / "a" / "b.md"))
    assert watcher.is_relevant(str(workspace / "memory" / "sub"), is_directory=True)
    assert watcher.is_relevant(str(workspace / "memory"), is_directory=True)
    assert not watcher.is_relevant(str(workspace / "notes"), is_directory=True)
    assert not watcher.is_relevant(str(workspace / "memory" / "a.txt"))
    assert not watcher.is_relevant(str(workspace / "README.md"))
    assert not watcher.is_relevant(str(workspace / ".memory" / "index.sqlite"))
    assert not watcher.is_relevant(str(workspace.parent / "MEMORY.md"))


def test_handler_forwards_relevant_events(watcher, workspace):
    seen = []
    watcher.notify = seen.append
    handler = _MemoryEventHandler(watcher)

    handler.dispatch(FileCreatedEvent(str(workspace / "memory" / "new.md")))
    handler.dispatch(FileModifiedEvent(str(workspace / ".memory" / "index.sqlite-wal")))

    assert seen == [str(workspace / "memory" / "new.md")]


def test_real_file_change_triggers_callback(watcher, workspace, counter):
    watcher.start()
    (workspace / "memory" / "note.md").write_text("hello", encoding="utf-8")
    assert counter.event.wait(5.0)


def test_moving_memory_dir_out_triggers_callback(watcher, workspace, counter, tmp_path):
    (workspace / "memory" / "note.md").write_text("hello", encoding="utf-8")
    watcher.start()

    shutil.move(str(workspace / "memory"), str(tmp_path / "archived"))

    assert counter.event.wait(5.0)
