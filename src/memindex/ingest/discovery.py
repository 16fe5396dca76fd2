"""Memory source discovery, path normalization and change-detection entries.

A workspace contributes two kinds of memory sources:
  - a root note file, ``MEMORY.md`` or ``memory.md``
  - every ``*.md`` file below ``memory/`` (recursively)

Nothing else in the workspace is indexed.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path

from memindex.db.models import FileEntry

logger = logging.getLogger(__name__)

ROOT_NOTE_NAMES: tuple[str, ...] = ("MEMORY.md", "memory.md")
MEMORY_DIR = "memory"
MEMORY_EXTENSION = ".md"


def hash_text(text: str) -> str:
    """Return the SHA-256 hex digest of *text* (UTF-8 encoded)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def normalize_rel_path(value: str) -> str:
    """Normalize a workspace-relative path.

    Strips surrounding whitespace, then at most one leading ``/``, one
    leading ``./`` and one leading ``../`` (in that order), and converts
    backslashes to forward slashes. ``.../x`` is left untouched.
    """
    result = value.strip()
    for prefix in ("/", "./", "../"):
        if result.startswith(prefix):
            result = result[len(prefix):]
    return result.replace("\\", "/")


def is_memory_path(rel_path: str) -> bool:
    """Return True if *rel_path* names a root note or a file under memory/."""
    normalized = normalize_rel_path(rel_path)
    if not normalized:
        return False
    if normalized in ROOT_NOTE_NAMES:
        return True
    return normalized.startswith(f"{MEMORY_DIR}/")


def read_text(path: Path | str) -> str:
    """Read a source file as UTF-8; undecodable bytes become U+FFFD."""
    return Path(path).read_bytes().decode("utf-8", errors="replace")


def list_memory_files(workspace_dir: Path | str) -> list[Path]:
    """Return absolute paths of all memory source files under *workspace_dir*.

    Symlinked files under memory/ are skipped. The same underlying file
    reached through two names (case-insensitive filesystems) is listed once; when a file cannot be stat-ed it
    is kept rather than dropped. A missing workspace yields an empty list.
    """
    workspace = Path(workspace_dir)
    if not workspace.is_dir():
        return []

    result: list[Path] = []
    for name in ROOT_NOTE_NAMES:
        candidate = workspace / name
        if candidate.is_file():
            result.append(candidate)

    memory_dir = workspace / MEMORY_DIR
    if memory_dir.is_dir():
        result.extend(_walk_markdown(memory_dir))

    return _dedupe(result)


def _walk_markdown(root: Path) -> list[Path]:
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            if not filename.endswith(MEMORY_EXTENSION):
                continue
            full = Path(dirpath) / filename
            if full.is_file() and not full.is_symlink():
                found.append(full)
    return found


def _dedupe(paths: list[Path]) -> list[Path]:
    if len(paths) <= 1:
        return paths
    seen: set[object] = set()
    deduped: list[Path] = []
    for path in paths:
        key: object
        try:
            st = path.stat()
            key = (st.st_dev, st.st_ino)
        except OSError:
            key = str(path)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(path)
    return deduped


def build_file_entry(abs_path: Path | str, workspace_dir: Path | str) -> FileEntry:
    """Stat and hash *abs_path*. Raises OSError if the file cannot be read.

    The hash covers content only; mtime is informational and never used as a
    change signal.
    """
    path = Path(abs_path)
    st = path.stat()
    content = read_text(path)
    rel = os.path.relpath(path, Path(workspace_dir)).replace("\\", "/")
    return FileEntry(
        path=normalize_rel_path(rel),
        abs_path=str(path),
        mtime_ms=st.st_mtime_ns / 1_000_000,
        size=st.st_size,
        hash=hash_text(content),
    )
