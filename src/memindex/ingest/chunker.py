"""Line-aligned Markdown chunker with overlap.

Token counting uses a 4-chars-per-token approximation; no external
tokenizer dependency is required. Lines are never split: a line longer than
the whole budget becomes a chunk of its own.
"""

from __future__ import annotations

from dataclasses import dataclass

from memindex.db.models import MemoryChunk
from memindex.ingest.discovery import hash_text

CHARS_PER_TOKEN = 4
MIN_CHUNK_CHARS = 32


@dataclass(frozen=True)
class ChunkConfig:
    """Chunk size and overlap, both in approximate tokens."""

    tokens: int = 500
    overlap: int = 50

    def __post_init__(self) -> None:
        if self.tokens < 1:
            raise ValueError("tokens must be >= 1")
        if self.overlap < 0:
            raise ValueError("overlap must be >= 0")

    @property
    def max_chars(self) -> int:
        return max(MIN_CHUNK_CHARS, self.tokens * CHARS_PER_TOKEN)

    @property
    def overlap_chars(self) -> int:
        return max(0, self.overlap * CHARS_PER_TOKEN)


def estimate_tokens(text: str) -> int:
    """Approximate token count: 4 characters ≈ 1 token."""
    return max(1, len(text) // CHARS_PER_TOKEN)


def chunk_markdown(content: str, config: ChunkConfig | None = None) -> list[MemoryChunk]:
    """Split *content* into ordered, line-aligned chunks.

    Each line costs ``len(line) + 1`` characters. A chunk is flushed before a
    line that would push it past ``max_chars``; the trailing lines of the
    flushed chunk, up to ``overlap_chars``, seed the next one with their
    original line numbers. Empty input yields no chunks.
    """
    config = config or ChunkConfig()
    lines = content.split("\n")
    if len(lines) == 1 and lines[0] == "":
        return []

    max_chars = config.max_chars
    overlap_chars = config.overlap_chars

    chunks: list[MemoryChunk] = []
    current: list[tuple[int, str]] = []  # (line_no, line)
    current_chars = 0

    for index, line in enumerate(lines):
        line_no = index + 1
        line_len = len(line) + 1

        if line_len > max_chars and not current:
            chunks.append(_make_chunk([(line_no, line)]))
            continue

        if current_chars + line_len > max_chars and current:
            chunks.append(_make_chunk(current))
            current, current_chars = _carry_overlap(current, overlap_chars)

        current.append((line_no, line))
        current_chars += line_len

    if current:
        chunks.append(_make_chunk(current))

    return chunks


def _make_chunk(entries: list[tuple[int, str]]) -> MemoryChunk:
    text = "\n".join(line for _, line in entries)
    return MemoryChunk(
        start_line=entries[0][0],
        end_line=entries[-1][0],
        text=text,
        hash=hash_text(text),
    )


def _carry_overlap(
    entries: list[tuple[int, str]], overlap_chars: int
) -> tuple[list[tuple[int, str]], int]:
    """Return the trailing lines to keep after a flush, and their size."""
    if overlap_chars <= 0:
        return [], 0
    kept: list[tuple[int, str]] = []
    acc = 0
    for entry in reversed(entries):
        acc += len(entry[1]) + 1
        kept.append(entry)
        if acc >= overlap_chars:
            break
    kept.reverse()
    return kept, acc
