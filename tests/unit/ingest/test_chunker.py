"""Tests for the line-aligned Markdown chunker."""

from __future__ import annotations

import pytest

from memindex.ingest.chunker import ChunkConfig, chunk_markdown, estimate_tokens
from memindex.ingest.discovery import hash_text


def _lines(n: int) -> str:
    return "\n".join(f"line {i:02d}" for i in range(1, n + 1))


# ------------------------------------------------------------------
# ChunkConfig
# ------------------------------------------------------------------

def test_chunk_config_defaults():
    cfg = ChunkConfig()
    assert cfg.tokens == 500
    assert cfg.overlap == 50
    assert cfg.max_chars == 2000
    assert cfg.overlap_chars == 200


def test_max_chars_floor():
    assert ChunkConfig(tokens=1, overlap=0).max_chars == 32


@pytest.mark.parametrize("tokens,overlap", [(0, 0), (10, -1)])
def test_chunk_config_rejects_invalid(tokens, overlap):
    with pytest.raises(ValueError):
        ChunkConfig(tokens=tokens, overlap=overlap)


def test_estimate_tokens():
    assert estimate_tokens("abcd" * 10) == 10
    assert estimate_tokens("") == 1


# ------------------------------------------------------------------
# Edge cases
# ------------------------------------------------------------------

def test_empty_input_yields_no_chunks():
    assert chunk_markdown("") == []


def test_single_short_line():
    chunks = chunk_markdown("# A")
    assert len(chunks) == 1
    assert (chunks[0].start_line, chunks[0].end_line) == (1, 1)
    assert chunks[0].text == "# A"


def test_chunk_hash_covers_own_text():
    for chunk in chunk_markdown(_lines(40), ChunkConfig(tokens=10, overlap=3)):
        assert chunk.hash == hash_text(chunk.text)


def test_oversized_line_becomes_own_chunk():
    long_line = "x" * 100
    chunks = chunk_markdown(long_line, ChunkConfig(tokens=10, overlap=0))
    assert len(chunks) == 1
    assert chunks[0].text == long_line


def test_oversized_line_after_buffer_is_not_split():
    text = "short\n" + "x" * 100 + "\ntail"
    chunks = chunk_markdown(text, ChunkConfig(tokens=10, overlap=0))
    assert [(c.start_line, c.end_line) for c in chunks] == [(1, 1), (2, 2), (3, 3)]
    assert chunks[1].text == "x" * 100


# ------------------------------------------------------------------
# Flush and overlap
# ------------------------------------------------------------------

def test_flush_and_overlap_boundaries():
    """maxChars 80 / overlapChars 20 with 8-char lines: 10 lines, then 3 carried."""
    chunks = chunk_markdown(_lines(80), ChunkConfig(tokens=20, overlap=5))
    assert (chunks[0].start_line, chunks[0].end_line) == (1, 10)
    assert (chunks[1].start_line, chunks[1].end_line) == (8, 17)
    assert chunks[-1].end_line == 80


def test_consecutive_chunks_overlap():
    chunks = chunk_markdown(_lines(80), ChunkConfig(tokens=20, overlap=5))
    assert len(chunks) >= 2
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start_line <= prev.end_line


def test_no_overlap_when_zero():
    chunks = chunk_markdown(_lines(80), ChunkConfig(tokens=20, overlap=0))
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start_line == prev.end_line + 1


def test_chunks_cover_every_line():
    text = _lines(57)
    chunks = chunk_markdown(text, ChunkConfig(tokens=12, overlap=4))
    covered = set()
    for c in chunks:
        covered.update(range(c.start_line, c.end_line + 1))
    assert covered == set(range(1, 58))


def test_chunk_text_matches_line_range():
    lines = _lines(30).split("\n")
    for c in chunk_markdown("\n".join(lines), ChunkConfig(tokens=15, overlap=4)):
        assert c.text == "\n".join(lines[c.start_line - 1:c.end_line])


def test_deterministic():
    text = _lines(120)
    cfg = ChunkConfig(tokens=25, overlap=6)
    assert chunk_markdown(text, cfg) == chunk_markdown(text, cfg)
