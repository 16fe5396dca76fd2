"""Turn raw vector / full-text hits into ranked SearchResults.

Vector hits:   score = 1 / (1 + distance)   (L2 distance, so score ∈ (0, 1])
Keyword hits:  score = 1 / (1 + rank)       (0-based BM25 rank)

Both transforms are monotonic, so ordering by ascending distance or rank
gives results sorted by non-increasing score.
"""

from __future__ import annotations

from memindex.db.models import ChunkRecord, SearchResult

SNIPPET_MAX_CHARS = 700


def distance_to_score(distance: float) -> float:
    """Map a non-negative distance to a similarity in (0, 1]."""
    return 1.0 / (1.0 + max(0.0, distance))


def rank_to_score(rank: int) -> float:
    return 1.0 / (1.0 + rank)


def make_snippet(text: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    text = text.strip()
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "…"


def _to_result(chunk: ChunkRecord, score: float) -> SearchResult:
    return SearchResult(
        path=chunk.path,
        start_line=chunk.start_line,
        end_line=chunk.end_line,
        score=score,
        snippet=make_snippet(chunk.text),
        source=chunk.source,
        id=chunk.id,
    )


def vector_results(
    hits: list[tuple[ChunkRecord, float]],
    *,
    top_k: int,
    min_score: float | None = None,
) -> list[SearchResult]:
    """Convert (chunk, distance) pairs into results, best-first.

    Args:
        hits: Output of Repository.search_vec.
        top_k: Maximum number of results.
        min_score: Drop results scoring below this threshold.
    """
    ordered = sorted(hits, key=lambda pair: pair[1])
    results = [_to_result(chunk, distance_to_score(dist)) for chunk, dist in ordered]
    if min_score is not None:
        results = [r for r in results if r.score >= min_score]
    return results[:top_k]


def keyword_results(
    hits: list[tuple[ChunkRecord, float]],
    *,
    top_k: int,
) -> list[SearchResult]:
    """Convert BM25-ordered (chunk, bm25) pairs into rank-scored results."""
    return [
        _to_result(chunk, rank_to_score(rank))
        for rank, (chunk, _bm25) in enumerate(hits[:top_k])
    ]
