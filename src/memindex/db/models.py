"""Domain models for the memindex database layer."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

MEMORY_SOURCE = "memory"


@dataclass(frozen=True)
class FileEntry:
    """Snapshot of one tracked source file, rebuilt on every sync pass."""

    path: str  # workspace-relative, forward slashes
    abs_path: str
    mtime_ms: float
    size: int
    hash: str


@dataclass(frozen=True)
class MemoryChunk:
    """A line-aligned slice of a file produced by the chunker (1-based lines)."""

    start_line: int
    end_line: int
    text: str
    hash: str


@dataclass
class ChunkRecord:
    id: str
    path: str
    start_line: int
    end_line: int
    hash: str
    model: str
    text: str
    embedding: list[float] = field(default_factory=list)
    updated_at: int = 0
    source: str = MEMORY_SOURCE
    rowid: int | None = None  # set after insert; used as the vec table key

    @property
    def embedding_json(self) -> str:
        return json.dumps(self.embedding)


@dataclass(frozen=True)
class EmbeddingResult:
    embedding: list[float]
    dims: int
    model: str


@dataclass
class IndexMeta:
    """Configuration currently backing the index (stored in the meta table).

    Attributes:
        model: Embedding model name.
        provider: Provider name (``ollama``, ``openai``, ...).
        chunk_tokens: Chunk size in approximate tokens.
        chunk_overlap: Overlap between chunks in approximate tokens.
        provider_key: Optional provider discriminator (e.g. the api base URL).
        vector_dims: Dimensionality of the vector table, if one exists.
    """

    model: str
    provider: str
    chunk_tokens: int
    chunk_overlap: int
    provider_key: str | None = None
    vector_dims: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexMeta:
        return cls(
            model=str(data["model"]),
            provider=str(data["provider"]),
            chunk_tokens=int(data["chunk_tokens"]),
            chunk_overlap=int(data["chunk_overlap"]),
            provider_key=data.get("provider_key"),
            vector_dims=(
                int(data["vector_dims"]) if data.get("vector_dims") is not None else None
            ),
        )


@dataclass(frozen=True)
class SearchResult:
    """A ranked search hit. ``score`` is always in (0, 1]."""

    path: str
    start_line: int
    end_line: int
    score: float
    snippet: str
    source: str = MEMORY_SOURCE
    id: str = ""


@dataclass(frozen=True)
class IndexStats:
    file_count: int = 0
    chunk_count: int = 0
    total_size: int = 0


@dataclass(frozen=True)
class ProgressUpdate:
    completed: int
    total: int
    label: str | None = None
