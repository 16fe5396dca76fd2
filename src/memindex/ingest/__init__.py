"""memindex ingest pipeline — discovery, chunking, embeddings."""

from memindex.ingest.chunker import ChunkConfig, chunk_markdown
from memindex.ingest.discovery import (
    build_file_entry,
    hash_text,
    is_memory_path,
    list_memory_files,
    normalize_rel_path,
)
from memindex.ingest.embeddings import (
    EmbeddingCache,
    EmbeddingProvider,
    LiteLLMEmbeddingProvider,
    create_embedding_provider,
)

__all__ = [
    "ChunkConfig",
    "chunk_markdown",
    "build_file_entry",
    "hash_text",
    "is_memory_path",
    "list_memory_files",
    "normalize_rel_path",
    "EmbeddingCache",
    "EmbeddingProvider",
    "LiteLLMEmbeddingProvider",
    "create_embedding_provider",
]
