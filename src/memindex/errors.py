"""Exception hierarchy for memindex."""

from __future__ import annotations


class MemIndexError(Exception):
    """Base class for all memindex errors."""


class ConfigError(MemIndexError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class EmbeddingProviderError(MemIndexError):
    """Raised when the embedding provider fails (transport, auth, bad response)."""


class EmbeddingDimensionError(MemIndexError):
    """Raised when provider vectors do not match the configured dimensionality."""

    def __init__(self, expected: int, actual: int, model: str = "") -> None:
        self.expected = expected
        self.actual = actual
        self.model = model
        where = f" from '{model}'" if model else ""
        super().__init__(
            f"Embedding dimension mismatch{where}: configured {expected}, "
            f"provider returned {actual}. Set embedding.dimensions: {actual} "
            "in memindex.yaml (a full reindex will follow)."
        )


class ManagerClosedError(MemIndexError):
    """Raised when an operation is attempted on a stopped index manager."""
