"""Embedding providers (LiteLLM) and the per-index embedding cache.

Providers:
  ollama  → local Ollama server, default model nomic-embed-text (768 dims)
  openai  → OpenAI API, default model text-embedding-3-small (1536 dims)
  auto    → ollama if it answers a probe, otherwise openai when a key is set

The index manager only depends on the EmbeddingProvider protocol, so tests
and callers can wire in any object with ``embed`` / ``embed_batch``.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import litellm

from memindex.db.models import EmbeddingResult
from memindex.errors import ConfigError, EmbeddingProviderError
from memindex.ingest.discovery import hash_text

if TYPE_CHECKING:
    from memindex.config import EmbeddingCfg
    from memindex.db.repository import Repository

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

PROVIDER_TYPES: frozenset[str] = frozenset({"ollama", "openai", "auto"})

DEFAULT_MODELS: dict[str, str] = {
    "ollama": "nomic-embed-text",
    "openai": "text-embedding-3-small",
}
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"

# Requests per call: OpenAI accepts up to 2048 inputs, Ollama embeds one by one.
_BATCH_SIZES: dict[str, int] = {"openai": 2048, "ollama": 16}

_API_KEY_ENV: dict[str, str] = {"openai": "OPENAI_API_KEY"}


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into fixed-dimension vectors."""

    name: str
    model: str
    provider_key: str | None

    def embed(self, text: str) -> EmbeddingResult: ...

    def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]: ...


class LiteLLMEmbeddingProvider:
    """Embedding provider backed by ``litellm.embedding()``.

    Args:
        name: Provider name as understood by LiteLLM (``ollama``, ``openai``).
        model: Model name without the provider prefix.
        api_base: Optional base URL (required for non-default Ollama hosts).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        name: str,
        model: str,
        *,
        api_base: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.name = name
        self.model = model
        self.api_base = api_base
        self.timeout = timeout
        self.batch_size = _BATCH_SIZES.get(name, 64)
        # Distinguishes two servers running the same model in the cache key.
        self.provider_key = api_base

    @property
    def litellm_model(self) -> str:
        return f"{self.name}/{self.model}"

    def embed(self, text: str) -> EmbeddingResult:
        return self._request([text])[0]

    def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        results: list[EmbeddingResult] = []
        for start in range(0, len(texts), self.batch_size):
            results.extend(self._request(texts[start:start + self.batch_size]))
        return results

    def _request(self, texts: list[str]) -> list[EmbeddingResult]:
        kwargs: dict[str, object] = {"timeout": self.timeout}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        try:
            response = litellm.embedding(model=self.litellm_model, input=texts, **kwargs)
        except Exception as exc:
            raise EmbeddingProviderError(
                f"{self.name} embedding failed for model '{self.model}': {exc}"
            ) from exc

        data = list(response.data)
        if len(data) != len(texts):
            raise EmbeddingProviderError(
                f"{self.name} returned {len(data)} embeddings for {len(texts)} inputs"
            )
        return [
            EmbeddingResult(
                embedding=list(item["embedding"]),
                dims=len(item["embedding"]),
                model=self.model,
            )
            for item in data
        ]


def create_embedding_provider(cfg: EmbeddingCfg) -> LiteLLMEmbeddingProvider:
    """Build the provider named by *cfg*. Unknown types fail fast.

    Raises:
        ConfigError: Unknown provider type, or openai without an API key.
    """
    provider = cfg.provider.lower()
    if provider not in PROVIDER_TYPES:
        raise ConfigError(
            f"Unknown embedding provider '{cfg.provider}'. "
            f"Use one of: {', '.join(sorted(PROVIDER_TYPES))}."
        )

    if provider == "ollama":
        return _ollama(cfg)
    if provider == "openai":
        _check_api_key("openai")
        return _openai(cfg)

    # auto: probe the local server, fall back to OpenAI.
    ollama = _ollama(cfg)
    try:
        ollama.embed("ping")
        return ollama
    except EmbeddingProviderError as exc:
        logger.info("Ollama not reachable (%s); trying OpenAI", exc)
    if os.environ.get(_API_KEY_ENV["openai"]):
        return _openai(cfg)
    logger.warning("No embedding backend reachable; keeping Ollama provider")
    return ollama


def _ollama(cfg: EmbeddingCfg) -> LiteLLMEmbeddingProvider:
    return LiteLLMEmbeddingProvider(
        "ollama",
        cfg.model or DEFAULT_MODELS["ollama"],
        api_base=cfg.base_url or DEFAULT_OLLAMA_BASE_URL,
        timeout=cfg.timeout,
    )


def _openai(cfg: EmbeddingCfg) -> LiteLLMEmbeddingProvider:
    # In auto mode cfg.model may name an Ollama model; use the OpenAI default.
    model = cfg.model if cfg.provider == "openai" and cfg.model else DEFAULT_MODELS["openai"]
    base_url = cfg.base_url if cfg.provider == "openai" else None
    return LiteLLMEmbeddingProvider("openai", model, api_base=base_url, timeout=cfg.timeout)


def _check_api_key(provider: str) -> None:
    env_var = _API_KEY_ENV.get(provider)
    if env_var and not os.environ.get(env_var):
        raise ConfigError(
            f"No API key found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class EmbeddingCache:
    """Memoizes provider output keyed by (provider, model, provider_key, text hash).

    Owned by one index manager and backed by its ``embedding_cache`` table.
    When disabled every call goes straight to the provider. With *dims* set,
    cached vectors of another size count as misses.
    """

    def __init__(
        self,
        repo: Repository,
        provider: EmbeddingProvider,
        *,
        enabled: bool = True,
        max_entries: int | None = None,
        dims: int | None = None,
    ) -> None:
        self._repo = repo
        self._provider = provider
        self.enabled = enabled
        self.max_entries = max_entries
        self.dims = dims
        self.hits = 0
        self.misses = 0

    def embed_texts(self, texts: list[str]) -> list[EmbeddingResult]:
        """Return one embedding per text, calling the provider only for misses."""
        if not texts:
            return []
        if not self.enabled:
            return self._provider.embed_batch(texts)

        provider_key = getattr(self._provider, "provider_key", None)
        hashes = [hash_text(t) for t in texts]
        found: dict[str, EmbeddingResult] = {}
        missing: dict[str, str] = {}  # hash -> text, first occurrence wins

        for text, text_hash in zip(texts, hashes):
            if text_hash in found or text_hash in missing:
                continue
            vector = self._repo.get_cached_embedding(
                self._provider.name, self._provider.model, provider_key, text_hash
            )
            if vector is None or (self.dims is not None and len(vector) != self.dims):
                missing[text_hash] = text
            else:
                found[text_hash] = EmbeddingResult(
                    embedding=vector, dims=len(vector), model=self._provider.model
                )
        self.hits += len(found)
        self.misses += len(missing)

        if missing:
            results = self._provider.embed_batch(list(missing.values()))
            if len(results) != len(missing):
                raise EmbeddingProviderError(
                    f"Provider '{self._provider.name}' returned {len(results)} "
                    f"embeddings for {len(missing)} texts"
                )
            for text_hash, result in zip(missing, results):
                found[text_hash] = result
                self._repo.put_cached_embedding(
                    self._provider.name,
                    self._provider.model,
                    provider_key,
                    text_hash,
                    result.embedding,
                )
            if self.max_entries is not None:
                self._repo.prune_embedding_cache(self.max_entries)

        return [found[h] for h in hashes]
