"""Embedding providers for similarity and hybrid search.

Two provider variants exist and the set is closed:

- ``HOSTED_API``: OpenAI embeddings over HTTPS (``AsyncOpenAI``)
- ``LOCAL_MODEL``: Model2Vec ``StaticModel`` loaded from the Hugging Face Hub
  and run on CPU

Provider names found in the embedding-config table are mapped to a
`ProviderKind` through an explicit table; there is no runtime registration.

Classes:
- EmbeddingProvider: Protocol every variant implements
- HostedApiProvider: Dense vectors from the OpenAI embeddings endpoint
- LocalModelProvider: Dense vectors and tokenizer-based sparse maps from Model2Vec
- ProviderRegistry: Lazily builds one provider per kind and closes them
"""

from __future__ import annotations

import asyncio
from collections import Counter
from enum import Enum
import hashlib
import re
from typing import Final, Protocol, cast, runtime_checkable

from fastmcp.utilities.logging import get_logger
from model2vec import StaticModel
import numpy as np
from openai import AsyncOpenAI, OpenAIError

from kdbx_mcp.exceptions import ProviderError

_logger = get_logger(__name__)

_WORD_PATTERN: Final[re.Pattern[str]] = re.compile(r"\w+")


class ProviderKind(Enum):
    """Closed set of embedding provider variants."""

    HOSTED_API = "hosted-api"
    LOCAL_MODEL = "local-model"


PROVIDER_NAMES: Final[dict[str, ProviderKind]] = {
    "openai": ProviderKind.HOSTED_API,
    "hosted-api": ProviderKind.HOSTED_API,
    "model2vec": ProviderKind.LOCAL_MODEL,
    "local-model": ProviderKind.LOCAL_MODEL,
}


def provider_kind(name: str) -> ProviderKind:
    """Map a configured provider name to its `ProviderKind`.

    Raises:
        ProviderError: If the name is not a known provider
    """
    kind = PROVIDER_NAMES.get(name.strip().lower())
    if kind is None:
        known = ", ".join(sorted(PROVIDER_NAMES))
        msg = f"Unknown provider: {name} (expected one of: {known})"
        raise ProviderError(msg)
    return kind


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Capability interface shared by all provider variants."""

    kind: ProviderKind

    async def dense_embed(self, text: str, model: str) -> list[float]:  # pragma: no cover
        ...

    async def sparse_embed(self, text: str, model: str) -> dict[int, float]:  # pragma: no cover
        ...

    async def preload(self, model: str) -> None:  # pragma: no cover
        ...

    def close(self) -> None:  # pragma: no cover
        ...


def stable_token_id(token: str) -> int:
    """Return a process-independent 32-bit id for a word token."""
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=4).digest()
    return int.from_bytes(digest, "big")


def hashed_term_counts(text: str) -> dict[int, float]:
    """Count lower-cased word tokens keyed by `stable_token_id`."""
    counts = Counter(stable_token_id(tok) for tok in _WORD_PATTERN.findall(text.lower()))
    return {token_id: float(n) for token_id, n in counts.items()}


class HostedApiProvider:
    """OpenAI-backed provider. Reads ``OPENAI_API_KEY`` from the environment."""

    kind = ProviderKind.HOSTED_API

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                self._client = AsyncOpenAI()
            except OpenAIError as exc:
                msg = f"OpenAI client could not be created: {exc}"
                raise ProviderError(msg) from exc
        return self._client

    async def dense_embed(self, text: str, model: str) -> list[float]:
        client = self._get_client()
        try:
            response = await client.embeddings.create(model=model, input=text)
        except OpenAIError as exc:
            msg = f"OpenAI embedding request failed for model {model}: {exc}"
            raise ProviderError(msg) from exc
        return list(response.data[0].embedding)

    async def sparse_embed(self, text: str, model: str) -> dict[int, float]:
        # The hosted API exposes no tokenizer; word tokens are hashed locally.
        _ = model
        return hashed_term_counts(text)

    async def preload(self, model: str) -> None:
        # Nothing to download; creating the client validates the API key.
        _ = model
        self._get_client()

    def close(self) -> None:
        self._client = None


class LocalModelProvider:
    """Model2Vec-backed provider with a per-model cache.

    Models load in a worker thread on first use (or during warmup) and stay
    cached for the process lifetime.
    """

    kind = ProviderKind.LOCAL_MODEL

    def __init__(self) -> None:
        self._models: dict[str, StaticModel] = {}
        self._lock = asyncio.Lock()

    async def get_model(self, model: str) -> StaticModel:
        cached = self._models.get(model)
        if cached is not None:
            return cached
        async with self._lock:
            cached = self._models.get(model)
            if cached is not None:
                return cached
            try:
                loaded = await asyncio.to_thread(StaticModel.from_pretrained, model)
            except (OSError, ValueError, RuntimeError) as exc:
                msg = f"Failed to load local embedding model {model}: {exc}"
                raise ProviderError(msg) from exc
            _logger.info("Embedding backend: model2vec model=%s", model)
            self._models[model] = loaded
            return loaded

    async def dense_embed(self, text: str, model: str) -> list[float]:
        static_model = await self.get_model(model)
        vecs = await asyncio.to_thread(static_model.encode, [text])
        vec = cast(np.ndarray, vecs)[0]
        if vec.dtype != np.float32:
            vec = vec.astype("float32", copy=False)
        return vec.tolist()

    async def sparse_embed(self, text: str, model: str) -> dict[int, float]:
        static_model = await self.get_model(model)
        encoding = static_model.tokenizer.encode(text, add_special_tokens=False)
        counts = Counter(encoding.ids)
        return {int(token_id): float(n) for token_id, n in counts.items()}

    async def preload(self, model: str) -> None:
        await self.get_model(model)

    def close(self) -> None:
        self._models.clear()


class ProviderRegistry:
    """Builds each provider variant at most once and hands it out by kind."""

    def __init__(self, providers: dict[ProviderKind, EmbeddingProvider] | None = None) -> None:
        self._providers: dict[ProviderKind, EmbeddingProvider] = dict(providers or {})

    def get(self, kind: ProviderKind) -> EmbeddingProvider:
        provider = self._providers.get(kind)
        if provider is None:
            provider = self._build(kind)
            self._providers[kind] = provider
        return provider

    @staticmethod
    def _build(kind: ProviderKind) -> EmbeddingProvider:
        if kind is ProviderKind.HOSTED_API:
            return HostedApiProvider()
        return LocalModelProvider()

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()
        self._providers.clear()
