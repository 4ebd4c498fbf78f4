"""Embedding providers, per-table embedding configuration, and model warmup."""

from __future__ import annotations

from .config_lookup import EmbeddingConfig, EmbeddingConfigLookup
from .providers import (
    EmbeddingProvider,
    HostedApiProvider,
    LocalModelProvider,
    ProviderKind,
    ProviderRegistry,
    provider_kind,
)
from .warmup import EmbeddingWarmer

__all__ = [
    "EmbeddingConfig",
    "EmbeddingConfigLookup",
    "EmbeddingProvider",
    "EmbeddingWarmer",
    "HostedApiProvider",
    "LocalModelProvider",
    "ProviderKind",
    "ProviderRegistry",
    "provider_kind",
]
