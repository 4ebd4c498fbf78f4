"""Tests for similarity and hybrid search with fake providers and a fake pool."""

from __future__ import annotations

import asyncio
from typing import Any

import numpy as np

from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.embeddings.providers import ProviderKind, ProviderRegistry
from kdbx_mcp.search.runner import (
    HYBRID_SEARCH_Q,
    NO_HYBRID_RESULTS_MESSAGE,
    NO_SPARSE_INDEX_MESSAGE,
    SIMILARITY_SEARCH_Q,
    SearchOrchestrator,
)
from kdbx_mcp.services.config_service import DatabaseConfig

DOCS_ROW = "docs,embeddings,model2vec,potion,sparse_tokens,sparse_idx,openai,tok-model"
PLAIN_ROW = "plain,embeddings,model2vec,potion,,,,"
NO_DENSE_ROW = "bare,,,,,sparse_idx,,"
DEFAULT_TOKENIZER_ROW = "notes,embeddings,model2vec,potion,sparse_tokens,sparse_idx,,"
UNKNOWN_PROVIDER_ROW = "mini,embeddings,sentence_transformers,all-MiniLM-L6-v2,,,,"

HITS = [
    {"id": 1, "text": "alpha", "embeddings": [0.1, 0.2, 0.3], "sparse_tokens": {7: 1.0}},
    {"id": 2, "text": "beta", "embeddings": [0.3, 0.2, 0.1], "sparse_tokens": {11: 1.0}},
]


def _setup(write_csv, fake_pool_cls, fake_provider_cls, handler: Any = None):
    path = write_csv([DOCS_ROW, PLAIN_ROW, NO_DENSE_ROW, DEFAULT_TOKENIZER_ROW, UNKNOWN_PROVIDER_ROW])
    pool = fake_pool_cls(DatabaseConfig(embedding_csv_path=path, metric="L2", k=4), handler)
    local = fake_provider_cls(ProviderKind.LOCAL_MODEL)
    hosted = fake_provider_cls(ProviderKind.HOSTED_API)
    registry = ProviderRegistry({ProviderKind.LOCAL_MODEL: local, ProviderKind.HOSTED_API: hosted})
    return SearchOrchestrator(pool, EmbeddingConfigLookup(), registry), pool, local, hosted


def test_similarity_search_strips_vectors(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, pool, local, _ = _setup(
        write_csv, fake_pool_cls, fake_provider_cls, lambda *_: HITS
    )
    result = asyncio.run(orchestrator.similarity_search("docs", "alpha things"))

    assert result.status == "success"
    assert result.records_count == 2
    assert result.records == [{"id": 1, "text": "alpha"}, {"id": 2, "text": "beta"}]
    assert local.dense_calls == [("alpha things", "potion")]

    ((expr, args),) = pool.calls
    assert expr == SIMILARITY_SEARCH_Q
    table, column, vector, n, metric = args
    assert (table, column, n, metric) == ("docs", "embeddings", 4, "L2")
    assert vector.dtype == np.float32


def test_similarity_search_honours_n(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, pool, _, _ = _setup(write_csv, fake_pool_cls, fake_provider_cls, lambda *_: [])
    result = asyncio.run(orchestrator.similarity_search("docs", "q", n=2))

    assert result.status == "success"
    assert result.records_count == 0
    assert pool.calls[0][1][3] == 2


def test_similarity_search_without_config(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, pool, local, _ = _setup(write_csv, fake_pool_cls, fake_provider_cls)
    result = asyncio.run(orchestrator.similarity_search("trades", "q"))

    assert result.status == "error"
    assert result.table == "trades"
    assert result.message == "No configuration found for table='trades'"
    assert pool.calls == []
    assert local.dense_calls == []


def test_similarity_search_without_dense_fields(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, pool, _, _ = _setup(write_csv, fake_pool_cls, fake_provider_cls)
    result = asyncio.run(orchestrator.similarity_search("bare", "q"))

    assert result.status == "error"
    assert result.message == "Table bare does not have embedding configuration"
    assert pool.calls == []


def test_hybrid_without_sparse_index_computes_nothing(
    write_csv, fake_pool_cls, fake_provider_cls
) -> None:
    orchestrator, pool, local, hosted = _setup(write_csv, fake_pool_cls, fake_provider_cls)
    result = asyncio.run(orchestrator.hybrid_search("plain", "q"))

    assert result.status == "error"
    assert result.message == NO_SPARSE_INDEX_MESSAGE
    assert result.table == "plain"
    assert pool.calls == []
    assert local.dense_calls == local.sparse_calls == []
    assert hosted.dense_calls == hosted.sparse_calls == []


def test_hybrid_uses_sparse_tokenizer_provider(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, pool, local, hosted = _setup(
        write_csv, fake_pool_cls, fake_provider_cls, lambda *_: HITS[:1]
    )
    result = asyncio.run(orchestrator.hybrid_search("docs", "alpha"))

    assert result.status == "success"
    assert result.records == [{"id": 1, "text": "alpha"}]
    assert local.dense_calls == [("alpha", "potion")]
    assert hosted.sparse_calls == [("alpha", "tok-model")]

    ((expr, args),) = pool.calls
    assert expr == HYBRID_SEARCH_Q
    assert args[0] == "docs"
    assert args[3] == "sparse_idx"
    assert args[4] == {7: 1.0, 11: 2.0}
    assert args[5:] == (4, "L2")


def test_hybrid_empty_result_is_success(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, _, _, _ = _setup(write_csv, fake_pool_cls, fake_provider_cls, lambda *_: [])
    payload = asyncio.run(orchestrator.hybrid_search("docs", "zzz")).to_payload()

    assert payload == {
        "status": "success",
        "table": "docs",
        "recordsCount": 0,
        "records": [],
        "message": NO_HYBRID_RESULTS_MESSAGE,
    }


def test_remote_failure_becomes_error_result(write_csv, fake_pool_cls, fake_provider_cls) -> None:
    orchestrator, _, _, _ = _setup(
        write_csv, fake_pool_cls, fake_provider_cls, lambda *_: RuntimeError("rank")
    )
    result = asyncio.run(orchestrator.similarity_search("docs", "q"))

    assert result.status == "error"
    assert result.message == "rank"
    assert result.records is None


def test_hybrid_tokenizer_defaults_to_dense_provider(
    write_csv, fake_pool_cls, fake_provider_cls
) -> None:
    orchestrator, pool, local, hosted = _setup(
        write_csv, fake_pool_cls, fake_provider_cls, lambda *_: HITS[:1]
    )
    result = asyncio.run(orchestrator.hybrid_search("notes", "alpha"))

    assert result.status == "success"
    assert local.dense_calls == [("alpha", "potion")]
    assert local.sparse_calls == [("alpha", "potion")]
    assert hosted.dense_calls == hosted.sparse_calls == []
    assert pool.calls[0][1][3] == "sparse_idx"


def test_unknown_provider_fails_only_the_search(
    write_csv, fake_pool_cls, fake_provider_cls
) -> None:
    orchestrator, pool, local, hosted = _setup(write_csv, fake_pool_cls, fake_provider_cls)
    result = asyncio.run(orchestrator.similarity_search("mini", "q"))

    assert result.status == "error"
    assert result.table == "mini"
    assert result.message is not None
    assert result.message.startswith("Unknown provider: sentence_transformers")
    assert pool.calls == []
    assert local.dense_calls == hosted.dense_calls == []
