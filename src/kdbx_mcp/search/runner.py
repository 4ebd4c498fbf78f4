"""Similarity and hybrid search over KDB-X tables.

Both searches follow the same flow: resolve the table's embedding
configuration, check the fields the mode needs, compute query embeddings with
the configured providers, issue one remote search call, then normalise the
rows and strip embedding columns.

Hybrid search fuses a dense (flat vector) branch and a sparse (BM25) branch
with reciprocal rank fusion on the server.
"""

from __future__ import annotations

import asyncio
from typing import Any, Final

from fastmcp.utilities.logging import get_logger
import numpy as np

from kdbx_mcp.builders.result_formatter import normalize_search_result, to_records
from kdbx_mcp.embeddings.config_lookup import EmbeddingConfig, EmbeddingConfigLookup
from kdbx_mcp.embeddings.providers import ProviderRegistry, provider_kind
from kdbx_mcp.exceptions import ConfigError
from kdbx_mcp.search.models import SearchResult
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

RRF_K: Final[int] = 60
BM25_K1: Final[float] = 1.25
BM25_B: Final[float] = 0.75

SIMILARITY_SEARCH_Q: Final[str] = (
    "{[t;vcol;qvec;n;metric] "
    "r:.ai.flat.search[?[t;();();vcol];qvec;n;metric]; "
    "(0!get t) r 1}"
)
HYBRID_SEARCH_Q: Final[str] = (
    "{[t;vcol;qvec;idx;qsparse;n;metric] "
    "d:.ai.flat.search[?[t;();();vcol];qvec;n;metric]; "
    f"s:.ai.bm25.search[?[t;();();idx];qsparse;n;{BM25_K1};{BM25_B}]; "
    f"(0!get t) n sublist .ai.hybrid.rrf[(d 1;s 1);{RRF_K}]}}"
)

NO_SPARSE_INDEX_MESSAGE: Final[str] = "The requested table does not have sparse index"
NO_HYBRID_RESULTS_MESSAGE: Final[str] = (
    "No results found - the sparse search returned no matches for the query"
)


def _missing_embedding_config(table: str) -> ConfigError:
    return ConfigError(f"Table {table} does not have embedding configuration")


class SearchOrchestrator:
    """Runs similarity and hybrid searches against the shared connection."""

    def __init__(
        self,
        pool: ConnectionPool,
        lookup: EmbeddingConfigLookup,
        providers: ProviderRegistry,
    ) -> None:
        self.pool = pool
        self.lookup = lookup
        self.providers = providers

    @property
    def _csv_path(self) -> str:
        return self.pool.config.embedding_csv_path

    def _resolve(self, table: str) -> EmbeddingConfig:
        return self.lookup.resolve(table, self._csv_path)

    def _success(self, table: str, raw: Any) -> SearchResult:
        records = normalize_search_result(to_records(raw), table, self._csv_path, self.lookup)
        _logger.info("Search on table %s returned %d record(s)", table, len(records))
        return SearchResult(
            status="success", table=table, records_count=len(records), records=records
        )

    async def similarity_search(self, table: str, query: str, n: int | None = None) -> SearchResult:
        """Dense vector search on ``table`` for the text ``query``.

        Returns:
            `SearchResult`; failures are returned as ``status="error"``
        """
        try:
            k = n if n is not None else self.pool.config.k
            cfg = self._resolve(table)
            if not (cfg.embedding_column and cfg.embedding_provider and cfg.embedding_model):
                raise _missing_embedding_config(table)

            provider = self.providers.get(provider_kind(cfg.embedding_provider))
            query_vector = await provider.dense_embed(query, cfg.embedding_model)

            raw = await self.pool.call(
                SIMILARITY_SEARCH_Q,
                table,
                cfg.embedding_column,
                np.asarray(query_vector, dtype=np.float32),
                k,
                self.pool.config.metric,
            )
            return self._success(table, raw)
        except Exception as exc:  # noqa: BLE001 - tool boundary returns structured errors
            _logger.error("Error performing search on table %s: %s", table, exc)
            return SearchResult(status="error", message=str(exc), table=table)

    async def hybrid_search(self, table: str, query: str, n: int | None = None) -> SearchResult:
        """Dense plus sparse search fused with reciprocal rank fusion.

        A table without a sparse index yields an error result without
        computing any embeddings; an empty fused result is a success.
        """
        try:
            k = n if n is not None else self.pool.config.k
            cfg = self._resolve(table)
            if not cfg.sparse_index_name:
                _logger.info(
                    "Error performing hybrid search on table %s: Missing sparse index", table
                )
                return SearchResult(status="error", message=NO_SPARSE_INDEX_MESSAGE, table=table)
            if not (cfg.embedding_column and cfg.embedding_provider and cfg.embedding_model):
                raise _missing_embedding_config(table)

            sparse_name = cfg.sparse_tokenizer_provider or cfg.embedding_provider
            sparse_model = cfg.sparse_tokenizer_model or cfg.embedding_model
            dense_provider = self.providers.get(provider_kind(cfg.embedding_provider))
            sparse_provider = self.providers.get(provider_kind(sparse_name))

            query_vector, query_sparse = await asyncio.gather(
                dense_provider.dense_embed(query, cfg.embedding_model),
                sparse_provider.sparse_embed(query, sparse_model),
            )

            raw = await self.pool.call(
                HYBRID_SEARCH_Q,
                table,
                cfg.embedding_column,
                np.asarray(query_vector, dtype=np.float32),
                cfg.sparse_index_name,
                query_sparse,
                k,
                self.pool.config.metric,
            )
            rows = to_records(raw)
            if not rows:
                _logger.info(
                    "Hybrid search on table %s returned no results - "
                    "sparse search may have found no matches",
                    table,
                )
                return SearchResult(
                    status="success",
                    table=table,
                    records_count=0,
                    records=[],
                    message=NO_HYBRID_RESULTS_MESSAGE,
                )
            return self._success(table, rows)
        except Exception as exc:  # noqa: BLE001 - tool boundary returns structured errors
            _logger.error("Error performing search on table %s: %s", table, exc)
            return SearchResult(status="error", message=str(exc), table=table)
