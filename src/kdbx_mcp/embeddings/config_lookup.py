"""Per-table embedding configuration.

The embedding-config table is a CSV file with one row per searchable table:

    table,embedding_column,embedding_provider,embedding_model,
    sparse_embedding_column,sparse_index_name,
    sparse_tokenizer_provider,sparse_tokenizer_model

Every column except ``table`` may be empty. The file is read once per distinct
path and cached for the lifetime of the lookup object; it is assumed static
while the server runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from fastmcp.utilities.logging import get_logger
import pandas as pd

from kdbx_mcp.exceptions import ConfigError

_logger = get_logger(__name__)

CONFIG_COLUMNS: Final[tuple[str, ...]] = (
    "table",
    "embedding_column",
    "embedding_provider",
    "embedding_model",
    "sparse_embedding_column",
    "sparse_index_name",
    "sparse_tokenizer_provider",
    "sparse_tokenizer_model",
)


@dataclass(frozen=True, slots=True)
class EmbeddingConfig:
    """Embedding settings for one table, one field per CSV column.

    Empty CSV cells become ``None``. Provider names stay as written; they are
    checked against `ProviderKind` only when a search needs the provider.
    """

    table: str
    embedding_column: str | None = None
    embedding_provider: str | None = None
    embedding_model: str | None = None
    sparse_embedding_column: str | None = None
    sparse_index_name: str | None = None
    sparse_tokenizer_provider: str | None = None
    sparse_tokenizer_model: str | None = None

    @property
    def vector_columns(self) -> tuple[str, ...]:
        """Names of the dense and sparse embedding columns that are configured."""
        return tuple(
            col for col in (self.embedding_column, self.sparse_embedding_column) if col
        )


def _cell(value: str) -> str | None:
    stripped = value.strip()
    return stripped or None


class EmbeddingConfigLookup:
    """Resolves `EmbeddingConfig` rows from the embedding-config CSV."""

    def __init__(self) -> None:
        self._cache: dict[str, list[dict[str, str | None]]] = {}

    def rows(self, csv_path: str) -> list[dict[str, str | None]]:
        """Return all configuration rows of ``csv_path`` (cached).

        Raises:
            ConfigError: If the file cannot be read or lacks a ``table`` column
        """
        cached = self._cache.get(csv_path)
        if cached is not None:
            return cached
        try:
            frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            msg = f"Failed to read embeddings CSV: {exc}"
            raise ConfigError(msg) from exc
        if "table" not in frame.columns:
            msg = f"Embeddings CSV {csv_path} has no 'table' column"
            raise ConfigError(msg)

        rows: list[dict[str, str | None]] = []
        for record in frame.to_dict(orient="records"):
            rows.append({col: _cell(str(record.get(col, ""))) for col in CONFIG_COLUMNS})
        self._cache[csv_path] = rows
        _logger.debug("Loaded %d embedding configuration row(s) from %s", len(rows), csv_path)
        return rows

    def resolve(self, table: str, csv_path: str) -> EmbeddingConfig:
        """Return the embedding configuration of ``table``.

        Raises:
            ConfigError: If zero or several rows match ``table``
        """
        matches = [row for row in self.rows(csv_path) if row["table"] == table]
        if not matches:
            msg = f"No configuration found for table='{table}'"
            raise ConfigError(msg)
        if len(matches) > 1:
            msg = (
                f"Multiple configurations found for table='{table}'. "
                "Please ensure each table has only one configuration row."
            )
            raise ConfigError(msg)

        row = matches[0]
        return EmbeddingConfig(
            table=table,
            embedding_column=row["embedding_column"],
            embedding_provider=row["embedding_provider"],
            embedding_model=row["embedding_model"],
            sparse_embedding_column=row["sparse_embedding_column"],
            sparse_index_name=row["sparse_index_name"],
            sparse_tokenizer_provider=row["sparse_tokenizer_provider"],
            sparse_tokenizer_model=row["sparse_tokenizer_model"],
        )

    def clear(self) -> None:
        self._cache.clear()
