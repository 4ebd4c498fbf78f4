"""Schema and preview report for every user table in the database.

Produces the plain-text body of the ``kdbx://tables`` resource: one section per
table with its schema, row count and up to three preview rows. Tables created
internally by the AI libraries (BM25 index tables) are skipped.
"""

from __future__ import annotations

from typing import Any, Final

from fastmcp.utilities.logging import get_logger

from kdbx_mcp.builders.result_formatter import (
    normalize_search_result,
    render_metadata,
    render_table,
    to_python,
    to_records,
)
from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

INTERNAL_TABLE_SUFFIXES: Final[tuple[str, ...]] = ("document", "stats", "token")
PREVIEW_ROWS: Final[int] = 3
BANNER_WIDTH: Final[int] = 60

TABLES_Q: Final[str] = "tables[]"
COUNT_Q: Final[str] = "{count get x}"
META_Q: Final[str] = "{0!meta x}"
IS_PARTITIONED_Q: Final[str] = "{x in .Q.pt}"
PREVIEW_Q: Final[str] = "{x sublist get y}"
PARTITIONED_PREVIEW_Q: Final[str] = "{.Q.ind[get y;til x]}"


def user_tables(names: list[str]) -> list[str]:
    """Drop tables whose names end in an internal suffix."""
    return [name for name in names if not name.endswith(INTERNAL_TABLE_SUFFIXES)]


def _schema_record(meta_rows: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {
        str(row.get("c")): {"t": row.get("t"), "f": row.get("f"), "a": row.get("a")}
        for row in meta_rows
    }


async def describe_table(table: str, pool: ConnectionPool, lookup: EmbeddingConfigLookup) -> str:
    """Return the schema and preview section for one table."""
    try:
        total = int(to_python(await pool.call(COUNT_Q, table)))
        meta_rows = to_records(await pool.call(META_Q, table))
        partitioned = bool(to_python(await pool.call(IS_PARTITIONED_Q, table)))

        lines = [f"\n  TABLE ANALYSIS: {table}", "=" * BANNER_WIDTH]
        lines.append("\n Schema Information:")
        lines.append(render_metadata(_schema_record(meta_rows)))
        lines.append(f"\n Total Records: {total:,}")

        if total > 0:
            size = min(PREVIEW_ROWS, total)
            expr = PARTITIONED_PREVIEW_Q if partitioned else PREVIEW_Q
            raw = await pool.call(expr, size, table)
            rows = normalize_search_result(
                to_records(raw), table, pool.config.embedding_csv_path, lookup
            )
            lines.append(f"\n Data Preview ({size} records):")
            lines.append(render_table(rows))
        else:
            lines.append("\n Table is empty - no data to preview")
        return "\n".join(lines)
    except Exception as exc:  # noqa: BLE001 - resource body reports the failure
        _logger.error("Failed to analyze table '%s': %s", table, exc)
        return f"\n TABLE ANALYSIS FAILED: {table}\n{'=' * BANNER_WIDTH}\nError: {exc}"


async def describe_tables(pool: ConnectionPool, lookup: EmbeddingConfigLookup) -> str:
    """Return the overview of all user tables."""
    try:
        names = [str(name) for name in to_python(await pool.call(TABLES_Q)) or []]
        tables = user_tables(names)
        if not tables:
            return " Database is empty - no tables found"

        parts = [
            "  DATABASE SCHEMA OVERVIEW",
            "═" * BANNER_WIDTH,
            f" Found {len(tables)} table(s)\n",
        ]
        for table in tables:
            parts.append(await describe_table(table, pool, lookup))

        overview = "\n".join(parts)
        _logger.debug(overview)
        return overview
    except Exception as exc:  # noqa: BLE001 - resource body reports the failure
        _logger.error("Database schema analysis failed: %s", exc)
        return (
            f" DATABASE ANALYSIS ERROR\n{'═' * BANNER_WIDTH}\n"
            f"Failed to analyze database schema: {exc}"
        )
