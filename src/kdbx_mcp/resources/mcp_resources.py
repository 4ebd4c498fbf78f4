"""MCP resource registration: database tables overview and SQL guidance."""

from __future__ import annotations

from typing import Final

from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger

from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.resources.guidance import load_guidance
from kdbx_mcp.resources.tables_overview import describe_tables
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

TABLES_URI: Final[str] = "kdbx://tables"
GUIDANCE_URI: Final[str] = "file://guidance/kdbx-sql-queries"


def register_resources(
    mcp: FastMCP, *, pool: ConnectionPool, lookup: EmbeddingConfigLookup
) -> list[str]:
    """Register the resources and return their URIs."""

    @mcp.resource(
        TABLES_URI,
        name="kdbx_describe_tables",
        description=(
            "Get comprehensive overview of all database tables with schema information "
            "and sample data."
        ),
        mime_type="text/plain",
    )
    async def kdbx_describe_tables() -> str:  # pyright: ignore[reportUnusedFunction]
        return await describe_tables(pool, lookup)

    @mcp.resource(
        GUIDANCE_URI,
        name="kdbx_sql_query_guidance",
        description=(
            "Provides guidance when using SQL select statements with the "
            "kdbx_run_sql_query tool."
        ),
        mime_type="text/plain",
    )
    def kdbx_sql_query_guidance() -> str:  # pyright: ignore[reportUnusedFunction]
        return load_guidance()

    _ = (kdbx_describe_tables, kdbx_sql_query_guidance)
    return [TABLES_URI, GUIDANCE_URI]
