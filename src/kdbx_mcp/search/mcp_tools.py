"""MCP tool registration for vector and hybrid search.

Only registered when the connected KDB-X process has the AI libraries loaded.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from kdbx_mcp.execute.mcp_tools import preview
from kdbx_mcp.search.runner import SearchOrchestrator

_logger = get_logger(__name__)

SIMILARITY_TOOL_NAME = "kdbx_similarity_search"
HYBRID_TOOL_NAME = "kdbx_hybrid_search"


def register_search_tools(mcp: FastMCP, *, orchestrator: SearchOrchestrator) -> list[str]:
    """Register the similarity and hybrid search tools and return their names."""

    @mcp.tool(name=SIMILARITY_TOOL_NAME)
    async def kdbx_similarity_search(
        table_name: Annotated[str, Field(description="Name of the table to search")],
        query: Annotated[str, Field(description="Text query to convert to vector and search")],
        n: Annotated[
            int | None, Field(ge=1, description="Number of results to return")
        ] = None,
    ) -> dict[str, Any]:  # pyright: ignore[reportUnusedFunction]
        """Perform vector similarity search on a KDB-X table."""
        _logger.info("%s on %s: %s", SIMILARITY_TOOL_NAME, table_name, preview(query))
        result = await orchestrator.similarity_search(table_name, query, n)
        return result.to_payload()

    @mcp.tool(name=HYBRID_TOOL_NAME)
    async def kdbx_hybrid_search(
        table_name: Annotated[str, Field(description="Name of the table to search")],
        query: Annotated[
            str, Field(description="Text query to convert to sparse and dense vectors and search")
        ],
        n: Annotated[
            int | None, Field(ge=1, description="Number of results to return")
        ] = None,
    ) -> dict[str, Any]:  # pyright: ignore[reportUnusedFunction]
        """Performs hybrid search on a KDB-X table by combining both vector and text(sparse) search."""
        _logger.info("%s on %s: %s", HYBRID_TOOL_NAME, table_name, preview(query))
        result = await orchestrator.hybrid_search(table_name, query, n)
        return result.to_payload()

    _ = (kdbx_similarity_search, kdbx_hybrid_search)
    return [SIMILARITY_TOOL_NAME, HYBRID_TOOL_NAME]
