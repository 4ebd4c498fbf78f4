"""MCP tool registration for SQL execution (kdbx_run_sql_query).

Provides a single tool ``kdbx_run_sql_query(query: str)`` that applies the
read-only keyword policy, runs the query through the KDB-X SQL interface with a
1000-row cap, and returns a structured JSON payload.
"""

from __future__ import annotations

from typing import Annotated, Any, Final

from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from kdbx_mcp.execute.runner import run_query
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

MAX_QUERY_DISPLAY: Final[int] = 100
TOOL_NAME: Final[str] = "kdbx_run_sql_query"


def preview(text: str) -> str:
    return text[:MAX_QUERY_DISPLAY] + ("..." if len(text) > MAX_QUERY_DISPLAY else "")


def register_run_sql_query_tool(mcp: FastMCP, *, pool: ConnectionPool) -> str:
    """Register the SQL query tool and return its name."""

    @mcp.tool(name=TOOL_NAME)
    async def kdbx_run_sql_query(
        query: Annotated[
            str,
            Field(
                description=(
                    "SQL SELECT query string to execute. Must be a valid SQL statement "
                    "following standard SQL syntax conventions."
                )
            ),
        ],
    ) -> dict[str, Any]:  # pyright: ignore[reportUnusedFunction]
        """Execute a SQL query and return structured results only to be used on kdb and not on kdbai.

        Processes SQL SELECT statements against KDB-X and returns at most 1000 rows.
        Use the kdbx_sql_query_guidance resource when creating queries.

        Supported query types:
            - SELECT statements with column specifications
            - WHERE clauses for filtering
            - ORDER BY for result sorting
            - LIMIT for result pagination
            - Basic aggregation functions (COUNT, SUM, AVG, etc.)

        For query syntax and examples, see: file://guidance/kdbx-sql-queries
        """
        _logger.info("%s: %s", TOOL_NAME, preview(query))
        result = await run_query(query, pool)
        return result.to_payload()

    _ = kdbx_run_sql_query
    return TOOL_NAME
