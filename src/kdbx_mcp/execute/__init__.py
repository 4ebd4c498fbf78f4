"""Execute tool package for read-only SQL in MCP.

Exports typed models, the runner, and the FastMCP registration helper.
"""

from __future__ import annotations

from .mcp_tools import register_run_sql_query_tool
from .models import QueryResult
from .runner import MAX_ROWS_RETURNED, enforce_select_only, run_query

__all__ = [
    "MAX_ROWS_RETURNED",
    "QueryResult",
    "enforce_select_only",
    "register_run_sql_query_tool",
    "run_query",
]
