"""SQL guidance text for the ``file://guidance/kdbx-sql-queries`` resource."""

from __future__ import annotations

from importlib import resources
from typing import Final

from fastmcp.utilities.logging import get_logger

_logger = get_logger(__name__)

GUIDANCE_FILE: Final[str] = "kdbx_sql_query_guidance.txt"

FALLBACK_GUIDANCE: Final[str] = """KDB SQL Query Guide

Write ANSI-compliant SQL for kdb+ tables.

IMPORTANT - Column Name Quoting:
Always use double quotes around column names to avoid conflicts with SQL reserved words.
Examples: "Close", "Open", "Date", "Time", "Group", "Order", "Key", "Value"

Correct:   select avg("Close") from stocks;
Incorrect: select avg(Close) from stocks;

Basic Syntax:
SELECT [DISTINCT] columns FROM table
[LEFT|RIGHT|INNER|CROSS] JOIN table2 ON condition
WHERE conditions
GROUP BY columns
HAVING conditions
ORDER BY columns [ASC|DESC]
LIMIT n

For more details, see the full guidance file."""


def load_guidance() -> str:
    """Return the packaged guidance text, or the built-in fallback."""
    try:
        return resources.files("kdbx_mcp.resources").joinpath(GUIDANCE_FILE).read_text("utf-8")
    except (FileNotFoundError, OSError) as exc:
        _logger.warning("SQL guidance file unavailable, using fallback text: %s", exc)
        return FALLBACK_GUIDANCE
