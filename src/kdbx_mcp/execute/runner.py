"""Execution flow for the kdbx_run_sql_query MCP tool.

This module provides a small, dependency-injected runner that:
- Enforces the read-only keyword policy before any remote call
- Executes the SQL through the KDB-X SQL interface (``.s.e``)
- Caps the returned rows server-side so rows beyond the cap never cross the wire
- Classifies failures into a structured `QueryResult`
"""

from __future__ import annotations

import json
from typing import Any, Final

from fastmcp.utilities.logging import get_logger

from kdbx_mcp.builders.result_formatter import to_python
from kdbx_mcp.exceptions import (
    KdbxConnectionError,
    KdbxTimeoutError,
    QuerySafetyError,
    SqlInterfaceNotLoadedError,
)
from kdbx_mcp.execute.assist import assist_notes
from kdbx_mcp.execute.models import QueryResult
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

MAX_ROWS_RETURNED: Final[int] = 1000
DANGEROUS_KEYWORDS: Final[tuple[str, ...]] = (
    "INSERT",
    "DROP",
    "DELETE",
    "TRUNCATE",
    "ALTER",
    "CREATE",
)
SQL_INTERFACE_MARKER: Final[str] = ".s.e"

# x: SQL text (sent as bytes so it arrives as a char vector), y: row cap.
# Returns the full row count and the capped rows as JSON.
SQL_EXECUTE_Q: Final[str] = "{r:.s.e x;`rowCount`data!(count r;.j.j y sublist r)}"


def enforce_select_only(sql: str) -> None:
    """Raise `QuerySafetyError` for non-SELECT statements with mutating keywords.

    A textual heuristic: any statement starting with ``SELECT`` passes, even
    when a keyword appears inside it (for example in a string literal).
    """
    upper = sql.upper().strip()
    if upper.startswith("SELECT"):
        return
    for keyword in DANGEROUS_KEYWORDS:
        if keyword in upper:
            msg = f"Query contains dangerous keyword: {keyword}"
            raise QuerySafetyError(msg)


def _decode_rows(raw: Any) -> list[dict[str, Any]]:
    """Decode the JSON row payload produced by ``.j.j``."""
    if raw is None:
        return []
    if isinstance(raw, bytes | bytearray):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        raw = json.loads(raw) if raw else []
    if isinstance(raw, dict):
        # .j.j renders a single-row table as an object
        return [raw]
    return [dict(row) for row in raw]


def _failure(sql: str, exc: Exception) -> QueryResult:
    text = str(exc)
    if isinstance(exc, QuerySafetyError):
        return QueryResult(status="error", message=text, error_type="unsafe_query")
    if SQL_INTERFACE_MARKER in text or isinstance(exc, SqlInterfaceNotLoadedError):
        _logger.error(
            "It looks like the SQL interface is not loaded. "
            "You can load it manually by running .s.init[]"
        )
        return QueryResult(
            status="error",
            error_type="sql_interface_not_loaded",
            message=SqlInterfaceNotLoadedError.REMEDIATION,
            technical_details=text,
        )
    if isinstance(exc, KdbxConnectionError):
        return QueryResult(
            status="error", message=text, error_type="connection_error", technical_details=text
        )
    if isinstance(exc, KdbxTimeoutError):
        return QueryResult(status="error", message=text, error_type="timeout", technical_details=text)
    try:
        notes = assist_notes(sql, text)
    except Exception:  # noqa: BLE001 - notes are advisory, keep the classified error
        _logger.warning("Could not build assist notes", exc_info=True)
        notes = []
    return QueryResult(
        status="error",
        message=text,
        error_type="error",
        technical_details=text,
        assist_notes=notes or None,
    )


async def run_query(sql: str, pool: ConnectionPool) -> QueryResult:
    """Validate and execute a read-only SQL query.

    Designed to be short and dependency-injected for easy testing.

    Args:
        sql: SQL text from the caller
        pool: Connection pool owning the KDB-X connection

    Returns:
        `QueryResult`; never raises for per-request failures
    """
    try:
        enforce_select_only(sql)
        raw = await pool.call(SQL_EXECUTE_Q, sql.encode("utf-8"), MAX_ROWS_RETURNED)
        result = to_python(raw)
        total = int(result.get("rowCount") or 0)
        if total == 0:
            _logger.info("Query returned 0 rows.")
            return QueryResult(status="success", data=[], message="No rows returned")

        rows = _decode_rows(result.get("data"))[:MAX_ROWS_RETURNED]
        if total > MAX_ROWS_RETURNED:
            _logger.info(
                "Table has %d rows. Query returned truncated data to %d rows.",
                total,
                MAX_ROWS_RETURNED,
            )
            return QueryResult(
                status="success",
                data=rows,
                message=f"Showing first {MAX_ROWS_RETURNED} of {total} rows",
            )

        _logger.info("Query returned %d rows.", total)
        return QueryResult(status="success", data=rows)
    except Exception as exc:  # noqa: BLE001 - tool boundary returns structured errors
        _logger.error("Query failed: %s", exc)
        return _failure(sql, exc)
