"""Heuristic assistance for failed SQL queries.

Parses the caller's SQL with sqlglot (no execution) and inspects the q error
text to offer concrete next steps an LLM can act on. Never used as a gate:
the keyword check in `runner.enforce_select_only` decides what runs.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Final

from fastmcp.utilities.logging import get_logger
import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, SqlglotError

_logger = get_logger(__name__)

# Column names that collide with SQL keywords and must be double-quoted.
RESERVED_COLUMN_NAMES: Final[frozenset[str]] = frozenset(
    {
        "close",
        "date",
        "from",
        "group",
        "high",
        "index",
        "key",
        "limit",
        "low",
        "open",
        "order",
        "select",
        "time",
        "timestamp",
        "type",
        "value",
        "where",
    }
)

# Terse q error tokens and what they usually mean for a SQL caller.
Q_ERROR_HINTS: Final[dict[str, str]] = {
    "type": "A value has the wrong type for its column or function; check literals and casts",
    "length": "Operands have mismatched lengths; check IN lists and joined columns",
    "rank": "A function received the wrong number of arguments",
    "nyi": "The SQL feature is not yet implemented by the KDB-X SQL interface",
    "domain": "A function argument is outside its valid domain",
    "wsfull": "The query exhausted workspace memory; filter or aggregate before selecting",
    "access": "The connected user is not permitted to run this query",
}


@lru_cache(maxsize=256)
def _cached_parse(sql: str) -> tuple[exp.Expression | None, str | None]:
    """Parse once per SQL text; return the tree or a readable parse problem."""
    try:
        return sqlglot.parse_one(sql), None
    except ParseError as exc:
        first = exc.errors[0] if exc.errors else {}
        desc = first.get("description") or str(exc)
        line = first.get("line")
        col = first.get("col")
        where = f" (line {line}, col {col})" if line is not None else ""
        return None, f"{desc}{where}"
    except SqlglotError as exc:
        # Tokenizer failures, e.g. an unterminated string literal.
        return None, str(exc)


def unquoted_reserved_columns(sql: str) -> list[str]:
    """Return reserved-word column names referenced without double quotes."""
    tree, _ = _cached_parse(sql)
    if tree is None:
        return []
    found: list[str] = []
    for column in tree.find_all(exp.Column):
        ident = column.this
        if (
            isinstance(ident, exp.Identifier)
            and not ident.quoted
            and ident.name.lower() in RESERVED_COLUMN_NAMES
            and ident.name not in found
        ):
            found.append(ident.name)
    return found


def assist_notes(sql: str, error_message: str) -> list[str]:
    """Build ``Cause:``/``Fix:`` notes for a failed query."""
    notes: list[str] = []

    _, parse_problem = _cached_parse(sql)
    if parse_problem is not None:
        notes.append(f"Cause: SQL does not parse: {parse_problem}")

    for name in unquoted_reserved_columns(sql):
        notes.append(f'Fix: Quote the column name "{name}" with double quotes')

    token = error_message.strip().strip("'").split()[0].lower() if error_message.strip() else ""
    hint = Q_ERROR_HINTS.get(token)
    if hint is not None:
        notes.append(f"Cause: {hint}")

    if notes:
        _logger.debug("Assist notes for failed query: %s", notes)
    return notes
