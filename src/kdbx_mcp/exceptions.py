"""Custom exception hierarchy for kdbx-mcp.

Every failure raised by the connection and query-execution core derives from
``KdbxMcpError`` so tool handlers can convert it into a structured
``status: error`` payload at the MCP boundary.

Exception Categories:
- Connection errors raised after retries are exhausted
- Timeouts for remote calls that exceed the configured bound
- Query safety and SQL interface errors from the SQL tool
- Configuration errors for settings and per-table embedding configuration
- Provider errors for embedding generation
"""

from __future__ import annotations


class KdbxMcpError(Exception):
    """Base exception for kdbx-mcp operations."""


class KdbxConnectionError(KdbxMcpError):
    """Raised when a connection to KDB-X cannot be established.

    Only raised after every configured retry failed; the message names the
    target ``host:port`` and the last underlying error.
    """


class KdbxTimeoutError(KdbxMcpError):
    """Raised when a remote call exceeds the configured query timeout."""


class QuerySafetyError(KdbxMcpError):
    """Raised when a SQL statement contains a disallowed mutating keyword.

    Detection is a textual heuristic, not a parse: statements that begin with
    ``SELECT`` are always let through.
    """


class SqlInterfaceNotLoadedError(KdbxMcpError):
    """Raised when KDB-X rejects a query because ``.s`` is not loaded."""

    REMEDIATION = (
        "It looks like the SQL interface is not loaded in the KDB-X database. "
        "Please initialize it by running `.s.init[]` in your KDB-X session, "
        "or contact your system administrator."
    )


class ConfigError(KdbxMcpError):
    """Raised for invalid settings or missing/ambiguous embedding configuration.

    Examples:
    - A numeric environment variable that does not parse
    - No row, or more than one row, for a table in the embedding-config CSV
    - A table configured without the columns a search mode needs
    """


class ProviderError(KdbxMcpError):
    """Raised for unknown embedding provider names or failed provider calls."""


class StartupCheckError(KdbxMcpError):
    """Raised when a startup check fails and the server cannot run."""
