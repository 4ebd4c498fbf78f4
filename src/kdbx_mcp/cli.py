"""Command-line entrypoint for the kdbx-mcp FastMCP server.

Settings resolve with the precedence CLI flag > environment variable > ``.env``
file > default. Startup checks run before the server starts; a failed check
exits with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import sys
import traceback

from fastmcp.utilities.logging import configure_logging, get_logger

from kdbx_mcp.exceptions import ConfigError, StartupCheckError
from kdbx_mcp.server import build_server
from kdbx_mcp.services.config_service import AppSettings, ConfigService
from kdbx_mcp.services.startup import run_startup_checks

_logger = get_logger(__name__)

# (flag, settings field, type, help)
MCP_FLAGS: tuple[tuple[str, str, type, str], ...] = (
    ("--mcp.server-name", "server_name", str, "Name of the MCP server"),
    ("--mcp.log-level", "log_level", str, "Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"),
    ("--mcp.transport", "transport", str, "Transport: stdio or streamable-http"),
    ("--mcp.port", "port", int, "HTTP port for the streamable-http transport"),
    ("--mcp.host", "host", str, "HTTP host for the streamable-http transport"),
)
DB_FLAGS: tuple[tuple[str, str, type, str], ...] = (
    ("--db.host", "host", str, "KDB-X host"),
    ("--db.port", "port", int, "KDB-X port"),
    ("--db.username", "username", str, "KDB-X username"),
    ("--db.password", "password", str, "KDB-X password"),
    ("--db.tls", "tls", str, "Use TLS for the KDB-X connection (true/false)"),
    ("--db.timeout", "timeout", float, "Connect timeout in seconds"),
    ("--db.retry", "retry", int, "Connect retries after the first attempt"),
    ("--db.embedding-csv-path", "embedding_csv_path", str, "Embedding configuration CSV"),
    ("--db.metric", "metric", str, "Similarity metric passed to KDB-X (e.g. CS, L2)"),
    ("--db.k", "k", int, "Default number of search results"),
    ("--db.query-timeout", "query_timeout", float, "Timeout for one remote call in seconds"),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kdbx-mcp", description="MCP server for read-only access to KDB-X"
    )
    mcp_group = parser.add_argument_group("server")
    for flag, field, kind, help_text in MCP_FLAGS:
        mcp_group.add_argument(flag, dest=f"mcp_{field}", type=kind, default=None, help=help_text)
    db_group = parser.add_argument_group("database")
    for flag, field, kind, help_text in DB_FLAGS:
        db_group.add_argument(flag, dest=f"db_{field}", type=kind, default=None, help=help_text)
    return parser


def split_overrides(args: argparse.Namespace) -> tuple[dict[str, object], dict[str, object]]:
    """Split parsed flags into server and database overrides keyed by field name."""
    mcp = {field: getattr(args, f"mcp_{field}") for _, field, _, _ in MCP_FLAGS}
    db = {field: getattr(args, f"db_{field}") for _, field, _, _ in DB_FLAGS}
    return mcp, db


def _log_settings(settings: AppSettings) -> None:
    _logger.info("Server settings: %s", settings.mcp)
    _logger.info("Database settings: %s", settings.db.redacted())


def main(argv: Sequence[str] | None = None) -> None:
    """Start the kdbx-mcp FastMCP server via CLI."""
    args = build_parser().parse_args(argv)
    mcp_overrides, db_overrides = split_overrides(args)
    try:
        settings = ConfigService.load_settings(
            mcp_overrides=mcp_overrides, db_overrides=db_overrides
        )
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(level=settings.mcp.log_level)
    _log_settings(settings)

    try:
        report = asyncio.run(run_startup_checks(settings))
    except StartupCheckError as exc:
        _logger.error("Startup checks failed: %s", exc)
        sys.exit(1)

    mcp, _components = build_server(settings, ai_libs_available=report.ai_libs_available)
    try:
        if settings.mcp.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(
                transport="streamable-http", host=settings.mcp.host, port=settings.mcp.port
            )
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")
    except Exception:  # noqa: BLE001
        traceback.print_exc(limit=1)
        sys.exit(1)


if __name__ == "__main__":
    main()
