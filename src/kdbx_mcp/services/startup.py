"""Startup checks run before the MCP server starts.

Checks, in order:
1. The HTTP port is free (streamable-http transport only)
2. KDB-X is reachable; its product and version are logged
3. The SQL interface (``.s``) is loaded
4. The AI libraries (``.ai``) are loaded; their absence only disables search tools

Failures of 1-3 raise `StartupCheckError`; the CLI turns that into exit status 1.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
import socket
from typing import Final

from fastmcp.utilities.logging import get_logger
import pykx as kx

from kdbx_mcp.builders.result_formatter import to_python
from kdbx_mcp.exceptions import KdbxMcpError, StartupCheckError
from kdbx_mcp.services.config_service import AppSettings, DatabaseConfig, ServerConfig
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

KDBX_VERSION_Q: Final[str] = ".z.v`version"
KDB_PLUS_VERSION_Q: Final[str] = ".z.K"
SQL_INTERFACE_Q: Final[str] = "@[{2<count .s};(::);{0b}]"
AI_LIBS_Q: Final[str] = "@[{2<count .ai};(::);{0b}]"
MIN_AI_LIBS_VERSION: Final[tuple[int, int, int]] = (0, 1, 2)
_VERSION_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True, slots=True)
class StartupReport:
    """Outcome of the database checks."""

    kdb_type: str
    kdb_version: str
    ai_libs_available: bool


def parse_version(text: str) -> tuple[int, int, int] | None:
    match = _VERSION_PATTERN.search(text)
    if match is None:
        return None
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def check_port_available(config: ServerConfig) -> None:
    """Bind-test the HTTP port.

    Raises:
        StartupCheckError: If the port is already in use
    """
    if config.transport != "streamable-http":
        return
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((config.host, config.port))
        except OSError as exc:
            _logger.error(
                "KDB-X MCP port %d is already in use on %s", config.port, config.host
            )
            _logger.error("Solutions:")
            _logger.error("  - Try a different port: --mcp.port %d", config.port + 1)
            _logger.error("  - Stop the service using port %d", config.port)
            msg = f"Port {config.host}:{config.port} is not available: {exc}"
            raise StartupCheckError(msg) from exc
    _logger.info(
        "KDB-X MCP port availability check: SUCCESS - %s:%d is available",
        config.host,
        config.port,
    )


async def _read_version(pool: ConnectionPool) -> tuple[str, str]:
    try:
        version = to_python(await pool.call(KDBX_VERSION_Q))
    except kx.exceptions.QError:
        return "KDB+", str(to_python(await pool.call(KDB_PLUS_VERSION_Q)))
    if isinstance(version, bytes):
        version = version.decode("utf-8")
    return "KDB-X", str(version)


def _log_ai_libs_missing(kdb_type: str, kdb_version: str) -> None:
    prefix = "KDB-X AI Libs check:"
    if kdb_type != "KDB-X":
        _logger.warning(
            "%s NOT AVAILABLE - AI-powered tools (similarity_search, hybrid_search) "
            "are only available in KDB-X.",
            prefix,
        )
        return
    parsed = parse_version(kdb_version)
    if parsed is not None and parsed < MIN_AI_LIBS_VERSION:
        _logger.warning(
            "%s NOT AVAILABLE - AI-powered tools (similarity_search, hybrid_search) "
            "will be disabled.",
            prefix,
        )
        _logger.warning(
            "To use AI tools, you need at least KDB-X version '%s'. Your version is '%s'. "
            "Please update to the latest KDB-X version.",
            ".".join(str(p) for p in MIN_AI_LIBS_VERSION),
            kdb_version,
        )
    else:
        _logger.warning(
            "%s NOT LOADED - AI-powered tools (similarity_search, hybrid_search) "
            "will be disabled.",
            prefix,
        )
        _logger.warning(
            "To enable AI tools, load the KDB-X AI libraries by running: .ai:use`kx.ai "
            "in your KDB-X Session and then restart the MCP server"
        )


def _log_connect_failure(config: DatabaseConfig, exc: Exception) -> None:
    _logger.error(
        "KDB-X connectivity check with 'tls=%s': FAILED - %s (%s)", config.tls, config.address, exc
    )
    text = str(exc)
    if "Connection refused" in text:
        _logger.error("Verify KDB-X service is running and accessible on %s", config.address)
    if "access" in text or "invalid username/password" in text:
        _logger.error("Verify your KDBX_DB_USERNAME and KDBX_DB_PASSWORD are correct")
    _logger.error(
        "KDB-X MCP server cannot function without connection to a KDB-X database. Exiting..."
    )


async def check_database(pool: ConnectionPool) -> StartupReport:
    """Check connectivity, the SQL interface and the AI libraries.

    Raises:
        StartupCheckError: If KDB-X is unreachable or the SQL interface is missing
    """
    config = pool.config
    try:
        kdb_type, kdb_version = await _read_version(pool)
    except (KdbxMcpError, kx.exceptions.QError, OSError) as exc:
        _log_connect_failure(config, exc)
        msg = f"Cannot reach KDB-X at {config.address}: {exc}"
        raise StartupCheckError(msg) from exc

    _logger.info(
        "KDB-X connectivity check with 'tls=%s': SUCCESS - %s is accessible. "
        "You are running %s version: %s",
        config.tls,
        config.address,
        kdb_type,
        kdb_version,
    )

    if not bool(to_python(await pool.call(SQL_INTERFACE_Q))):
        _logger.error(
            "KDB-X SQL interface check: FAILED - KDB-X service does not have the SQL interface "
            "loaded. Load it by running .s.init[] in your KDB-X Session"
        )
        msg = "KDB-X SQL interface is not loaded"
        raise StartupCheckError(msg)
    _logger.info("KDB-X SQL interface check: SUCCESS - SQL interface is loaded")

    ai_libs = bool(to_python(await pool.call(AI_LIBS_Q)))
    if ai_libs:
        _logger.info("KDB-X AI Libs check: SUCCESS - AI Libs are loaded, AI tools will be available")
    else:
        _log_ai_libs_missing(kdb_type, kdb_version)

    return StartupReport(kdb_type=kdb_type, kdb_version=kdb_version, ai_libs_available=ai_libs)


async def run_startup_checks(settings: AppSettings) -> StartupReport:
    """Run all checks with a short-lived pool that is closed afterwards."""
    check_port_available(settings.mcp)
    pool = ConnectionPool(settings.db)
    try:
        return await check_database(pool)
    finally:
        pool.close()
