"""kdbx-mcp package: a Model Context Protocol server for KDB-X.

Exposes read-only SQL execution, vector similarity and hybrid search, a
tables overview resource, SQL guidance and a table analysis prompt over
FastMCP.
"""

import os

# IPC-only use of pykx; skip the interactive licence prompt on import.
os.environ.setdefault("PYKX_UNLICENSED", "true")

from kdbx_mcp.exceptions import (  # noqa: E402
    ConfigError,
    KdbxConnectionError,
    KdbxMcpError,
    KdbxTimeoutError,
    ProviderError,
    QuerySafetyError,
    SqlInterfaceNotLoadedError,
    StartupCheckError,
)
from kdbx_mcp.services.config_service import (  # noqa: E402
    AppSettings,
    ConfigService,
    DatabaseConfig,
    ServerConfig,
)

__all__ = [  # noqa: RUF022
    # Exceptions
    "ConfigError",
    "KdbxConnectionError",
    "KdbxMcpError",
    "KdbxTimeoutError",
    "ProviderError",
    "QuerySafetyError",
    "SqlInterfaceNotLoadedError",
    "StartupCheckError",
    # Settings
    "AppSettings",
    "ConfigService",
    "DatabaseConfig",
    "ServerConfig",
]
