"""Services: settings, the KDB-X connection pool, startup checks and warmup state."""

from __future__ import annotations

from .config_service import AppSettings, ConfigService, DatabaseConfig, ServerConfig
from .connection_manager import ConnectionPool, KdbxConnection

__all__ = [
    "AppSettings",
    "ConfigService",
    "ConnectionPool",
    "DatabaseConfig",
    "KdbxConnection",
    "ServerConfig",
]
