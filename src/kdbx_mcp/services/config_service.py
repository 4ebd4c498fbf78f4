"""Configuration service for kdbx-mcp.

This module provides the immutable settings objects used by the server and
the database core, and the `ConfigService` that builds them. Values resolve
with the precedence CLI flag > environment variable > ``.env`` file > default.
The ``.env`` layer is loaded with python-dotenv and never overrides variables
already present in the environment.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
import os
from pathlib import Path
from typing import Final, Literal, TypeVar, cast, get_args

import dotenv

from kdbx_mcp.exceptions import ConfigError

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Transport = Literal["stdio", "streamable-http"]

DEFAULT_EMBEDDING_CSV_PATH: Final[str] = str(
    Path(__file__).resolve().parent.parent / "resources" / "embeddings.csv"
)
_TRUE_VALUES: Final[frozenset[str]] = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"false", "0", "no", "off", ""})
_MAX_PORT: Final[int] = 65535

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection and search settings for the KDB-X database."""

    host: str = "127.0.0.1"
    port: int = 5000
    username: str = ""
    password: str = ""
    tls: bool = False
    timeout: float = 1.0
    retry: int = 2
    embedding_csv_path: str = DEFAULT_EMBEDDING_CSV_PATH
    metric: str = "CS"
    k: int = 5
    query_timeout: float = 30.0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def redacted(self) -> dict[str, object]:
        """Return the settings as a dict with the password masked for logging."""
        data = asdict(self)
        if data["password"]:
            data["password"] = "********"  # noqa: S105 - mask, not a secret
        return data


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Settings for the MCP server process."""

    server_name: str = "KDBX_MCP_Server"
    log_level: LogLevel = "INFO"
    transport: Transport = "streamable-http"
    port: int = 8000
    host: str = "127.0.0.1"


@dataclass(frozen=True, slots=True)
class AppSettings:
    """Combined server and database settings."""

    mcp: ServerConfig
    db: DatabaseConfig


def parse_bool(raw: str, *, name: str) -> bool:
    """Parse a boolean flag value such as ``true``/``1``/``no``."""
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean (true/false), got {raw!r}"
    raise ConfigError(msg)


def _parse_int(raw: str, *, name: str, minimum: int, maximum: int | None = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigError(msg) from None
    if value < minimum or (maximum is not None and value > maximum):
        upper = f" and <= {maximum}" if maximum is not None else ""
        msg = f"{name} must be >= {minimum}{upper}, got {value}"
        raise ConfigError(msg)
    return value


def _parse_positive_float(raw: str, *, name: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigError(msg) from None
    if value <= 0:
        msg = f"{name} must be > 0, got {value}"
        raise ConfigError(msg)
    return value


def _parse_choice(raw: str, *, name: str, choices: tuple[str, ...], upper: bool = False) -> str:
    value = raw.strip().upper() if upper else raw.strip()
    if value not in choices:
        msg = f"{name} must be one of {', '.join(choices)}, got {raw!r}"
        raise ConfigError(msg)
    return value


def _resolve(
    overrides: Mapping[str, object | None],
    field: str,
    env_var: str,
    default: T,
    parse: Callable[[str], T],
) -> T:
    """Resolve a single setting: CLI override, then environment, then default."""
    override = overrides.get(field)
    if override is not None:
        return parse(str(override))
    raw = os.getenv(env_var)
    if raw is None or raw == "":
        return default
    return parse(raw)


class ConfigService:
    """Service for building immutable settings from CLI, environment and defaults."""

    @staticmethod
    def load_dotenv() -> None:
        """Load the ``.env`` file found from the working directory upwards.

        Variables already set in the environment are never overridden.
        """
        dotenv.load_dotenv(dotenv.find_dotenv(usecwd=True), override=False)

    @staticmethod
    def load_database_config(overrides: Mapping[str, object | None] | None = None) -> DatabaseConfig:
        """Build a `DatabaseConfig`.

        Args:
            overrides: CLI values keyed by `DatabaseConfig` field name; ``None``
                entries are ignored.

        Returns:
            Resolved database configuration

        Raises:
            ConfigError: If a value fails to parse or is out of range
        """
        ov = overrides or {}
        base = DatabaseConfig()
        return DatabaseConfig(
            host=_resolve(ov, "host", "KDBX_DB_HOST", base.host, str),
            port=_resolve(
                ov,
                "port",
                "KDBX_DB_PORT",
                base.port,
                lambda r: _parse_int(r, name="KDBX_DB_PORT", minimum=1, maximum=_MAX_PORT),
            ),
            username=_resolve(ov, "username", "KDBX_DB_USERNAME", base.username, str),
            password=_resolve(ov, "password", "KDBX_DB_PASSWORD", base.password, str),
            tls=_resolve(ov, "tls", "KDBX_DB_TLS", base.tls, lambda r: parse_bool(r, name="KDBX_DB_TLS")),
            timeout=_resolve(
                ov,
                "timeout",
                "KDBX_DB_TIMEOUT",
                base.timeout,
                lambda r: _parse_positive_float(r, name="KDBX_DB_TIMEOUT"),
            ),
            retry=_resolve(
                ov,
                "retry",
                "KDBX_DB_RETRY",
                base.retry,
                lambda r: _parse_int(r, name="KDBX_DB_RETRY", minimum=0),
            ),
            embedding_csv_path=_resolve(
                ov, "embedding_csv_path", "KDBX_DB_EMBEDDING_CSV_PATH", base.embedding_csv_path, str
            ),
            metric=_resolve(ov, "metric", "KDBX_DB_METRIC", base.metric, str),
            k=_resolve(ov, "k", "KDBX_DB_K", base.k, lambda r: _parse_int(r, name="KDBX_DB_K", minimum=1)),
            query_timeout=_resolve(
                ov,
                "query_timeout",
                "KDBX_DB_QUERY_TIMEOUT",
                base.query_timeout,
                lambda r: _parse_positive_float(r, name="KDBX_DB_QUERY_TIMEOUT"),
            ),
        )

    @staticmethod
    def load_server_config(overrides: Mapping[str, object | None] | None = None) -> ServerConfig:
        """Build a `ServerConfig` with the same precedence rules as the database config."""
        ov = overrides or {}
        base = ServerConfig()
        log_level = _resolve(
            ov,
            "log_level",
            "KDBX_MCP_LOG_LEVEL",
            base.log_level,
            lambda r: _parse_choice(r, name="KDBX_MCP_LOG_LEVEL", choices=get_args(LogLevel), upper=True),
        )
        transport = _resolve(
            ov,
            "transport",
            "KDBX_MCP_TRANSPORT",
            base.transport,
            lambda r: _parse_choice(r, name="KDBX_MCP_TRANSPORT", choices=get_args(Transport)),
        )
        return ServerConfig(
            server_name=_resolve(ov, "server_name", "KDBX_MCP_SERVER_NAME", base.server_name, str),
            log_level=cast(LogLevel, log_level),
            transport=cast(Transport, transport),
            port=_resolve(
                ov,
                "port",
                "KDBX_MCP_PORT",
                base.port,
                lambda r: _parse_int(r, name="KDBX_MCP_PORT", minimum=1, maximum=_MAX_PORT),
            ),
            host=_resolve(ov, "host", "KDBX_MCP_HOST", base.host, str),
        )

    @staticmethod
    def load_settings(
        *,
        mcp_overrides: Mapping[str, object | None] | None = None,
        db_overrides: Mapping[str, object | None] | None = None,
    ) -> AppSettings:
        """Load ``.env`` and resolve both settings objects."""
        ConfigService.load_dotenv()
        return AppSettings(
            mcp=ConfigService.load_server_config(mcp_overrides),
            db=ConfigService.load_database_config(db_overrides),
        )
