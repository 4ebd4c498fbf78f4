"""Connection management for the KDB-X database.

Provides `ConnectionPool`, a size-one pool owning the single long-lived IPC
connection of the process. The pool is constructed once per server, passed
explicitly to every request path, and closed during FastMCP lifespan shutdown.

Concurrency model:
- Connection establishment is serialised behind one ``asyncio.Lock``; callers
  that arrive while a connect is in flight wait for it and reuse its handle.
- pykx sync connections block, so remote calls run in worker threads. A second
  lock keeps calls on the shared socket strictly sequential, and each call is
  bounded by ``DatabaseConfig.query_timeout``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from fastmcp.utilities.logging import get_logger
import pykx as kx

from kdbx_mcp.exceptions import KdbxConnectionError, KdbxTimeoutError
from kdbx_mcp.services.config_service import DatabaseConfig

_logger = get_logger(__name__)

# Errors a connect attempt may raise: socket failures, q-side rejections
# ('access for bad credentials) and pykx handshake timeouts.
CONNECT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    TimeoutError,
    kx.exceptions.QError,
)


class RemoteHandle(Protocol):
    """Minimal interface of a synchronous q IPC handle."""

    def __call__(self, query: str, *args: Any) -> Any:  # pragma: no cover - protocol
        ...

    def close(self) -> None:  # pragma: no cover - protocol
        ...


Connector = Callable[[DatabaseConfig], RemoteHandle]
Sleeper = Callable[[float], Awaitable[None]]


def open_qconnection(config: DatabaseConfig) -> RemoteHandle:
    """Open a pykx synchronous IPC connection using the database settings."""
    return kx.SyncQConnection(
        host=config.host,
        port=config.port,
        username=config.username,
        password=config.password,
        timeout=float(config.timeout),
        tls=config.tls,
    )


class KdbxConnection:
    """A single IPC connection with an explicit connected flag."""

    def __init__(self, handle: RemoteHandle) -> None:
        self._handle = handle
        self._connected = True

    @property
    def connected(self) -> bool:
        return self._connected

    def query(self, expr: str, *args: Any) -> Any:
        """Run ``expr`` with ``args`` on the remote process (blocking)."""
        if not self._connected:
            msg = "Not connected to KDB-X"
            raise KdbxConnectionError(msg)
        return self._handle(expr, *args)

    def close(self) -> None:
        """Close the handle. Safe to call more than once."""
        if not self._connected:
            return
        self._connected = False
        try:
            self._handle.close()
        except (OSError, kx.exceptions.QError) as exc:
            _logger.debug("Ignoring error while closing KDB-X handle: %s", exc)


class ConnectionPool:
    """Owner of the process-wide KDB-X connection (pool size 1).

    This is the only object that creates, caches or discards the connection.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        connector: Connector = open_qconnection,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config
        self._connector = connector
        self._sleep = sleep
        self._connection: KdbxConnection | None = None
        self._connect_lock = asyncio.Lock()
        self._call_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    async def acquire(self) -> KdbxConnection:
        """Return the cached connection, connecting first if needed.

        Returns:
            A connected `KdbxConnection`

        Raises:
            KdbxConnectionError: If every connect attempt failed
        """
        conn = self._connection
        if conn is not None and conn.connected:
            return conn

        async with self._connect_lock:
            # Another caller may have finished connecting while we waited.
            conn = self._connection
            if conn is not None and conn.connected:
                return conn
            if conn is not None:
                _logger.warning("KDB-X connection was closed. Reinitializing...")
                self._connection = None
            self._connection = await self._connect_with_retry()
            return self._connection

    async def _connect_with_retry(self) -> KdbxConnection:
        cfg = self.config
        attempts = cfg.retry + 1
        last_error: BaseException | None = None
        _logger.info("Connecting to KDB-X at %s (tls=%s)", cfg.address, cfg.tls)

        for attempt in range(1, attempts + 1):
            try:
                handle = await asyncio.to_thread(self._connector, cfg)
            except CONNECT_ERRORS as exc:
                last_error = exc
                _logger.warning(
                    "KDB-X connectivity attempt %d/%d failed: %s", attempt, attempts, exc
                )
                if attempt < attempts:
                    await self._sleep(1.0 * attempt)
            else:
                _logger.info("Connected to KDB-X at %s on attempt %d", cfg.address, attempt)
                return KdbxConnection(handle)

        _logger.error("Failed to connect to KDB-X at %s", cfg.address)
        msg = f"Failed to connect to KDB-X at {cfg.address} after {attempts} attempt(s): {last_error}"
        raise KdbxConnectionError(msg) from last_error

    async def call(self, expr: str, *args: Any) -> Any:
        """Run a remote call through the shared connection.

        Failures after a successful connect are surfaced immediately; only the
        connect itself is retried.

        Raises:
            KdbxConnectionError: If no connection could be established
            KdbxTimeoutError: If the call exceeded ``query_timeout``
        """
        conn = await self.acquire()
        async with self._call_lock:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(conn.query, expr, *args),
                    timeout=self.config.query_timeout,
                )
            except TimeoutError as exc:
                self._discard(conn, reason="timeout")
                msg = (
                    f"KDB-X call to {self.config.address} timed out after "
                    f"{self.config.query_timeout:g}s"
                )
                raise KdbxTimeoutError(msg) from exc
            except OSError:
                self._discard(conn, reason="socket error")
                raise

    def _discard(self, conn: KdbxConnection, *, reason: str) -> None:
        """Drop a connection detected as unusable so the next acquire reconnects."""
        _logger.warning("Discarding KDB-X connection to %s (%s)", self.config.address, reason)
        conn.close()
        if self._connection is conn:
            self._connection = None

    def close(self) -> None:
        """Close and forget the cached connection. Idempotent."""
        conn = self._connection
        self._connection = None
        if conn is not None:
            conn.close()
            _logger.info("KDB-X connection to %s closed", self.config.address)
