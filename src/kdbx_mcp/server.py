"""FastMCP server implementation for kdbx-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from kdbx_mcp.embeddings import EmbeddingConfigLookup, EmbeddingWarmer, ProviderRegistry
from kdbx_mcp.execute.mcp_tools import register_run_sql_query_tool
from kdbx_mcp.prompts import register_prompts
from kdbx_mcp.resources import register_resources
from kdbx_mcp.search import SearchOrchestrator, register_search_tools
from kdbx_mcp.services.config_service import AppSettings
from kdbx_mcp.services.connection_manager import ConnectionPool

_logger = get_logger(__name__)

INSTRUCTIONS = (
    "This server gives read-only access to a KDB-X database: SQL SELECT queries, "
    "vector similarity and hybrid search over configured tables, a tables overview "
    "resource and SQL guidance for KDB-X."
)


@dataclass(slots=True)
class ServerComponents:
    """Objects shared by every request handler of one server instance."""

    pool: ConnectionPool
    lookup: EmbeddingConfigLookup
    providers: ProviderRegistry
    warmer: EmbeddingWarmer
    ai_libs_available: bool


def _log_registered(kind: str, names: list[str]) -> None:
    _logger.info("Registered %d %s: %s", len(names), kind, ", ".join(names) or "none")


def build_server(
    settings: AppSettings,
    *,
    ai_libs_available: bool,
    pool: ConnectionPool | None = None,
    providers: ProviderRegistry | None = None,
) -> tuple[FastMCP, ServerComponents]:
    """Create the FastMCP server and register tools, resources and prompts.

    Search tools are registered only when the AI libraries are loaded in
    KDB-X; embedding warmup is likewise skipped without them.
    """
    lookup = EmbeddingConfigLookup()
    registry = providers or ProviderRegistry()
    components = ServerComponents(
        pool=pool or ConnectionPool(settings.db),
        lookup=lookup,
        providers=registry,
        warmer=EmbeddingWarmer(settings.db.embedding_csv_path, lookup, registry),
        ai_libs_available=ai_libs_available,
    )

    @asynccontextmanager
    async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
        """Start model warmup; on shutdown stop it and release the connection."""
        if components.ai_libs_available:
            _logger.info("Starting embedding model warmup in background")
            components.warmer.start()
        try:
            yield
        finally:
            _logger.info("Shutting down %s", settings.mcp.server_name)
            await components.warmer.stop()
            components.pool.close()
            components.providers.close()

    mcp = FastMCP(name=settings.mcp.server_name, instructions=INSTRUCTIONS, lifespan=lifespan)

    _logger.info("=" * 60)
    _logger.info("Registering MCP components for %s", settings.mcp.server_name)
    _logger.info("=" * 60)
    tools = [register_run_sql_query_tool(mcp, pool=components.pool)]
    if ai_libs_available:
        orchestrator = SearchOrchestrator(components.pool, components.lookup, components.providers)
        tools.extend(register_search_tools(mcp, orchestrator=orchestrator))
    else:
        _logger.warning(
            "AI libraries unavailable; skipped tools: kdbx_similarity_search, kdbx_hybrid_search"
        )
    _log_registered("tool(s)", tools)
    _log_registered(
        "resource(s)", register_resources(mcp, pool=components.pool, lookup=components.lookup)
    )
    _log_registered("prompt(s)", register_prompts(mcp))

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(_request: Request) -> JSONResponse:  # pyright: ignore[reportUnusedFunction]
        return JSONResponse({"status": "healthy", "service": settings.mcp.server_name})

    _ = health_check
    return mcp, components
