"""Search tool package: similarity and hybrid search over KDB-X tables."""

from __future__ import annotations

from .mcp_tools import register_search_tools
from .models import SearchResult
from .runner import SearchOrchestrator

__all__ = [
    "SearchOrchestrator",
    "SearchResult",
    "register_search_tools",
]
