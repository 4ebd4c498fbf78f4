"""MCP resources: tables overview and SQL guidance (the guidance text ships here)."""

from __future__ import annotations

from .mcp_resources import GUIDANCE_URI, TABLES_URI, register_resources

__all__ = [
    "GUIDANCE_URI",
    "TABLES_URI",
    "register_resources",
]
