"""MCP prompts."""

from __future__ import annotations

from .table_analysis import build_table_analysis_prompt, register_prompts

__all__ = [
    "build_table_analysis_prompt",
    "register_prompts",
]
