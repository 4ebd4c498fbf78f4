"""Conversion and text rendering of q results."""

from __future__ import annotations

from .result_formatter import (
    normalize_for_display,
    render_metadata,
    render_table,
    strip_vector_columns,
    to_records,
)

__all__ = [
    "normalize_for_display",
    "render_metadata",
    "render_table",
    "strip_vector_columns",
    "to_records",
]
