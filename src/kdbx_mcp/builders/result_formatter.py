"""Result shaping and plain-text rendering.

Converts q results into JSON-friendly row records, strips internal embedding
columns, normalises temporal values to ISO-8601 strings, and renders
fixed-width tables and schema listings for the tables-overview resource.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, time, timedelta
from typing import Any

from fastmcp.utilities.logging import get_logger
import numpy as np
import pandas as pd

from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.exceptions import KdbxMcpError

_logger = get_logger(__name__)

Row = dict[str, Any]


def to_python(obj: Any) -> Any:
    """Convert a pykx object to its Python equivalent; pass others through."""
    return obj.py() if hasattr(obj, "py") else obj


def _plain(value: Any) -> Any:
    """Convert numpy/q cell values to plain Python values."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value)
    if isinstance(value, np.timedelta64):
        return pd.Timedelta(value)
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def to_records(obj: Any) -> list[Row]:
    """Turn a q table, DataFrame or sequence of mappings into row records.

    Column order is preserved. Keyed tables are unkeyed first.
    """
    if obj is None:
        return []
    frame = obj.pd() if hasattr(obj, "pd") else obj
    if isinstance(frame, pd.DataFrame):
        if isinstance(frame.index, pd.MultiIndex) or frame.index.name is not None:
            frame = frame.reset_index()
        records = frame.to_dict(orient="records")
        return [{str(k): _plain(v) for k, v in rec.items()} for rec in records]
    return [{str(k): _plain(v) for k, v in dict(row).items()} for row in frame]


def _iso(value: Any) -> Any:
    if isinstance(value, timedelta):
        return pd.Timedelta(value).isoformat()
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    return value


def normalize_for_display(rows: Iterable[Mapping[str, Any]]) -> list[Row]:
    """Render temporal and duration cells as ISO-8601 strings."""
    return [{key: _iso(value) for key, value in row.items()} for row in rows]


def strip_vector_columns(
    rows: Sequence[Mapping[str, Any]],
    table: str,
    csv_path: str,
    lookup: EmbeddingConfigLookup,
) -> list[Row]:
    """Remove the configured dense and sparse embedding columns from every row.

    Tables without a usable embedding configuration are returned unchanged.
    """
    try:
        config = lookup.resolve(table, csv_path)
    except KdbxMcpError as exc:
        _logger.debug("Could not get embedding config for table %s: %s", table, exc)
        return [dict(row) for row in rows]

    drop = set(config.vector_columns)
    if drop and rows and drop & set(rows[0]):
        _logger.debug("Removing embedding column(s) %s from %s results", sorted(drop), table)
    return [{key: value for key, value in row.items() if key not in drop} for row in rows]


def normalize_search_result(
    rows: Sequence[Mapping[str, Any]],
    table: str,
    csv_path: str,
    lookup: EmbeddingConfigLookup,
) -> list[Row]:
    """Normalise temporals, then strip vector columns."""
    return strip_vector_columns(normalize_for_display(rows), table, csv_path, lookup)


def render_table(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as a left-aligned, fixed-width text table."""
    if not rows:
        return "No data"
    headers = [str(h) for h in rows[0]]
    cells = [["" if row.get(h) is None else str(row.get(h)) for h in headers] for row in rows]
    widths = [max(len(h), *(len(r[i]) for r in cells)) for i, h in enumerate(headers)]

    def fmt(values: Sequence[str]) -> str:
        return "  " + " | ".join(v.ljust(widths[i]) for i, v in enumerate(values))

    lines = [fmt(headers), "  " + "-|-".join("-" * w for w in widths)]
    lines.extend(fmt(r) for r in cells)
    return "\n".join(lines)


def render_metadata(record: Mapping[str, Any]) -> str:
    """Render a column -> {t, f, a} schema mapping, one line per column."""
    lines: list[str] = []
    for key, value in record.items():
        if isinstance(value, Mapping):
            t = "" if value.get("t") is None else str(value.get("t"))
            f = "" if value.get("f") is None else str(value.get("f"))
            a = "" if value.get("a") is None else str(value.get("a"))
            lines.append(f"  {key!s:<20} | type={t:<3} | f={f:<5} | a={a}")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)
