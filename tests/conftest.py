"""Shared fakes for tests that run without a KDB-X server or embedding models."""

from __future__ import annotations

import os

# pykx must not prompt for a licence when the package is imported.
os.environ.setdefault("PYKX_UNLICENSED", "true")

from collections.abc import Callable  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from kdbx_mcp.embeddings.providers import ProviderKind  # noqa: E402
from kdbx_mcp.exceptions import ProviderError  # noqa: E402
from kdbx_mcp.services.config_service import DatabaseConfig  # noqa: E402

CSV_HEADER = (
    "table,embedding_column,embedding_provider,embedding_model,"
    "sparse_embedding_column,sparse_index_name,sparse_tokenizer_provider,sparse_tokenizer_model\n"
)

Handler = Callable[..., Any]


class FakePool:
    """Stands in for `ConnectionPool`: records calls and answers via a handler."""

    def __init__(self, config: DatabaseConfig, handler: Handler | None = None) -> None:
        self.config = config
        self.handler = handler or (lambda expr, *args: None)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    async def call(self, expr: str, *args: Any) -> Any:
        self.calls.append((expr, args))
        result = self.handler(expr, *args)
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class FakeProvider:
    """Deterministic embedding provider that records every request."""

    def __init__(self, kind: ProviderKind, *, fail_preload: bool = False) -> None:
        self.kind = kind
        self.fail_preload = fail_preload
        self.dense_calls: list[tuple[str, str]] = []
        self.sparse_calls: list[tuple[str, str]] = []
        self.preloaded: list[str] = []
        self.closed = False

    async def dense_embed(self, text: str, model: str) -> list[float]:
        self.dense_calls.append((text, model))
        return [0.1, 0.2, 0.3]

    async def sparse_embed(self, text: str, model: str) -> dict[int, float]:
        self.sparse_calls.append((text, model))
        return {7: 1.0, 11: 2.0}

    async def preload(self, model: str) -> None:
        if self.fail_preload:
            msg = f"cannot load {model}"
            raise ProviderError(msg)
        self.preloaded.append(model)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[[list[str]], str]:
    """Write an embedding-config CSV with the given data lines; return its path."""

    def _write(lines: list[str]) -> str:
        path = tmp_path / "embeddings.csv"
        path.write_text(CSV_HEADER + "".join(f"{line}\n" for line in lines), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def db_config() -> Callable[..., DatabaseConfig]:
    def _make(**kwargs: Any) -> DatabaseConfig:
        return DatabaseConfig(**kwargs)

    return _make


@pytest.fixture
def fake_pool_cls() -> type[FakePool]:
    return FakePool


@pytest.fixture
def fake_provider_cls() -> type[FakeProvider]:
    return FakeProvider
