"""Best-effort preloading of embedding models.

`EmbeddingWarmer` reads the embedding-config table, collects the distinct
(provider, model) pairs used for dense embeddings and sparse tokenizers, and
asks each provider to preload them. It runs as a detached asyncio task started
in the server lifespan; failures are logged and recorded in a `WarmupState`
snapshot but never affect server readiness.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import time

from fastmcp.utilities.logging import get_logger

from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.embeddings.providers import ProviderKind, ProviderRegistry, provider_kind
from kdbx_mcp.exceptions import KdbxMcpError
from kdbx_mcp.services.state import WarmupPhase, WarmupState

_logger = get_logger(__name__)

ModelKey = tuple[ProviderKind, str]


def collect_models(rows: list[dict[str, str | None]]) -> tuple[list[ModelKey], list[ModelKey]]:
    """Return distinct dense and sparse (provider, model) pairs in file order.

    Rows naming an unknown provider are skipped with a warning.
    """
    dense: list[ModelKey] = []
    sparse: list[ModelKey] = []
    for row in rows:
        pairs = (
            (dense, row.get("embedding_provider"), row.get("embedding_model")),
            (sparse, row.get("sparse_tokenizer_provider"), row.get("sparse_tokenizer_model")),
        )
        for target, provider_name, model in pairs:
            if not provider_name or not model:
                continue
            try:
                key = (provider_kind(provider_name), model)
            except KdbxMcpError as exc:
                _logger.warning("Skipping preload for table %s: %s", row.get("table"), exc)
                continue
            if key not in target:
                target.append(key)
    return dense, sparse


class EmbeddingWarmer:
    """Preloads configured embedding models once per server lifetime."""

    def __init__(
        self,
        csv_path: str,
        lookup: EmbeddingConfigLookup,
        providers: ProviderRegistry,
    ) -> None:
        self._csv_path = csv_path
        self._lookup = lookup
        self._providers = providers
        self._state = WarmupState(phase=WarmupPhase.IDLE)
        self._task: asyncio.Task[None] | None = None

    def status(self) -> WarmupState:
        """Return a snapshot of the warmup state."""
        return self._state

    def start(self) -> asyncio.Task[None]:
        """Start warmup in the background exactly once and return the task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="embedding-warmup")
        return self._task

    async def stop(self) -> None:
        """Cancel a running warmup task and wait for it to finish."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            _logger.info("Embedding model preloading cancelled")

    async def _preload(self, key: ModelKey, label: str) -> bool:
        kind, model = key
        try:
            await self._providers.get(kind).preload(model)
        except KdbxMcpError as exc:
            _logger.warning("Failed to preload %s %s:%s - %s", label, kind.value, model, exc)
            return False
        except Exception:  # noqa: BLE001 - one bad model must not end the warmup
            _logger.warning(
                "Failed to preload %s %s:%s", label, kind.value, model, exc_info=True
            )
            return False
        _logger.info("Preloaded %s %s:%s", label, kind.value, model)
        return True

    async def run(self) -> None:
        """Preload every configured model; never raises except on cancellation."""
        self._state = replace(self._state, phase=WarmupPhase.RUNNING, started_at=time.time())
        try:
            rows = self._lookup.rows(self._csv_path)
        except KdbxMcpError as exc:
            self._state = replace(
                self._state,
                phase=WarmupPhase.FAILED,
                error_message=str(exc),
                completed_at=time.time(),
            )
            _logger.warning("Failed to preload embedding models: %s", exc)
            _logger.warning("Models will be loaded on first use, which may cause delays")
            return

        _logger.info("Preloading embedding models...")
        loaded: list[str] = []
        failed: list[str] = []
        try:
            dense, sparse = collect_models(rows)
            for label, keys in (("model", dense), ("sparse tokenizer", sparse)):
                for key in keys:
                    name = f"{key[0].value}:{key[1]}"
                    (loaded if await self._preload(key, label) else failed).append(name)
        except asyncio.CancelledError:
            self._state = replace(
                self._state,
                phase=WarmupPhase.CANCELLED,
                loaded=tuple(loaded),
                failed=tuple(failed),
                completed_at=time.time(),
            )
            raise
        except Exception as exc:  # noqa: BLE001 - detached task records its own failure
            self._state = replace(
                self._state,
                phase=WarmupPhase.FAILED,
                loaded=tuple(loaded),
                failed=tuple(failed),
                error_message=str(exc),
                completed_at=time.time(),
            )
            _logger.error("Embedding model preloading failed", exc_info=True)
            return

        self._state = replace(
            self._state,
            phase=WarmupPhase.DONE,
            loaded=tuple(loaded),
            failed=tuple(failed),
            completed_at=time.time(),
        )
        _logger.info(
            "Model preloading completed (%d loaded, %d failed)", len(loaded), len(failed)
        )
