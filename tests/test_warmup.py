from __future__ import annotations

import asyncio

from kdbx_mcp.embeddings import warmup as warmup_mod
from kdbx_mcp.embeddings.config_lookup import EmbeddingConfigLookup
from kdbx_mcp.embeddings.providers import ProviderKind, ProviderRegistry
from kdbx_mcp.embeddings.warmup import EmbeddingWarmer, collect_models
from kdbx_mcp.services.state import WarmupPhase

ROWS = [
    "docs,emb,model2vec,potion-a,sp,sp_idx,model2vec,potion-a",
    "news,emb,openai,text-embedding-3-small,,,model2vec,potion-b",
    "more,emb,model2vec,potion-a,,,,",
    "odd,emb,sentence_transformers,mini,,,,",
]


def test_collect_models_dedupes_and_skips_unknown(write_csv) -> None:
    rows = EmbeddingConfigLookup().rows(write_csv(ROWS))
    dense, sparse = collect_models(rows)

    assert dense == [
        (ProviderKind.LOCAL_MODEL, "potion-a"),
        (ProviderKind.HOSTED_API, "text-embedding-3-small"),
    ]
    assert sparse == [
        (ProviderKind.LOCAL_MODEL, "potion-a"),
        (ProviderKind.LOCAL_MODEL, "potion-b"),
    ]


def test_run_preloads_and_records_failures(write_csv, fake_provider_cls) -> None:
    local = fake_provider_cls(ProviderKind.LOCAL_MODEL)
    hosted = fake_provider_cls(ProviderKind.HOSTED_API, fail_preload=True)
    registry = ProviderRegistry({ProviderKind.LOCAL_MODEL: local, ProviderKind.HOSTED_API: hosted})
    warmer = EmbeddingWarmer(write_csv(ROWS), EmbeddingConfigLookup(), registry)
    assert warmer.status().phase is WarmupPhase.IDLE

    asyncio.run(warmer.run())
    state = warmer.status()

    assert state.phase is WarmupPhase.DONE
    assert local.preloaded == ["potion-a", "potion-a", "potion-b"]
    assert state.loaded == (
        "local-model:potion-a",
        "local-model:potion-a",
        "local-model:potion-b",
    )
    assert state.failed == ("hosted-api:text-embedding-3-small",)
    assert state.started_at is not None
    assert state.completed_at is not None


def test_unreadable_config_marks_failed(tmp_path) -> None:
    registry = ProviderRegistry({})
    warmer = EmbeddingWarmer(str(tmp_path / "missing.csv"), EmbeddingConfigLookup(), registry)

    asyncio.run(warmer.run())

    assert warmer.status().phase is WarmupPhase.FAILED
    assert "Failed to read embeddings CSV" in (warmer.status().error_message or "")


def test_stop_cancels_background_task(write_csv) -> None:
    class SlowProvider:
        kind = ProviderKind.LOCAL_MODEL

        async def preload(self, model: str) -> None:
            await asyncio.sleep(10)

        def close(self) -> None:
            pass

    registry = ProviderRegistry({ProviderKind.LOCAL_MODEL: SlowProvider()})  # type: ignore[dict-item]
    warmer = EmbeddingWarmer(write_csv(ROWS[:1]), EmbeddingConfigLookup(), registry)

    async def scenario() -> None:
        task = warmer.start()
        assert warmer.start() is task
        await asyncio.sleep(0)
        await warmer.stop()
        assert task.cancelled()

    asyncio.run(scenario())
    assert warmer.status().phase is WarmupPhase.CANCELLED


def test_unexpected_preload_error_counts_as_failed(write_csv, fake_provider_cls) -> None:
    class BrokenProvider:
        kind = ProviderKind.HOSTED_API

        async def preload(self, model: str) -> None:
            raise KeyError(model)

        def close(self) -> None:
            pass

    local = fake_provider_cls(ProviderKind.LOCAL_MODEL)
    registry = ProviderRegistry(
        {ProviderKind.LOCAL_MODEL: local, ProviderKind.HOSTED_API: BrokenProvider()}  # type: ignore[dict-item]
    )
    warmer = EmbeddingWarmer(write_csv(ROWS), EmbeddingConfigLookup(), registry)

    asyncio.run(warmer.run())
    state = warmer.status()

    assert state.phase is WarmupPhase.DONE
    assert state.failed == ("hosted-api:text-embedding-3-small",)
    assert local.preloaded == ["potion-a", "potion-a", "potion-b"]


def test_unexpected_error_outside_preload_marks_failed(
    write_csv, fake_provider_cls, monkeypatch
) -> None:
    def broken(rows: object) -> object:
        msg = "table"
        raise KeyError(msg)

    monkeypatch.setattr(warmup_mod, "collect_models", broken)
    registry = ProviderRegistry({ProviderKind.LOCAL_MODEL: fake_provider_cls(ProviderKind.LOCAL_MODEL)})
    warmer = EmbeddingWarmer(write_csv(ROWS), EmbeddingConfigLookup(), registry)

    asyncio.run(warmer.run())

    assert warmer.status().phase is WarmupPhase.FAILED
    assert warmer.status().error_message == "'table'"
    assert warmer.status().completed_at is not None
