"""Prefetch and cache the local embedding models named in an embedding config.

This build-time script downloads the model2vec models used by the local-model
provider so the first search does not pay the download cost. It avoids
importing the ``kdbx_mcp`` package so pykx is not needed during the image
build.

Behavior:
- Reads ``KDBX_DB_EMBEDDING_CSV_PATH`` (or the first CLI argument).
- Collects every dense and sparse-tokenizer model whose provider is
  ``model2vec``/``local-model``; hosted models need no prefetch.
- Uses model2vec's ``StaticModel`` (CPU-only) and triggers a tiny encode to
  materialize caches under ``HF_HOME`` or the default HF cache.
"""

from __future__ import annotations

import logging
import os
import sys

import pandas as pd
from model2vec import StaticModel

LOCAL_PROVIDERS = frozenset({"model2vec", "local-model"})
MODEL_COLUMNS = (
    ("embedding_provider", "embedding_model"),
    ("sparse_tokenizer_provider", "sparse_tokenizer_model"),
)


def local_models(csv_path: str) -> list[str]:
    """Return distinct local model names in file order."""
    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    models: list[str] = []
    for row in frame.to_dict(orient="records"):
        for provider_col, model_col in MODEL_COLUMNS:
            provider = str(row.get(provider_col, "")).strip().lower()
            model = str(row.get(model_col, "")).strip()
            if provider in LOCAL_PROVIDERS and model and model not in models:
                models.append(model)
    return models


def main() -> None:
    """Download and cache every configured local embedding model."""
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger("prefetch_embeddings")

    csv_path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("KDBX_DB_EMBEDDING_CSV_PATH")
    if not csv_path:
        logger.error("Pass a CSV path or set KDBX_DB_EMBEDDING_CSV_PATH")
        raise SystemExit(1)

    cache_dir = os.getenv("HF_HOME") or os.getenv("XDG_CACHE_HOME")
    if cache_dir:
        logger.info("Using cache directory: %s", cache_dir)

    for name in local_models(csv_path):
        logger.info("Prefetching embedding model: %s", name)
        model = StaticModel.from_pretrained(name)
        _ = model.encode(["bootstrap"]).shape
    logger.info("Embedding models cached successfully")


if __name__ == "__main__":  # pragma: no cover - build-time utility
    main()
