"""
Query embedding.

Two providers, selected by ``EMBEDDING_PROVIDER``:
  - ``sentence-transformers``: local SentenceTransformer model, encoded
    in the default thread executor so the event loop is not blocked.
  - ``openai``: the embeddings endpoint with a fixed output dimension
    matching the index.

Vectors are per request and never persisted.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import openai
from sentence_transformers import SentenceTransformer

from knowhub.core.config import Settings
from knowhub.core.errors import UpstreamError
from knowhub.services.llm import get_openai_client
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.services.embedding")

_model_lock = threading.Lock()
_models: dict[str, SentenceTransformer] = {}


def get_embedding_model(name: str) -> SentenceTransformer:
    """Return the cached SentenceTransformer for ``name``."""
    model = _models.get(name)
    if model is not None:
        return model
    with _model_lock:
        if name not in _models:
            logger.info("Loading embedding model %s", name)
            _models[name] = SentenceTransformer(name)
        return _models[name]


class Embedder:
    """Turns query text into a fixed-length vector."""

    def __init__(self, config: Settings, openai_client: Any | None = None):
        self.provider = config.embedding_provider
        self._config = config
        self._openai_client = openai_client
        if self.provider not in ("sentence-transformers", "openai"):
            raise ValueError(f"Unknown embedding provider: {self.provider}")

    async def embed(self, text: str) -> list[float]:
        if self.provider == "openai":
            return await self._embed_openai(text)
        return await self._embed_local(text)

    async def _embed_local(self, text: str) -> list[float]:
        name = self._config.embedding_model

        def _encode() -> list[float]:
            # show_progress_bar=False keeps tqdm off stderr
            return get_embedding_model(name).encode(text, show_progress_bar=False).tolist()

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, _encode)
        except Exception as e:
            raise UpstreamError("embedding", str(e)) from e

    async def _embed_openai(self, text: str) -> list[float]:
        client = self._openai_client or get_openai_client(self._config)
        try:
            response = await client.embeddings.create(
                model=self._config.openai_embedding_model,
                input=text,
                dimensions=self._config.embedding_dimensions,
            )
        except openai.OpenAIError as e:
            raise UpstreamError("embedding", str(e)) from e
        return list(response.data[0].embedding)
