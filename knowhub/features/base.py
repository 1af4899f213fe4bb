"""
Base class for the corpus-wide, TTL-cached generators
(quick topics and starter questions).

    generate()   -> cached value, or sample corpus + model call
    invalidate() -> drop the cached value
    refresh()    -> invalidate() + generate()

A failed generation returns the static fallback and leaves the cache
empty, so the next request tries the model again.
"""

from __future__ import annotations

import asyncio
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from knowhub.core.errors import UpstreamError
from knowhub.features.cache import FeatureCache
from knowhub.prompts.features import FEATURE_SYSTEM_PROMPT
from knowhub.schemas.search import Snippet
from knowhub.services.llm import parse_json_reply
from knowhub.services.vector_store import Retriever
from knowhub.utils.logging import get_logger
from knowhub.utils.retry import with_retry
from knowhub.utils.text import truncate_words

logger = get_logger("knowhub.features.base")

ItemT = TypeVar("ItemT", bound=BaseModel)

SAMPLE_SIZE = 30
MIN_ITEMS = 4


class CorpusFeatureGenerator(Generic[ItemT]):
    """Subclasses set ``name``, ``item_model``, ``text_field``, ``max_words``."""

    name: str = "feature"
    item_model: type[BaseModel]
    text_field: str
    max_words: int

    def __init__(
        self,
        retriever: Retriever,
        llm: Any,
        cache: FeatureCache,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
    ):
        self.retriever = retriever
        self.llm = llm
        self.cache = cache
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self._generate_lock = asyncio.Lock()

    def build_prompt(self, documents: list[Snippet]) -> str:
        raise NotImplementedError

    def fallback(self) -> list[ItemT]:
        raise NotImplementedError

    def parse(self, reply: str) -> list[ItemT]:
        """Validate the model's JSON array; raises ValueError when unusable."""
        data = parse_json_reply(reply)
        if not isinstance(data, list) or len(data) < MIN_ITEMS:
            raise ValueError(f"expected a JSON array of at least {MIN_ITEMS} items")

        items: list[ItemT] = []
        for raw in data:
            try:
                item = self.item_model.model_validate(raw)
            except SchemaError as e:
                raise ValueError(f"invalid {self.name} item: {e}") from e
            text = truncate_words(getattr(item, self.text_field), self.max_words)
            items.append(item.model_copy(update={self.text_field: text}))
        return items

    async def _ask_model(self, documents: list[Snippet]) -> list[ItemT]:
        reply = await self.llm.complete(
            self.build_prompt(documents),
            system=FEATURE_SYSTEM_PROMPT,
            temperature=0.7,
        )
        return self.parse(reply)

    async def generate(self) -> list[ItemT]:
        cached = self.cache.get()
        if cached is not None:
            return cached

        async with self._generate_lock:
            cached = self.cache.get()
            if cached is not None:
                return cached

            try:
                documents = await self.retriever.sample(SAMPLE_SIZE)
                items = await with_retry(
                    self._ask_model,
                    documents,
                    max_attempts=self.retry_attempts,
                    base_delay=self.retry_base_delay,
                    retry_on=(UpstreamError, ValueError),
                )
            except (UpstreamError, ValueError) as e:
                logger.error("[%s] Generation failed, serving fallback: %s", self.name.upper(), e)
                return self.fallback()

            self.cache.set(items)
            logger.info("[%s] Generated %d items", self.name.upper(), len(items))
            return items

    def invalidate(self) -> None:
        self.cache.invalidate()
        logger.info("[%s] Cache invalidated", self.name.upper())

    async def refresh(self) -> list[ItemT]:
        self.invalidate()
        return await self.generate()
