"""
Search orchestrator: the /search request pipeline.

    QueryCache lookup
      └─ miss → embed → retrieve → synthesize ┐ → cache store
                                  summarize  ┘

Rate limiting happens before this, in the route dependency.  A miss
runs as its own task behind ``asyncio.shield`` so a client disconnect
does not cancel provider calls already in flight, and the finished
response still lands in the cache.
"""

from __future__ import annotations

import asyncio
import re
from typing import Protocol

from knowhub.core.errors import UpstreamError
from knowhub.pipeline.cache import QueryCache, build_cache_key
from knowhub.pipeline.summaries import ItemSummarizer
from knowhub.pipeline.synthesis import AnswerSynthesizer
from knowhub.schemas.search import (
    AnswerPayload,
    ResultItem,
    SearchFilters,
    SearchResponse,
    Snippet,
    SortMode,
)
from knowhub.services.vector_store import Retriever
from knowhub.utils.logging import get_logger
from knowhub.utils.timing import Timer

logger = get_logger("knowhub.pipeline.orchestrator")

# Queries asking for fresh material are sorted by date unless the
# client chose a sort explicitly.
_RECENCY_WORDS = re.compile(r"\b(latest|recent|recently|new|newest)\b", re.IGNORECASE)


class EmbeddingClient(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def resolve_sort(query: str, sort_by: SortMode | None) -> SortMode:
    if sort_by is not None:
        return sort_by
    return "date" if _RECENCY_WORDS.search(query) else "relevance"


def snippet_to_item(snippet: Snippet, summary: str) -> ResultItem:
    return ResultItem(
        id=snippet.source_id,
        title=snippet.title,
        type=snippet.type,
        summary=summary or snippet.title,
        country=snippet.country,
        year=snippet.year,
        url=snippet.url,
        score=round(snippet.relevance_score, 4),
    )


class SearchService:
    def __init__(
        self,
        embedder: EmbeddingClient,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        summarizer: ItemSummarizer,
        cache: QueryCache,
    ):
        self.embedder = embedder
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.summarizer = summarizer
        self.cache = cache
        self._inflight: set[asyncio.Task] = set()

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: SortMode | None = None,
    ) -> SearchResponse:
        filters = filters or SearchFilters()
        sort_by = resolve_sort(query, sort_by)
        key = build_cache_key(query, filters, limit, offset, sort_by)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("[SEARCH] Cache hit | key=%s", key)
            return cached.model_copy(update={"cached": True})

        logger.info(
            "[SEARCH] Cache miss | q=%s | filters=%s | sort=%s",
            query[:80],
            filters.active(),
            sort_by,
        )
        task = asyncio.get_running_loop().create_task(
            self._run_pipeline(key, query, filters, limit, offset, sort_by)
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _synthesize(
        self,
        query: str,
        snippets: list[Snippet],
        timings: dict[str, float],
    ) -> AnswerPayload | None:
        try:
            async with Timer("synthesize", sink=timings):
                return await self.synthesizer.synthesize(query, snippets)
        except UpstreamError as e:
            logger.warning("[SEARCH] Synthesis failed, returning results without answer: %s", e)
            return None

    async def _summarize(self, snippets: list[Snippet], timings: dict[str, float]) -> list[str]:
        async with Timer("summarize", sink=timings):
            return await self.summarizer.summarize_all(snippets)

    async def _run_pipeline(
        self,
        key: str,
        query: str,
        filters: SearchFilters,
        limit: int,
        offset: int,
        sort_by: SortMode,
    ) -> SearchResponse:
        timings: dict[str, float] = {}

        async with Timer("embed", sink=timings):
            vector = await self.embedder.embed(query)
        async with Timer("retrieve", sink=timings):
            page = await self.retriever.search(vector, filters, limit, offset, sort_by)

        answer, summaries = await asyncio.gather(
            self._synthesize(query, page.snippets, timings),
            self._summarize(page.snippets, timings),
        )

        response = SearchResponse(
            query=query,
            answer=answer.answer if answer is not None else None,
            items=[snippet_to_item(s, summary) for s, summary in zip(page.snippets, summaries)],
            limit=limit,
            offset=offset,
            sort_by=sort_by,
            has_more=page.has_more,
        )

        if answer is not None:
            self.cache.set(key, response)

        logger.info(
            "[SEARCH] Done | items=%d | bullets=%s | timings=%s",
            len(response.items),
            len(response.answer) if response.answer is not None else "—",
            timings,
        )
        return response

    async def wait_inflight(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
