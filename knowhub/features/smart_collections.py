"""
Smart collections: model-clustered reading lists for the current query.

Query scoped and uncached.  With fewer than three results, or when the
model finds no usable themes, heuristic collections are returned
instead (newest first, cross-country, core reading).
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as SchemaError

from knowhub.core.errors import UpstreamError
from knowhub.prompts.features import FEATURE_SYSTEM_PROMPT, build_insight_clusters_prompt
from knowhub.schemas.features import InsightCluster, SmartCollection, SmartCollectionEntry
from knowhub.schemas.search import SearchFilters, Snippet
from knowhub.services.llm import parse_json_reply
from knowhub.services.vector_store import Retriever
from knowhub.utils.logging import get_logger
from knowhub.utils.text import collapse_whitespace, title_case
from knowhub.utils.timing import timed

logger = get_logger("knowhub.features.smart_collections")

RESULT_POOL = 40
CLUSTER_INPUT = 15
MIN_RESULTS = 3
MAX_COLLECTIONS = 3
MAX_ENTRIES = 4
HIGHLIGHT_CHARS = 160


def to_entry(snippet: Snippet) -> SmartCollectionEntry:
    highlight = (
        collapse_whitespace(snippet.text[:HIGHLIGHT_CHARS]) + "…"
        if snippet.has_text
        else snippet.title
    )
    return SmartCollectionEntry(
        id=snippet.source_id,
        title=snippet.title,
        type=snippet.type,
        url=snippet.url,
        highlight=highlight,
        country=snippet.country,
        year=snippet.year,
    )


def build_timeframe(entries: list[SmartCollectionEntry]) -> str | None:
    years = [e.year for e in entries if e.year is not None]
    if not years:
        return None
    oldest, newest = min(years), max(years)
    if oldest == newest:
        return str(newest)
    return f"{oldest}–{newest}"


def fallback_collections(results: list[Snippet]) -> list[SmartCollection]:
    if not results:
        return []

    collections: list[SmartCollection] = []

    recency = sorted(
        (s for s in results if s.year is not None),
        key=lambda s: s.year,
        reverse=True,
    )[:MAX_ENTRIES]
    if recency:
        entries = [to_entry(s) for s in recency]
        collections.append(SmartCollection(
            id="fallback-recency",
            name="Fresh Momentum",
            description="The newest releases answering this question.",
            timeframe=build_timeframe(entries),
            actionable="Use these to brief stakeholders on the latest shifts.",
            novelty=0.45,
            items=entries,
        ))

    parallels = [s for s in results if s.country][:MAX_ENTRIES]
    if parallels:
        entries = [to_entry(s) for s in parallels]
        collections.append(SmartCollection(
            id="fallback-parallel",
            name="Global Parallels",
            description="Cross-country examples mirroring your request.",
            timeframe=build_timeframe(entries),
            actionable="Compare how peers addressed similar challenges.",
            novelty=0.35,
            items=entries,
        ))

    if not collections:
        entries = [to_entry(s) for s in results[:MAX_ENTRIES]]
        collections.append(SmartCollection(
            id="fallback-core",
            name="Core Reading",
            description="Essential sources surfaced by the current query.",
            timeframe=build_timeframe(entries),
            novelty=0.3,
            items=entries,
        ))

    return collections[:MAX_COLLECTIONS]


def parse_clusters(reply: str) -> list[InsightCluster]:
    data = parse_json_reply(reply)
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of clusters")
    clusters = []
    for raw in data:
        try:
            clusters.append(InsightCluster.model_validate(raw))
        except SchemaError as e:
            logger.debug("Skipping malformed cluster: %s", e)
    return clusters


class SmartCollectionsGenerator:
    def __init__(self, embedder: Any, retriever: Retriever, llm: Any):
        self.embedder = embedder
        self.retriever = retriever
        self.llm = llm

    async def extract_clusters(self, results: list[Snippet]) -> list[InsightCluster]:
        """Model-identified themes; empty on any model or parse failure."""
        try:
            reply = await self.llm.complete(
                build_insight_clusters_prompt(results[:CLUSTER_INPUT]),
                system=FEATURE_SYSTEM_PROMPT,
                temperature=0.4,
                max_tokens=1200,
            )
            return parse_clusters(reply)
        except (UpstreamError, ValueError) as e:
            logger.warning("[COLLECTIONS] Insight extraction failed: %s", e)
            return []

    @timed("smart_collections")
    async def generate(self, query: str, filters: SearchFilters | None = None) -> list[SmartCollection]:
        vector = await self.embedder.embed(query)
        page = await self.retriever.search(vector, filters or SearchFilters(), RESULT_POOL, 0)
        results = page.snippets

        if len(results) < MIN_RESULTS:
            return fallback_collections(results)

        clusters = await self.extract_clusters(results)
        by_title: dict[str, Snippet] = {}
        for snippet in results:
            by_title[snippet.title] = snippet

        collections: list[SmartCollection] = []
        for index, cluster in enumerate(clusters):
            matched = [by_title[t] for t in cluster.documents if t in by_title][:MAX_ENTRIES]
            if not matched:
                continue
            entries = [to_entry(s) for s in matched]
            collections.append(SmartCollection(
                id=f"cluster-{index}",
                name=title_case(cluster.theme),
                description=cluster.key_insight,
                timeframe=build_timeframe(entries),
                actionable=cluster.actionable,
                novelty=cluster.novelty,
                items=entries,
            ))
            if len(collections) == MAX_COLLECTIONS:
                break

        if collections:
            logger.info("[COLLECTIONS] %d clustered collections", len(collections))
            return collections
        return fallback_collections(results)
