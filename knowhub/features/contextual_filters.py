"""
Contextual filter suggestions.

Intent analysis (model) runs concurrently with the query embedding;
the retrieved results then drive topic/country/year aggregates, one
spotlight suggestion and a handful of supporting ones.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as SchemaError

from knowhub.core.errors import UpstreamError
from knowhub.prompts.features import FEATURE_SYSTEM_PROMPT, build_intent_prompt
from knowhub.schemas.features import (
    FilterSuggestion,
    FilterSuggestionsResponse,
    MetadataInsights,
    QueryIntent,
    SuggestionFilters,
    TimelineInsight,
    ValueCount,
)
from knowhub.schemas.search import SearchFilters, Snippet
from knowhub.services.llm import parse_json_reply
from knowhub.services.vector_store import Retriever
from knowhub.utils.logging import get_logger
from knowhub.utils.text import slugify
from knowhub.utils.timing import timed

logger = get_logger("knowhub.features.contextual_filters")

RESULT_POOL = 30
TOP_N = 3


@dataclass
class YearInsights:
    newest: int | None = None
    oldest: int | None = None
    distribution: Counter = field(default_factory=Counter)


def normalize_type(value: Any) -> str | None:
    """Models return the suggested type as a string, a list or {"value": ...}."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
        return None
    if isinstance(value, dict):
        inner = value.get("value")
        return inner.strip() if isinstance(inner, str) and inner.strip() else None
    return None


def fallback_intent(query: str) -> QueryIntent:
    return QueryIntent(category="research", expanded_query=query, confidence=0.5)


def parse_intent(reply: str, query: str) -> QueryIntent:
    data = parse_json_reply(reply)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    suggested = data.get("suggestedFilters")
    if isinstance(suggested, dict):
        data["suggestedFilters"] = {**suggested, "type": normalize_type(suggested.get("type"))}
    else:
        data.pop("suggestedFilters", None)
    data.setdefault("expandedQuery", query)
    try:
        return QueryIntent.model_validate(data)
    except SchemaError as e:
        raise ValueError(f"invalid intent: {e}") from e


def aggregate_counts(results: list[Snippet], field_name: str) -> list[ValueCount]:
    counts = Counter(getattr(s, field_name) for s in results if getattr(s, field_name))
    # most_common keeps first-seen order among equal counts
    return [ValueCount(value=v, count=c) for v, c in counts.most_common()]


def aggregate_years(results: list[Snippet]) -> YearInsights:
    years = [s.year for s in results if s.year is not None]
    if not years:
        return YearInsights()
    return YearInsights(newest=max(years), oldest=min(years), distribution=Counter(years))


def timeline_summary(years: YearInsights) -> str:
    newest, oldest = years.newest, years.oldest
    if newest is None or oldest is None:
        return "Publication dates are scarce; consider broadening the timeframe."
    if newest == oldest:
        return f"Evidence concentrates in {newest}."

    newest_count = years.distribution.get(newest, 0)
    oldest_count = years.distribution.get(oldest, 0)
    if newest_count > oldest_count:
        return f"Insights stretch {oldest}–{newest}, with momentum building in {newest}."
    if oldest_count > newest_count:
        return (
            f"The richest material sits between {oldest} and {newest}; "
            "revisit the early groundwork."
        )
    return f"Coverage runs {oldest}–{newest}, evenly balanced across the years."


def build_spotlight(intent: QueryIntent, first: Snippet | None) -> FilterSuggestion | None:
    intent_type = normalize_type(intent.suggested_filters.type)

    if not intent_type:
        doc_type = normalize_type(first.type) if first else None
        if not doc_type:
            return None
        return FilterSuggestion(
            id="spotlight-top-type",
            label=f"Lean into {doc_type.lower()}s",
            description="Keeps the lens on the dominant document format surfacing for this query.",
            filters=SuggestionFilters(topic=doc_type),
            tone="spotlight",
            confidence=0.55,
        )

    lowered = intent_type.lower()
    need = intent.implicit_needs[0] if intent.implicit_needs else None
    if need:
        description = f"Anchors the search in {lowered}s so you can address {need.lower()}."
    else:
        description = f"Keeps the focus aligned with the intent we detected: structured {lowered} guidance."

    return FilterSuggestion(
        id="spotlight-intent",
        label=f"Stay with {lowered}s",
        description=description,
        filters=SuggestionFilters(topic=intent_type),
        tone="spotlight",
        confidence=min(1.0, max(intent.confidence or 0.6, 0.5)),
    )


def build_supporting(
    intent: QueryIntent,
    topics: list[ValueCount],
    countries: list[ValueCount],
    years: YearInsights,
    active: SearchFilters,
) -> list[FilterSuggestion]:
    base = active.active()
    suggestions: list[FilterSuggestion] = []

    top_country = next((c for c in countries if c.value != active.country), None)
    if top_country:
        suggestions.append(FilterSuggestion(
            id=f"country-{slugify(top_country.value)}",
            label=f"Dial into {top_country.value}",
            description="Tightens the scope to the country most present in these results.",
            filters=SuggestionFilters(**{**base, "country": top_country.value}),
            tone="focus",
            confidence=0.5 + min(top_country.count / 10, 0.3),
        ))

    if years.newest is not None and years.newest != active.year:
        suggestions.append(FilterSuggestion(
            id=f"year-{years.newest}",
            label=f"Prioritise {years.newest}",
            description="Surfaces the freshest material responding to this query.",
            filters=SuggestionFilters(**{**base, "year": years.newest}),
            tone="focus",
            confidence=0.55,
        ))

    if (
        intent.suggested_filters.include_historical
        and years.oldest is not None
        and years.newest is not None
        and years.oldest < years.newest
    ):
        suggestions.append(FilterSuggestion(
            id="historical-span",
            label="Revisit the early groundwork",
            description=f"Contrast the newest findings with foundational material from {years.oldest}.",
            filters=SuggestionFilters(**{**base, "year": years.oldest}),
            tone="expand",
            confidence=0.45,
        ))

    secondary = next((t for t in topics if t.value != active.topic), None)
    if secondary:
        suggestions.append(FilterSuggestion(
            id=f"topic-{slugify(secondary.value)}",
            label=f"Pivot to {secondary.value.lower()}",
            description="Offers a complementary document type frequently cited alongside your current focus.",
            filters=SuggestionFilters(**{**base, "topic": secondary.value}),
            tone="challenge",
            confidence=0.4 + min(secondary.count / 12, 0.25),
        ))

    return suggestions


class ContextualFiltersGenerator:
    def __init__(self, embedder: Any, retriever: Retriever, llm: Any):
        self.embedder = embedder
        self.retriever = retriever
        self.llm = llm

    async def analyze_intent(self, query: str) -> QueryIntent:
        """Model-estimated intent; a neutral research intent on any failure."""
        try:
            reply = await self.llm.complete(
                build_intent_prompt(query),
                system=FEATURE_SYSTEM_PROMPT,
                temperature=0.3,
                max_tokens=500,
            )
            return parse_intent(reply, query)
        except (UpstreamError, ValueError) as e:
            logger.warning("[FILTERS] Intent analysis failed, using fallback: %s", e)
            return fallback_intent(query)

    @timed("contextual_filters")
    async def generate(self, query: str, filters: SearchFilters | None = None) -> FilterSuggestionsResponse:
        filters = filters or SearchFilters()
        intent, vector = await asyncio.gather(
            self.analyze_intent(query),
            self.embedder.embed(query),
        )
        page = await self.retriever.search(vector, filters, RESULT_POOL, 0)
        results = page.snippets

        if not results:
            return FilterSuggestionsResponse(
                spotlight=build_spotlight(intent, None),
                supporting=[],
                metadata_insights=MetadataInsights(
                    timeline=TimelineInsight(
                        summary="No dated material returned yet; try broadening the search.",
                    ),
                ),
            )

        topics = aggregate_counts(results, "type")
        countries = aggregate_counts(results, "country")
        years = aggregate_years(results)

        response = FilterSuggestionsResponse(
            spotlight=build_spotlight(intent, results[0]),
            supporting=build_supporting(intent, topics, countries, years, filters),
            metadata_insights=MetadataInsights(
                top_topics=topics[:TOP_N],
                top_countries=countries[:TOP_N],
                timeline=TimelineInsight(
                    newest_year=years.newest,
                    oldest_year=years.oldest,
                    summary=timeline_summary(years),
                ),
            ),
        )
        logger.info(
            "[FILTERS] intent=%s | spotlight=%s | supporting=%d",
            intent.category,
            response.spotlight.id if response.spotlight else None,
            len(response.supporting),
        )
        return response
