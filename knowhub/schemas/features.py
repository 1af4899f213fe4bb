"""
Schemas for the derived navigation features: quick topics, starter
questions, smart collections and contextual filter suggestions.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class QuickTopic(BaseModel):
    icon: str
    topic: str
    category: str


class StarterQuestion(BaseModel):
    icon: str
    question: str
    category: str


class SmartCollectionEntry(BaseModel):
    id: str
    title: str
    type: str | None = None
    url: str
    highlight: str
    country: str | None = None
    year: int | None = None


class SmartCollection(BaseModel):
    id: str
    name: str
    description: str
    timeframe: str | None = None
    actionable: str | None = None
    novelty: float = 0.0
    items: list[SmartCollectionEntry] = Field(default_factory=list)


class InsightCluster(BaseModel):
    """A theme the model found across several retrieved documents."""
    theme: str
    documents: list[str] = Field(default_factory=list)
    key_insight: str = Field(default="", alias="keyInsight")
    actionable: str | None = None
    novelty: float = 0.0

    model_config = ConfigDict(populate_by_name=True)


class SuggestedFilters(BaseModel):
    type: str | None = None
    year_from: int | None = Field(default=None, alias="yearFrom")
    year_to: int | None = Field(default=None, alias="yearTo")
    include_historical: bool = Field(default=False, alias="includeHistorical")

    model_config = ConfigDict(populate_by_name=True)


class QueryIntent(BaseModel):
    """Model-estimated intent behind a query."""
    category: str = "research"
    expanded_query: str = Field(default="", alias="expandedQuery")
    implicit_needs: list[str] = Field(default_factory=list, alias="implicitNeeds")
    suggested_filters: SuggestedFilters = Field(default_factory=SuggestedFilters, alias="suggestedFilters")
    related_topics: list[str] = Field(default_factory=list, alias="relatedTopics")
    confidence: float = 0.5

    model_config = ConfigDict(populate_by_name=True)


class SuggestionFilters(BaseModel):
    topic: str | None = None
    country: str | None = None
    year: int | None = None


class FilterSuggestion(BaseModel):
    id: str
    label: str
    description: str
    filters: SuggestionFilters
    tone: Literal["spotlight", "focus", "expand", "challenge"]
    confidence: float


class ValueCount(BaseModel):
    value: str
    count: int


class TimelineInsight(BaseModel):
    newest_year: int | None = None
    oldest_year: int | None = None
    summary: str


class MetadataInsights(BaseModel):
    top_topics: list[ValueCount] = Field(default_factory=list)
    top_countries: list[ValueCount] = Field(default_factory=list)
    timeline: TimelineInsight


class FilterSuggestionsResponse(BaseModel):
    spotlight: FilterSuggestion | None = None
    supporting: list[FilterSuggestion] = Field(default_factory=list)
    metadata_insights: MetadataInsights
