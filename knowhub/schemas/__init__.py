"""
Pydantic schemas for every pipeline boundary.
Each module covers one endpoint family.
"""

from knowhub.schemas.search import (
    SortMode,
    SearchFilters,
    Snippet,
    RetrievalPage,
    Citation,
    AnswerBullet,
    AnswerPayload,
    ResultItem,
    SearchResponse,
)
from knowhub.schemas.features import (
    QuickTopic,
    StarterQuestion,
    SmartCollection,
    SmartCollectionEntry,
    InsightCluster,
    QueryIntent,
    FilterSuggestion,
    FilterSuggestionsResponse,
)
from knowhub.schemas.telemetry import TelemetryEvent, TelemetryRecord

__all__ = [
    # Search
    "SortMode",
    "SearchFilters",
    "Snippet",
    "RetrievalPage",
    "Citation",
    "AnswerBullet",
    "AnswerPayload",
    "ResultItem",
    "SearchResponse",
    # Features
    "QuickTopic",
    "StarterQuestion",
    "SmartCollection",
    "SmartCollectionEntry",
    "InsightCluster",
    "QueryIntent",
    "FilterSuggestion",
    "FilterSuggestionsResponse",
    # Telemetry
    "TelemetryEvent",
    "TelemetryRecord",
]
