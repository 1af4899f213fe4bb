"""
Thin API route for /search.

Validates the query, applies the rate limit, and hands off to
SearchService.  Caching, retrieval, synthesis and summaries live in
the pipeline.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from knowhub.api.deps import enforce_rate_limit, page_limit, query_text, search_filters
from knowhub.core.container import ServiceContainer, get_services
from knowhub.schemas.search import SearchFilters, SearchResponse, SortMode
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.api.search")

router = APIRouter(tags=["Search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def search(
    q: str = Depends(query_text),
    filters: SearchFilters = Depends(search_filters),
    limit: int = Depends(page_limit),
    offset: int = Query(0, ge=0),
    sort_by: SortMode | None = Query(
        None,
        alias="sortBy",
        description="relevance or date; recency queries default to date",
    ),
    services: ServiceContainer = Depends(get_services),
):
    """Ranked snippets plus a cited answer for ``q``."""
    logger.info("[SEARCH] q=%s | limit=%d | offset=%d | sort=%s", q[:80], limit, offset, sort_by)
    return await services.search.search(q, filters, limit, offset, sort_by)
