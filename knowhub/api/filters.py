"""
GET /filters/contextual: filter suggestions from query intent and corpus signals.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from knowhub.api.deps import enforce_rate_limit, query_text, search_filters
from knowhub.core.container import ServiceContainer, get_services
from knowhub.schemas.search import SearchFilters

router = APIRouter(prefix="/filters", tags=["Filters"])


@router.get("/contextual", dependencies=[Depends(enforce_rate_limit)])
async def contextual_filters(
    q: str = Depends(query_text),
    filters: SearchFilters = Depends(search_filters),
    services: ServiceContainer = Depends(get_services),
):
    suggestions = await services.contextual_filters.generate(q, filters)
    return {"suggestions": suggestions.model_dump()}
