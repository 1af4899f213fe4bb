"""
GET /collections/smart: model-curated reading lists for the current query.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from knowhub.api.deps import enforce_rate_limit, query_text, search_filters
from knowhub.core.container import ServiceContainer, get_services
from knowhub.schemas.search import SearchFilters
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.api.collections")

router = APIRouter(prefix="/collections", tags=["Collections"])


@router.get("/smart", dependencies=[Depends(enforce_rate_limit)])
async def smart_collections(
    q: str = Depends(query_text),
    filters: SearchFilters = Depends(search_filters),
    services: ServiceContainer = Depends(get_services),
):
    collections = await services.smart_collections.generate(q, filters)
    logger.info("[COLLECTIONS] q=%s | collections=%d", q[:80], len(collections))
    return {"collections": [c.model_dump() for c in collections]}
