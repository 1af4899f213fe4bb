"""
Quick topic shortcuts, cached for hours and refreshable on demand.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from knowhub.core.container import ServiceContainer, get_services
from knowhub.core.errors import KnowledgeHubError
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.api.quick_topics")

router = APIRouter(prefix="/quick-topics", tags=["Quick topics"])


def _failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": message},
    )


@router.get("")
async def get_quick_topics(services: ServiceContainer = Depends(get_services)):
    try:
        topics = await services.quick_topics.generate()
    except KnowledgeHubError as e:
        logger.error("[QUICK_TOPICS] %s", e)
        return _failure("Failed to generate quick topics")
    return {"success": True, "topics": [t.model_dump() for t in topics], "cached": True}


@router.post("/refresh")
async def refresh_quick_topics(services: ServiceContainer = Depends(get_services)):
    try:
        topics = await services.quick_topics.refresh()
    except KnowledgeHubError as e:
        logger.error("[QUICK_TOPICS] Refresh failed: %s", e)
        return _failure("Failed to refresh quick topics")
    return {"success": True, "topics": [t.model_dump() for t in topics], "refreshed": True}
