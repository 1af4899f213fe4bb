from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from knowhub.core.container import ServiceContainer, get_services
from knowhub.core.errors import KnowledgeHubError
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.api.starter_questions")

router = APIRouter(prefix="/starter-questions", tags=["Starter questions"])


@router.get("")
async def get_starter_questions(services: ServiceContainer = Depends(get_services)):
    """Starter questions for the empty search page (cached)."""
    try:
        questions = await services.starter_questions.generate()
    except KnowledgeHubError as e:
        logger.error("[STARTER_QUESTIONS] %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to generate starter questions"},
        )
    return {"success": True, "questions": [q.model_dump() for q in questions], "cached": True}


@router.post("/refresh")
async def refresh_starter_questions(services: ServiceContainer = Depends(get_services)):
    try:
        questions = await services.starter_questions.refresh()
    except KnowledgeHubError as e:
        logger.error("[STARTER_QUESTIONS] Refresh failed: %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to refresh starter questions"},
        )
    return {"success": True, "questions": [q.model_dump() for q in questions], "refreshed": True}
