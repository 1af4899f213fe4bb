"""
Error taxonomy and the FastAPI handlers that map it to HTTP responses.

    ValidationError        -> 400 {error, issues}
    UpstreamError          -> 500 {error} (+ detail/stack in development)
    RateLimitExceeded      -> 429 {error, retry_after} + RateLimit-* headers
    TelemetryPersistError  -> never leaves the telemetry recorder
    TelemetryForwardError  -> never leaves the telemetry recorder
"""

from __future__ import annotations

import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.core.errors")


class KnowledgeHubError(Exception):
    """Base class for every error raised by this service."""


class ValidationError(KnowledgeHubError):
    """Malformed query or request body."""

    def __init__(self, message: str, issues: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class UpstreamError(KnowledgeHubError):
    """An embedding, retrieval or generation provider call failed."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class RateLimitExceeded(KnowledgeHubError):
    """Client identity used up its fixed-window budget."""

    def __init__(self, identity: str, limit: int, retry_after: int):
        super().__init__(f"Rate limit of {limit} requests exceeded for {identity}")
        self.identity = identity
        self.limit = limit
        self.retry_after = retry_after


class TelemetryPersistError(KnowledgeHubError):
    """Appending a record to the durable telemetry log failed."""


class TelemetryForwardError(KnowledgeHubError):
    """Forwarding a record to the external collector failed."""


def rate_limit_headers(limit: int, remaining: int, reset_in: int) -> dict[str, str]:
    return {
        "RateLimit-Limit": str(limit),
        "RateLimit-Remaining": str(max(0, remaining)),
        "RateLimit-Reset": str(max(0, reset_in)),
    }


def setup_exception_handlers(app: FastAPI, *, expose_details: bool = False) -> None:
    """Register the taxonomy handlers on ``app``."""

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        issues = [
            {
                "loc": [str(part) for part in err.get("loc", ())],
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request parameters", "issues": issues},
        )

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": exc.message, "issues": exc.issues},
        )

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        retry_after = exc.retry_after
        logger.info("[RATE] Rejected %s %s for %s", request.method, request.url.path, exc.identity)
        headers = rate_limit_headers(exc.limit, 0, retry_after)
        headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "Too many requests, please try again later.",
                "retry_after": retry_after,
            },
            headers=headers,
        )

    @app.exception_handler(UpstreamError)
    async def _upstream(request: Request, exc: UpstreamError) -> JSONResponse:
        logger.error("[UPSTREAM] %s %s failed: %s", request.method, request.url.path, exc)
        content: dict[str, Any] = {"error": "Internal server error"}
        if expose_details:
            content["detail"] = str(exc)
            content["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
