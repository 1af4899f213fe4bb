"""
Shared route dependencies: client identity, rate limiting, filters.
"""

from __future__ import annotations

from fastapi import Depends, Query, Request, Response

from knowhub.core.container import ServiceContainer, get_services
from knowhub.core.errors import ValidationError, rate_limit_headers
from knowhub.schemas.search import SearchFilters


def client_identity(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(
    request: Request,
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> None:
    """Count the request against the shared limiter; raises RateLimitExceeded."""
    decision = services.rate_limiter.check(client_identity(request))
    response.headers.update(
        rate_limit_headers(decision.limit, decision.remaining, decision.reset_in)
    )


def search_filters(
    topic: str | None = Query(None, description="Document type"),
    country: str | None = Query(None),
    year: int | None = Query(None, ge=1900, le=2100, description="Exact year"),
    year_from: int | None = Query(None, alias="yearFrom", ge=1900, le=2100),
    year_to: int | None = Query(None, alias="yearTo", ge=1900, le=2100),
) -> SearchFilters:
    if year_from is not None and year_to is not None and year_from > year_to:
        raise ValidationError(
            "yearFrom must not be after yearTo",
            [{"loc": ["query", "yearFrom"], "msg": "yearFrom is after yearTo", "type": "value_error"}],
        )
    return SearchFilters(
        topic=topic or None,
        country=country or None,
        year=year,
        year_from=year_from,
        year_to=year_to,
    )


def query_text(
    q: str = Query(..., min_length=2, description="Natural-language query"),
) -> str:
    """The trimmed query; at least two characters after trimming."""
    text = q.strip()
    if len(text) < 2:
        raise ValidationError(
            "Query (q) with at least 2 characters is required",
            [{"loc": ["query", "q"], "msg": "String should have at least 2 characters", "type": "string_too_short"}],
        )
    return text


def page_limit(
    request: Request,
    limit: int | None = Query(None, ge=1, description="Page size"),
) -> int:
    """Page size bounded by the app's configured default and maximum."""
    config = request.app.state.settings
    if limit is None:
        return config.search_default_limit
    if limit > config.search_max_limit:
        raise ValidationError(
            f"limit must be at most {config.search_max_limit}",
            [{"loc": ["query", "limit"], "msg": f"Input should be less than or equal to {config.search_max_limit}", "type": "less_than_equal"}],
        )
    return limit
