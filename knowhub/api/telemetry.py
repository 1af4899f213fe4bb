"""
POST /telemetry/contextual: record a client interaction event.

Malformed bodies are rejected with 400 before anything is written.
Persistence and forwarding problems are logged by the recorder and
never change the 204.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from knowhub.api.deps import client_identity
from knowhub.core.container import ServiceContainer, get_services
from knowhub.schemas.telemetry import TelemetryEvent
from knowhub.services.telemetry import build_record

router = APIRouter(prefix="/telemetry", tags=["Telemetry"])


@router.post("/contextual", status_code=status.HTTP_204_NO_CONTENT)
async def contextual_telemetry(
    event: TelemetryEvent,
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    record = build_record(
        event,
        ip=client_identity(request),
        user_agent=request.headers.get("user-agent"),
    )
    await services.telemetry.record(record)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
