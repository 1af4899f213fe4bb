"""
Contextual telemetry schemas.

Field names on the wire are camelCase (clientTimestamp, sessionId,
receivedAt, userAgent) because the web client and the collector
already speak that shape.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TelemetryEventType = Literal["filter_suggestion_applied", "smart_collection_entry_opened"]


class TelemetryEvent(BaseModel):
    """Body of POST /telemetry/contextual."""
    model_config = ConfigDict(populate_by_name=True)

    type: TelemetryEventType
    query: str = Field(min_length=1)
    filters: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None
    client_timestamp: str = Field(alias="clientTimestamp", min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")


class TelemetryRecord(BaseModel):
    """One line of the durable NDJSON log. Written once, never mutated."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str
    query: str
    filters: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)
    client_timestamp: str = Field(alias="clientTimestamp")
    session_id: str | None = Field(default=None, alias="sessionId")
    received_at: str = Field(alias="receivedAt")
    ip: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
