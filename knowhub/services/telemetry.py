"""
Contextual telemetry: durable NDJSON append plus best-effort forward.

The two sinks are independent.  A record that fails to persist is
still forwarded, and a forward failure never reaches the client.
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from knowhub.core.errors import TelemetryForwardError, TelemetryPersistError
from knowhub.schemas.telemetry import TelemetryEvent, TelemetryRecord
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.services.telemetry")

_FILTER_KEYS = ("topic", "country", "year")


def sanitize_filters(filters: dict[str, Any] | None) -> dict[str, Any]:
    """Keep known filter keys with a value; coerce ``year`` to int."""
    clean: dict[str, Any] = {}
    for key in _FILTER_KEYS:
        value = (filters or {}).get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if key == "year":
            try:
                value = int(value)
            except (TypeError, ValueError):
                continue
        clean[key] = value
    return clean


def sanitize_payload(payload: dict[str, Any] | None) -> dict[str, Any]:
    """Drop null entries; everything else is passed through as sent."""
    return {k: v for k, v in (payload or {}).items() if v is not None}


def build_record(
    event: TelemetryEvent,
    ip: str | None = None,
    user_agent: str | None = None,
    received_at: datetime | None = None,
) -> TelemetryRecord:
    received_at = received_at or datetime.now(timezone.utc)
    return TelemetryRecord(
        type=event.type,
        query=event.query,
        filters=sanitize_filters(event.filters),
        payload=sanitize_payload(event.payload),
        client_timestamp=event.client_timestamp,
        session_id=event.session_id,
        received_at=received_at.isoformat().replace("+00:00", "Z"),
        ip=ip,
        user_agent=user_agent,
    )


class TelemetryRecorder:
    def __init__(
        self,
        log_path: str | Path,
        webhook_url: str | None = None,
        forward_timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.log_path = Path(log_path)
        self.webhook_url = webhook_url
        self.forward_timeout = forward_timeout
        self._transport = transport
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task] = set()

    def persist(self, record: TelemetryRecord) -> None:
        """Append one JSON line and fsync it.  Raises TelemetryPersistError."""
        line = json.dumps(record.to_wire(), ensure_ascii=False) + "\n"
        try:
            with self._lock:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.log_path, "a", encoding="utf-8") as fh:
                    fh.write(line)
                    fh.flush()
                    os.fsync(fh.fileno())
        except OSError as e:
            raise TelemetryPersistError(f"could not append to {self.log_path}: {e}") from e

    async def forward(self, record: TelemetryRecord) -> None:
        """POST the record to the webhook.  Raises TelemetryForwardError."""
        if not self.webhook_url:
            return
        try:
            async with httpx.AsyncClient(
                timeout=self.forward_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.webhook_url, json=record.to_wire())
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TelemetryForwardError(f"forward to {self.webhook_url} failed: {e}") from e

    async def _forward_quietly(self, record: TelemetryRecord) -> None:
        try:
            await self.forward(record)
        except TelemetryForwardError as e:
            logger.warning("[TELEMETRY] %s", e)

    async def record(self, record: TelemetryRecord) -> None:
        """
        Persist ``record`` off the event loop, then schedule its forward.
        Returns once the append is durable (or has failed).  Never raises.
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.persist, record)
        except TelemetryPersistError as e:
            logger.error("[TELEMETRY] %s", e)

        if not self.webhook_url:
            return
        task = loop.create_task(self._forward_quietly(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled forward to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
