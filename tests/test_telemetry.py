"""
Tests for knowhub/services/telemetry.py and POST /telemetry/contextual.
"""

import json
import threading
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from knowhub.core.container import assemble_services
from knowhub.core.errors import TelemetryForwardError, TelemetryPersistError
from knowhub.main import create_app
from knowhub.schemas.telemetry import TelemetryEvent
from knowhub.services.telemetry import (
    TelemetryRecorder,
    build_record,
    sanitize_filters,
    sanitize_payload,
)

EVENT_BODY = {
    "type": "filter_suggestion_applied",
    "query": "oc4ids",
    "filters": {"topic": "Guide", "country": "", "year": "2021"},
    "payload": {"suggestionId": "spotlight-intent", "rank": None},
    "clientTimestamp": "2024-05-01T10:00:00Z",
    "sessionId": "abc",
}


def _refused(request):
    raise httpx.ConnectError("connection refused", request=request)


class TestSanitize:
    def test_filters_drop_empty_and_coerce_year(self):
        assert sanitize_filters({"topic": "Guide", "country": "", "year": "2021", "x": 1}) == {
            "topic": "Guide",
            "year": 2021,
        }

    def test_filters_none(self):
        assert sanitize_filters(None) == {}

    def test_filters_bad_year_dropped(self):
        assert sanitize_filters({"year": "recent"}) == {}

    def test_payload_drops_nulls(self):
        assert sanitize_payload({"a": 1, "b": None, "c": ""}) == {"a": 1, "c": ""}


class TestBuildRecord:
    def test_record_carries_server_fields(self):
        event = TelemetryEvent.model_validate(EVENT_BODY)
        when = datetime(2024, 5, 1, 10, 0, 1, tzinfo=timezone.utc)
        record = build_record(event, ip="10.0.0.1", user_agent="pytest", received_at=when)
        wire = record.to_wire()
        assert wire["receivedAt"] == "2024-05-01T10:00:01Z"
        assert wire["clientTimestamp"] == "2024-05-01T10:00:00Z"
        assert wire["sessionId"] == "abc"
        assert wire["ip"] == "10.0.0.1"
        assert wire["filters"] == {"topic": "Guide", "year": 2021}
        assert wire["payload"] == {"suggestionId": "spotlight-intent"}


class TestTelemetryRecorder:
    async def test_persists_line_when_forward_unreachable(self, tmp_path):
        log_path = tmp_path / "nested" / "telemetry.ndjson"
        recorder = TelemetryRecorder(
            log_path,
            webhook_url="http://collector.invalid/events",
            transport=httpx.MockTransport(_refused),
        )
        record = build_record(TelemetryEvent.model_validate(EVENT_BODY))

        await recorder.record(record)
        await recorder.drain()

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["query"] == "oc4ids"

    async def test_forward_raises_typed_error(self, tmp_path):
        recorder = TelemetryRecorder(
            tmp_path / "t.ndjson",
            webhook_url="http://collector.invalid/events",
            transport=httpx.MockTransport(_refused),
        )
        record = build_record(TelemetryEvent.model_validate(EVENT_BODY))
        with pytest.raises(TelemetryForwardError):
            await recorder.forward(record)

    async def test_forward_posts_wire_record(self, tmp_path):
        received = []

        def _collect(request):
            received.append(json.loads(request.content))
            return httpx.Response(202)

        recorder = TelemetryRecorder(
            tmp_path / "t.ndjson",
            webhook_url="http://collector.example/events",
            transport=httpx.MockTransport(_collect),
        )
        await recorder.record(build_record(TelemetryEvent.model_validate(EVENT_BODY)))
        await recorder.drain()
        assert received[0]["type"] == "filter_suggestion_applied"

    async def test_no_webhook_skips_forward(self, tmp_path):
        recorder = TelemetryRecorder(tmp_path / "t.ndjson")
        await recorder.record(build_record(TelemetryEvent.model_validate(EVENT_BODY)))
        await recorder.drain()
        assert (tmp_path / "t.ndjson").exists()

    async def test_persist_failure_still_forwards(self, tmp_path):
        received = []

        def _collect(request):
            received.append(json.loads(request.content))
            return httpx.Response(202)

        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        recorder = TelemetryRecorder(
            blocker / "t.ndjson",
            webhook_url="http://collector.example/events",
            transport=httpx.MockTransport(_collect),
        )
        record = build_record(TelemetryEvent.model_validate(EVENT_BODY))

        with pytest.raises(TelemetryPersistError):
            recorder.persist(record)
        await recorder.record(record)
        await recorder.drain()

        assert not (blocker / "t.ndjson").exists()
        assert [r["query"] for r in received] == ["oc4ids"]

    async def test_persist_runs_off_the_event_loop_thread(self, tmp_path):
        threads = []

        class ThreadRecordingRecorder(TelemetryRecorder):
            def persist(self, record):
                threads.append(threading.get_ident())
                super().persist(record)

        recorder = ThreadRecordingRecorder(tmp_path / "t.ndjson")
        await recorder.record(build_record(TelemetryEvent.model_validate(EVENT_BODY)))

        assert threads and threads[0] != threading.get_ident()
        assert len((tmp_path / "t.ndjson").read_text(encoding="utf-8").splitlines()) == 1


class TestTelemetryEndpoint:
    def test_valid_event_returns_204_and_appends(self, client, test_settings):
        response = client.post(
            "/telemetry/contextual",
            json=EVENT_BODY,
            headers={"User-Agent": "pytest-agent"},
        )
        assert response.status_code == 204

        with open(test_settings.telemetry_log_path, encoding="utf-8") as fh:
            lines = fh.read().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["userAgent"] == "pytest-agent"
        assert "receivedAt" in record

    @pytest.mark.parametrize("missing", ["type", "query", "clientTimestamp"])
    def test_missing_field_is_400_and_nothing_appended(self, client, test_settings, missing):
        body = {k: v for k, v in EVENT_BODY.items() if k != missing}
        response = client.post("/telemetry/contextual", json=body)
        assert response.status_code == 400
        assert "issues" in response.json()
        with pytest.raises(FileNotFoundError):
            open(test_settings.telemetry_log_path, encoding="utf-8")

    def test_unknown_event_type_is_400(self, client):
        response = client.post("/telemetry/contextual", json={**EVENT_BODY, "type": "page_view"})
        assert response.status_code == 400

    def test_204_when_forward_destination_is_unreachable(self, test_settings, fake_embedder, retriever, fake_llm):
        attempts = []

        def _refused_and_counted(request):
            attempts.append(str(request.url))
            return _refused(request)

        config = test_settings.model_copy(
            update={"telemetry_webhook_url": "http://collector.invalid/events"}
        )
        services = assemble_services(config, embedder=fake_embedder, retriever=retriever, llm=fake_llm)
        services.telemetry = TelemetryRecorder(
            config.telemetry_log_path,
            webhook_url=config.telemetry_webhook_url,
            forward_timeout=config.telemetry_forward_timeout_seconds,
            transport=httpx.MockTransport(_refused_and_counted),
        )

        with TestClient(create_app(settings=config, services=services)) as client:
            response = client.post("/telemetry/contextual", json=EVENT_BODY)

        assert response.status_code == 204
        assert attempts == ["http://collector.invalid/events"]
        with open(config.telemetry_log_path, encoding="utf-8") as fh:
            assert len(fh.read().splitlines()) == 1
