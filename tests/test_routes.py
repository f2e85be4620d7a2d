# ============================================================================
# API ROUTE TESTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - HTTP surface over the in-memory coordinator
# PURPOSE: Verify status codes, payload shapes, CORS and error sanitizing
# CREATED: 03 OCT 2026
# ============================================================================
"""
API Route Tests

Tests the HTTP endpoints (api/routes.py) with the middleware from
api/middleware.py installed, over a real TaskService / QueryService /
CronTickHandler wired to the in-memory store.

Uses FastAPI TestClient; one client per test so every request shares the
same event loop.

Run with:
    pytest tests/test_routes.py -v
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware import install_cors, install_error_handlers
from api.routes import router, set_services
from conftest import FakeChain, build_harness

UNKNOWN_TASK_ID = "task_1700000000000_0123456789abcdef"


# ============================================================================
# FIXTURES
# ============================================================================

def _make_test_app(h) -> FastAPI:
    """Create a test FastAPI app wired to a harness."""
    app = FastAPI()
    install_cors(app)
    install_error_handlers(app)
    app.include_router(router)
    set_services(
        task_service=h.task_service,
        query_service=h.query_service,
        cron_handler=h.cron,
        adapter=h.adapter,
        dispatcher=h.dispatcher,
    )
    return app


@pytest.fixture
def harness():
    return build_harness(chain=FakeChain())


@pytest.fixture
def client(harness):
    with TestClient(_make_test_app(harness)) as c:
        yield c


# ============================================================================
# PROCESS
# ============================================================================

class TestProcess:

    def test_queued(self, client):
        resp = client.get("/process/42", params={"breed": "siamese", "imageProvider": "stability"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "queued"
        assert data["tokenId"] == 42
        assert data["breed"] == "Siamese"
        assert data["imageProvider"] == "stability"
        assert data["taskId"].startswith("task_")

    def test_second_call_already_processed(self, client):
        first = client.get("/process/42").json()
        second = client.get("/process/42").json()
        assert second["status"] == "already_processed"
        assert second["taskId"] == first["taskId"]

    def test_invalid_token_id(self, client):
        resp = client.get("/process/abc")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid tokenId: must be a non-negative integer", "field": "tokenId"}

    @pytest.mark.parametrize("token", ["²", "٣"])
    def test_non_ascii_digit_token_id(self, client, token):
        resp = client.get(f"/process/{token}")
        assert resp.status_code == 400
        assert resp.json()["field"] == "tokenId"

    def test_prompt_extras_too_long_once_escaped(self, client):
        resp = client.get("/process/5", params={"promptExtras": "<" * 600})
        assert resp.status_code == 400
        assert resp.json()["field"] == "promptExtras"
        assert client.get("/tasks/token/5").json()["count"] == 0

    def test_unknown_provider(self, client):
        resp = client.get("/process/1", params={"imageProvider": "midjourney"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "imageProvider"

    @pytest.mark.parametrize("options", ["{not json", json.dumps({"quality": "ultra"})])
    def test_bad_provider_options(self, client, options):
        resp = client.get("/process/1", params={"providerOptions": options})
        assert resp.status_code == 400
        assert resp.json()["field"] == "providerOptions"

    def test_options_echoed_after_filtering(self, client):
        options = json.dumps({"quality": "hd", "unknown": True})
        data = client.get("/process/1", params={"providerOptions": options}).json()
        assert data["options"] == {"quality": "hd"}


# ============================================================================
# STATUS / CANCEL / TASKS
# ============================================================================

class TestTaskQueries:

    def test_status_full_and_minimal(self, client):
        task_id = client.get("/process/42").json()["taskId"]

        full = client.get(f"/status/{task_id}")
        assert full.status_code == 200
        assert full.json()["taskId"] == task_id
        assert full.json()["status"] == "PENDING"
        assert len(full.json()["history"]) == 1

        minimal = client.get(f"/status/{task_id}", params={"minimal": "true"}).json()
        assert set(minimal) == {"taskId", "status", "progress", "message", "tokenURI", "updatedAt"}

    def test_status_unknown(self, client):
        resp = client.get(f"/status/{UNKNOWN_TASK_ID}")
        assert resp.status_code == 404
        assert resp.json()["status"] == "UNKNOWN"
        assert resp.json()["taskId"] == UNKNOWN_TASK_ID

    def test_status_malformed_id(self, client):
        resp = client.get("/status/not-a-task")
        assert resp.status_code == 400
        assert resp.json()["field"] == "taskId"

    def test_cancel(self, client):
        task_id = client.get("/process/42").json()["taskId"]

        resp = client.post(f"/cancel/{task_id}", params={"reason": "changed my mind"})
        assert resp.status_code == 200
        assert resp.json() == {
            "taskId": task_id,
            "status": "CANCELED",
            "canceled": True,
            "message": "changed my mind",
        }

        again = client.post(f"/cancel/{task_id}").json()
        assert again["canceled"] is False
        assert again["status"] == "CANCELED"

    def test_cancel_unknown(self, client):
        assert client.post(f"/cancel/{UNKNOWN_TASK_ID}").status_code == 404

    def test_tasks_by_token(self, client):
        first = client.get("/process/42").json()["taskId"]
        client.post(f"/cancel/{first}")
        second = client.get("/process/42", params={"force": "true"}).json()["taskId"]

        data = client.get("/tasks/token/42").json()
        assert data["count"] == 2
        assert {t["taskId"] for t in data["tasks"]} == {first, second}


# ============================================================================
# OPERATIONS
# ============================================================================

class TestOperations:

    def test_cron_runs_queued_work(self, client, harness):
        task_id = client.get("/process/42").json()["taskId"]

        summary = client.get("/cron").json()
        assert summary["completed"] == 1

        minimal = client.get(f"/status/{task_id}", params={"minimal": "true"}).json()
        assert minimal["status"] == "COMPLETED"
        assert minimal["progress"] == 100
        assert minimal["tokenURI"] == "ipfs://bafymeta0001"
        assert harness.chain.uris[42] == "ipfs://bafymeta0001"

    def test_metrics(self, client):
        client.get("/process/1")
        client.get("/process/2")
        data = client.get("/metrics").json()
        assert data["created"] == 2
        assert data["pending"] == 2
        assert data["active"] == 2

    def test_providers(self, client):
        data = client.get("/providers").json()
        assert data["default"] == "dall-e"
        assert set(data["providers"]) == {"dall-e", "stability", "huggingface"}
        assert data["providers"]["huggingface"]["openSource"] is True

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert "dispatcher" in resp.json()

    def test_health_unhealthy_when_store_closed(self, client, harness):
        harness.adapter.mark_closed()
        resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"


# ============================================================================
# CORS / ERRORS
# ============================================================================

class TestMiddleware:

    def test_preflight(self, client):
        resp = client.options("/process/1")
        assert resp.status_code == 204
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "GET" in resp.headers["access-control-allow-methods"]

    def test_cors_on_success_and_error(self, client):
        assert client.get("/providers").headers["access-control-allow-origin"] == "*"
        assert client.get("/process/abc").headers["access-control-allow-origin"] == "*"

    def test_store_failure_is_sanitized(self, client, harness):
        harness.adapter.mark_closed()
        resp = client.get("/process/1")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Internal server error"
        assert len(body["errorId"]) == 32
        assert "closed" not in resp.text
