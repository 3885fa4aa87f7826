# =============================================================================
# API Tests — FastAPI Routes via TestClient
# =============================================================================

from __future__ import annotations

import pytest
from conftest import ScriptedLLM, per_agent, reply
from fastapi.testclient import TestClient

from bizplan.api.deps import get_app_settings
from bizplan.config import RateLimitRule
from bizplan.main import create_app

CONTEXT = {
    "session_id": "api-1",
    "language": "en-US",
    "answers": {"language": "en-US", "business_path": "new"},
    "current_phase_index": 3,
    "current_question_index": -1,
}


@pytest.fixture
def client(settings, catalog):
    settings = settings.model_copy(update={
        "rate_limits": {
            "default": RateLimitRule(max_requests=10, window_seconds=60),
            "chat": RateLimitRule(max_requests=2, window_seconds=60),
        },
    })
    llm = ScriptedLLM(per_agent(catalog, {
        "market_analyst": reply("Large market."),
        "customer_profiler": reply("Owners decide."),
    }))
    with TestClient(create_app(settings, llm)) as test_client:
        yield test_client


class TestHealth:
    def test_reports_loaded_catalogs(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["phases"] == 11
        assert body["agents"] == 13
        assert "unit_economics" in body["skills"]

    def test_reads_settings_through_dependency(self, client, settings):
        client.app.dependency_overrides[get_app_settings] = lambda: settings.model_copy(
            update={"app_version": "9.9.9", "app_name": "planner-canary"},
        )
        try:
            body = client.get("/health").json()
        finally:
            client.app.dependency_overrides.clear()
        assert body["version"] == "9.9.9"
        assert body["service"] == "planner-canary"


class TestOrchestrate:
    def test_turn_response(self, client):
        response = client.post("/orchestrate", json={"message": "Clinic billing", "context": CONTEXT})
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "complete"
        assert body["execution_mode"] == "parallel"
        assert [a["agent_id"] for a in body["agents"]] == ["market_analyst", "customer_profiler"]
        assert body["agents"][0]["display_name"] == "Market Analyst"
        assert "error_detail" not in body["agents"][0]
        assert "Large market." in body["reply"]
        assert body["next_step"]["question"]["id"] == "primary_market"

    def test_rate_limited_per_session(self, client):
        payload = {"message": "hi", "context": CONTEXT}
        assert client.post("/orchestrate", json=payload).status_code == 200
        assert client.post("/orchestrate", json=payload).status_code == 200
        response = client.post("/orchestrate", json=payload)
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0

        other = {"message": "hi", "context": {**CONTEXT, "session_id": "api-2"}}
        assert client.post("/orchestrate", json=other).status_code == 200

    def test_validation_error(self, client):
        response = client.post("/orchestrate", json={"message": "", "context": CONTEXT})
        assert response.status_code == 422


class TestNavigatorEndpoint:
    def test_next_question_and_progress(self, client):
        context = {**CONTEXT, "current_question_index": 5, "answers": {"customer_type": "b2b"}}
        response = client.post("/navigator/next", json={"context": context})
        assert response.status_code == 200
        body = response.json()
        assert body["next_step"]["question"]["id"] == "customer_problem"
        assert body["progress"]["total"] > 0
