"""
API Integration Tests — Endpoint Verification

Tests every public API endpoint using FastAPI's TestClient.
The LLM provider is replaced with a mock, so no network calls.

These tests catch:
  - Schema mismatches (response model vs actual data)
  - Validation rules (422 on bad input)
  - Ownership and not-found handling
  - Middleware regressions (headers, body limit)
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from verinfer.llm import LLMProvider
from verinfer.llm.breaker import CircuitOpenError


# ============================================================
# MOCK LLM
# ============================================================

class MockLLM(LLMProvider):
    """Returns a fixed inference for every prompt."""

    def __init__(self):
        self.calls = []

    async def generate(self, prompt, system_instruction=None, temperature=0.7):
        self.calls.append(prompt)
        if "verified inferences" in prompt:
            return "[Medium] Prediction: hybrid teams keep their output gains."
        return f"Inference {len(self.calls)} about output. Evidence: quarterly data."


class FailingLLM(LLMProvider):

    async def generate(self, prompt, system_instruction=None, temperature=0.7):
        raise RuntimeError("503 service unavailable")


class OpenBreakerLLM(LLMProvider):

    async def generate(self, prompt, system_instruction=None, temperature=0.7):
        raise CircuitOpenError("LLM circuit breaker is open")


# --- Fixtures ---

@pytest.fixture(scope="module")
def client():
    """Create a test client with the LLM mocked out."""
    import api.main as api_main
    from api.main import app
    api_main._llm = MockLLM()
    with TestClient(app) as c:
        yield c


QUERY = {
    "topic": "Remote work and productivity",
    "context": "Quarterly output per team before and after the hybrid policy.",
    "data_type": "1st-party",
    "source_link": "https://example.com/report",
}

RATIONALE = (
    "Based on the quarterly data, output per team rose 12% after the policy, "
    "which leads to the same conclusion across regions."
)


def _create_query(client, **overrides) -> dict:
    r = client.post("/queries", json={**QUERY, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


# ============================================================
# HEALTH & META
# ============================================================

class TestHealth:

    def test_health_fields(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "operational"
        assert data["engine_version"]
        assert "llm_provider" in data
        assert "inferences_total" in data

    def test_security_headers(self, client):
        r = client.get("/health")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "DENY"
        assert "X-Verinfer-Version" in r.headers

    def test_me_is_default_user_in_dev_mode(self, client):
        data = client.get("/me").json()
        assert data["id"] == "default"
        assert data["auth_enabled"] is False


# ============================================================
# ANALYZE (no LLM)
# ============================================================

class TestAnalyze:

    def test_clean_text(self, client):
        r = client.post("/analyze", json={"text": "Revenue rose slightly in the northern region."})
        assert r.status_code == 200
        data = r.json()
        assert data["risk_level"] == "LOW"
        assert data["recursion"]["has_recursion"] is False
        assert data["chain"] is None

    def test_recursive_text(self, client):
        r = client.post("/analyze", json={"text": "It works because it works. It proves itself."})
        data = r.json()
        assert data["recursion"]["has_recursion"] is True
        assert data["recursion"]["patterns"][0]["type"] == "self-referential"

    def test_chain_trend(self, client):
        r = client.post("/analyze", json={
            "text": "Everyone must always agree. It is impossible to disagree.",
            "chain": ["Revenue rose slightly in the northern region."],
        })
        assert r.json()["chain"]["trend"] == "degrading"

    def test_empty_text_rejected(self, client):
        assert client.post("/analyze", json={"text": ""}).status_code == 422

    def test_oversized_body_rejected(self, client):
        r = client.post("/analyze", json={"text": "x" * 1_100_000})
        assert r.status_code == 413


# ============================================================
# QUERIES
# ============================================================

class TestQueries:

    def test_create_generates_three_inferences(self, client):
        data = _create_query(client)
        inference = data["inference"]
        assert inference["inference_a"].startswith("Inference")
        assert inference["inference_c"]
        assert inference["data_type"] == "1st-party"
        assert inference["source_link"] == "https://example.com/report"
        assert [a["angle"] for a in data["angles"]] == ["conservative", "progressive", "synthetic"]
        assert data["query"]["metadata"]["data_type"] == "1st-party"

    @pytest.mark.parametrize("overrides", [
        {"topic": "abc"},
        {"context": "short"},
        {"data_type": "2nd-party"},
        {"source_link": "ftp://example.com/file"},
    ])
    def test_invalid_query_rejected(self, client, overrides):
        r = client.post("/queries", json={**QUERY, **overrides})
        assert r.status_code == 422

    def test_list_with_pagination(self, client):
        _create_query(client)
        data = client.get("/queries?limit=1&offset=0").json()
        assert len(data["queries"]) == 1
        assert data["pagination"]["limit"] == 1
        assert data["pagination"]["total"] >= 1

    @pytest.mark.parametrize("params", ["limit=0", "limit=101", "offset=-1"])
    def test_list_bounds(self, client, params):
        assert client.get(f"/queries?{params}").status_code == 422

    def test_get_query(self, client):
        created = _create_query(client)
        r = client.get(f"/queries/{created['query']['id']}")
        assert r.status_code == 200
        assert r.json()["inferences"][0]["id"] == created["inference"]["id"]

    def test_unknown_query(self, client):
        assert client.get("/queries/does-not-exist").status_code == 404

    def test_other_users_query_forbidden(self, client):
        from verinfer.store import store
        query = store.create_query("someone-else", "Private topic", "Private context here")
        assert client.get(f"/queries/{query['id']}").status_code == 403
        assert client.get(f"/queries/{query['id']}/recursion").status_code == 403

    def test_query_recursion(self, client):
        created = _create_query(client)
        r = client.get(f"/queries/{created['query']['id']}/recursion")
        assert r.status_code == 200
        assert "overall_recursion_score" in r.json()

    def test_llm_failure_returns_502(self, client, monkeypatch):
        import api.main as api_main
        monkeypatch.setattr(api_main, "_llm", FailingLLM())
        r = client.post("/queries", json=QUERY)
        assert r.status_code == 502
        assert "Failed to generate inference angles" in r.json()["detail"]

    def test_open_breaker_returns_502(self, client, monkeypatch):
        import api.main as api_main
        monkeypatch.setattr(api_main, "_llm", OpenBreakerLLM())
        r = client.post("/queries", json=QUERY)
        assert r.status_code == 502
        assert r.json()["detail"] == "LLM provider temporarily unavailable. Please try again."


# ============================================================
# VERIFICATION
# ============================================================

class TestVerify:

    def test_verify_correct(self, client):
        inference_id = _create_query(client)["inference"]["id"]
        r = client.patch(f"/inferences/{inference_id}/verify", json={
            "selected_inference": "B",
            "correct": True,
            "rationale": RATIONALE,
            "confidence_score": 0.7,
        })
        assert r.status_code == 200
        data = r.json()
        assert data["inference"]["selected_inference"] == "B"
        assert data["inference"]["verification_correct"] is True
        assert 0.1 <= data["confidence"] <= 0.95
        assert set(data["logical_metrics"]) == {"consistency", "evidence_strength", "reasoning_clarity"}

    def test_verify_custom(self, client):
        inference_id = _create_query(client)["inference"]["id"]
        r = client.patch(f"/inferences/{inference_id}/verify", json={
            "selected_inference": "custom",
            "custom_inference": "Output rose only for teams with new tooling.",
            "correct": False,
            "rationale": RATIONALE,
        })
        assert r.status_code == 200
        assert r.json()["inference"]["selected_inference"] is None

    @pytest.mark.parametrize("body", [
        {"selected_inference": "D", "correct": True, "rationale": RATIONALE},
        {"selected_inference": "custom", "correct": True, "rationale": RATIONALE},
        {"selected_inference": "A", "correct": True, "rationale": "too short"},
        {"selected_inference": "A", "correct": True, "rationale": RATIONALE, "confidence_score": 1.5},
    ])
    def test_invalid_verification_rejected(self, client, body):
        inference_id = _create_query(client)["inference"]["id"]
        r = client.patch(f"/inferences/{inference_id}/verify", json=body)
        assert r.status_code == 422

    def test_unknown_inference(self, client):
        r = client.patch("/inferences/missing/verify", json={
            "selected_inference": "A", "correct": True, "rationale": RATIONALE,
        })
        assert r.status_code == 404


# ============================================================
# INFERENCE LISTS & STATS
# ============================================================

class TestInferenceLists:

    def test_unverified(self, client):
        _create_query(client)
        data = client.get("/inferences/unverified?limit=5").json()
        assert all(i["verified_at"] is None for i in data["inferences"])
        assert data["inferences"][0]["topic"]

    def test_recommended(self, client):
        _create_query(client)
        r = client.get("/inferences/recommended?limit=3")
        assert r.status_code == 200
        assert len(r.json()["inferences"]) <= 3

    @pytest.mark.parametrize("path", [
        "/inferences/unverified?limit=51",
        "/inferences/recommended?limit=21",
        "/inferences/recommended?limit=0",
    ])
    def test_limit_bounds(self, client, path):
        assert client.get(path).status_code == 422

    def test_stats(self, client):
        data = client.get("/inferences/stats").json()
        assert set(data) == {"total", "verified", "correct", "accuracy"}
        assert 0.0 <= data["accuracy"] <= 1.0


# ============================================================
# PREDICTIONS
# ============================================================

class TestPredictions:

    def test_predictions_from_verified(self, client):
        inference_id = _create_query(client)["inference"]["id"]
        client.patch(f"/inferences/{inference_id}/verify", json={
            "selected_inference": "A", "correct": True, "rationale": RATIONALE,
        })
        r = client.post("/predictions", json={"domain": "workplace", "limit": 5})
        assert r.status_code == 200
        data = r.json()
        assert data["predictions"].startswith("[Medium] Prediction")
        assert 1 <= data["supporting_inferences"] <= 5

    def test_no_verified_inferences(self, client, monkeypatch):
        from verinfer.store import store
        monkeypatch.setattr(store, "verified_correct_texts", lambda *args, **kwargs: [])
        r = client.post("/predictions", json={"domain": "workplace"})
        assert r.status_code == 400

    def test_domain_required(self, client):
        assert client.post("/predictions", json={}).status_code == 422
