"""
API Tests — Triage Service Endpoints
=====================================
FastAPI TestClient with the ledger store swapped for a fakeredis-backed
one through ``app.dependency_overrides``.
"""
import json
from unittest.mock import MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from main import app
from shipcheck.api.deps import get_ledger_store, get_triage_service
from shipcheck.services.ledger_store import LedgerError, RedisLedgerStore
from shipcheck.services.triage_service import TriageService

PAYLOAD = {
    "sessionId": "s1",
    "repository": {"owner": "acme", "repo": "widgets", "branch": "main", "commit": "abc1234"},
    "stage": "pre-push",
    "totalErrors": 3,
    "totalWarnings": 0,
    "errors": [
        {"taskName": "lint", "errorKind": "lint", "severity": "error", "message": "Missing semicolon",
         "location": {"file": "src/a.ts", "line": 10, "column": 5}},
        {"taskName": "lint", "errorKind": "lint", "severity": "error", "message": "Missing semicolon",
         "location": {"file": "src/a.ts", "line": 10, "column": 5}},
        {"taskName": "typecheck", "errorKind": "typecheck", "severity": "error", "message": "TS2322: bad",
         "location": {"file": "src/b.ts", "line": 3, "column": 1}},
    ],
}


@pytest.fixture
def fake():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(fake):
    store = RedisLedgerStore(client=fake)
    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_triage_service] = lambda: TriageService(store=store)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# 1. POST /api/report
# ---------------------------------------------------------------------------
class TestSubmitReport:

    def test_submission_processed(self, client, fake):
        response = client.post("/api/report", json=PAYLOAD)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["processed"] == {"original": 3, "unique": 2, "total": 2}
        assert len(json.loads(fake.get("acme-widgets"))["bugs"]) == 2

    def test_missing_repository_is_400(self, client):
        payload = dict(PAYLOAD, repository={"owner": "acme"})
        response = client.post("/api/report", json=payload)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_invalid_body_is_400(self, client):
        response = client.post("/api/report", content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 400

    def test_bad_shape_is_422(self, client):
        payload = dict(PAYLOAD, errors=[{"taskName": "lint"}])
        response = client.post("/api/report", json=payload)
        assert response.status_code == 422

    def test_empty_errors(self, client):
        response = client.post("/api/report", json=dict(PAYLOAD, errors=[]))
        assert response.json() == {"success": True, "message": "No errors to process", "totalBugs": 0}

    def test_ledger_failure_is_500(self):
        store = MagicMock()
        store.load.side_effect = LedgerError("connection refused")
        app.dependency_overrides[get_triage_service] = lambda: TriageService(store=store)
        try:
            response = TestClient(app).post("/api/report", json=PAYLOAD)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        store.save.assert_not_called()


# ---------------------------------------------------------------------------
# 2. Read endpoints
# ---------------------------------------------------------------------------
class TestReadEndpoints:

    def test_get_report(self, client):
        client.post("/api/report", json=PAYLOAD)
        body = client.get("/api/report", params={"owner": "acme", "repo": "widgets"}).json()
        assert body["totalBugs"] == 2
        assert body["repository"] == {"owner": "acme", "repo": "widgets"}

    def test_get_report_requires_params(self, client):
        response = client.get("/api/report", params={"owner": "acme"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing owner or repo parameter"

    def test_next_suggestion(self, client):
        client.post("/api/report", json=PAYLOAD)
        body = client.get("/api/next-suggestion", params={"owner": "acme", "repo": "widgets"}).json()
        assert body["suggestion"]["type"] == "bug"
        assert body["suggestion"]["priority"] == "high"

    def test_next_suggestion_unknown_repository(self, client):
        body = client.get("/api/next-suggestion", params={"owner": "nobody", "repo": "nothing"}).json()
        assert body == {"suggestion": None, "message": "Repository not found"}

    def test_next_suggestion_requires_params(self, client):
        assert client.get("/api/next-suggestion").status_code == 400

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# 3. Test-execution history
# ---------------------------------------------------------------------------
class TestExecutionEndpoints:

    def test_list_and_clear(self, client):
        client.post("/api/report", json=PAYLOAD)
        client.post("/api/report", json=dict(PAYLOAD, sessionId="s2"))
        params = {"owner": "acme", "repo": "widgets"}

        body = client.get("/api/test-executions", params=params).json()
        assert body["total"] == 2
        assert {e["id"] for e in body["executions"]} == {"s1", "s2"}

        detailed = client.get("/api/test-executions", params=dict(params, detailed="true")).json()
        assert "errors" in detailed["executions"][0]

        cleared = client.delete("/api/test-executions", params=params).json()
        assert cleared["deletedCount"] == 2
        assert client.get("/api/test-executions", params=params).json()["total"] == 0

    def test_requires_params(self, client):
        assert client.get("/api/test-executions", params={"repo": "widgets"}).status_code == 400
        assert client.delete("/api/test-executions").status_code == 400
