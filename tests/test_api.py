"""
test_api.py — HTTP surface tests (POST /processSOS, health probes).

The orchestrator is swapped in through ``app.dependency_overrides`` with
in-memory stores and MockTransport-backed channels. The app lifespan is
not started, so no database or real HTTP client is touched.

Run with:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from sos_backend.app.alerts.alert_repository import InMemoryAlertRepository
from sos_backend.app.alerts.alert_service import AlertOrchestrator
from sos_backend.app.alerts.channels.email_alert import EmailAlertChannel
from sos_backend.app.alerts.channels.push_notification import PushNotificationChannel
from sos_backend.app.alerts.subject_store import InMemorySubjectStore
from sos_backend.app.api.v1.sos import get_orchestrator
from sos_backend.app.core.database import Database
from sos_backend.app.core.health import HealthStatus, run_health_check
from sos_backend.app.main import app

PUSH_URL = "https://push.test/notifications"
EMAIL_URL = "https://mail.test/email"

SUBJECTS = {
    "S123": {"name": "Asha", "email": "a@x.com"},
    "S200": {"name": "Kabir"},
    "S300": {
        "name": "Mira",
        "email": "mira@x.com",
        "emergencyContacts": [
            {"name": "Mom", "email": "mom@x.com"},
            {"name": "Dad", "email": ""},
        ],
    },
}


class ProviderStub:
    """Routes provider calls by URL and records them."""

    def __init__(self, push_status: int = 200, email_status: int = 201,
                 push_error: Optional[Exception] = None):
        self.push_status = push_status
        self.email_status = email_status
        self.push_error = push_error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == PUSH_URL:
            if self.push_error:
                raise self.push_error
            return httpx.Response(self.push_status, json={"id": "notif-1"})
        return httpx.Response(self.email_status, json={"messageId": "<m1>"})

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


def _orchestrator(stub: Callable, repo: InMemoryAlertRepository, *,
                  push_configured: bool = True) -> AlertOrchestrator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return AlertOrchestrator(
        InMemorySubjectStore(SUBJECTS),
        repo,
        PushNotificationChannel(
            client,
            app_id="app-1" if push_configured else None,
            api_key="key",
            api_url=PUSH_URL,
        ),
        EmailAlertChannel(
            client, api_key="brevo", sender_email="alerts@campus.test", api_url=EMAIL_URL,
        ),
    )


@pytest.fixture
def repo():
    return InMemoryAlertRepository()


@pytest.fixture
def stub():
    return ProviderStub()


@pytest.fixture
def client(stub, repo):
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator(stub, repo)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _override(stub, repo, **kwargs):
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator(stub, repo, **kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: POST /processSOS — success
# ═══════════════════════════════════════════════════════════════════════════

class TestProcessSOSSuccess:

    def test_example_request(self, client, stub, repo):
        resp = client.post("/processSOS", json={"lat": 22.59, "lon": 88.36, "userId": "S123"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "SOS alert processed successfully"
        assert body["alertId"]
        assert body["notifications"] == {"pushNotification": True, "email": True}
        email_calls = stub.calls_to(EMAIL_URL)
        assert len(email_calls) == 1
        assert b'"to":[{"email":"a@x.com"}]' in email_calls[0].content.replace(b" ", b"")
        assert len(repo) == 1

    def test_alert_ids_distinct_across_calls(self, client, repo):
        payload = {"lat": 22.59, "lon": 88.36, "userId": "S123"}
        first = client.post("/processSOS", json=payload).json()["alertId"]
        second = client.post("/processSOS", json=payload).json()["alertId"]
        assert first != second
        assert len(repo) == 2

    def test_emergency_contacts_preferred(self, client, stub):
        resp = client.post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S300"})
        assert resp.status_code == 200
        content = stub.calls_to(EMAIL_URL)[0].content.replace(b" ", b"")
        assert b'"to":[{"email":"mom@x.com"}]' in content

    def test_no_email_anywhere(self, client, stub):
        resp = client.post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S200"})
        assert resp.status_code == 200
        assert resp.json()["notifications"]["email"] is False
        assert stub.calls_to(EMAIL_URL) == []

    def test_zero_coordinates_accepted(self, client):
        resp = client.post("/processSOS", json={"lat": 0, "lon": 0, "userId": "S123"})
        assert resp.status_code == 200

    def test_request_id_header(self, client):
        resp = client.post(
            "/processSOS",
            json={"lat": 1, "lon": 2, "userId": "S123"},
            headers={"X-Request-ID": "req-abc"},
        )
        assert resp.headers["X-Request-ID"] == "req-abc"
        assert resp.headers["X-Process-Time"].endswith("ms")


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: POST /processSOS — channel failures stay 200
# ═══════════════════════════════════════════════════════════════════════════

class TestProcessSOSChannelFailures:

    @pytest.mark.parametrize("status", [400, 500])
    def test_push_provider_error(self, repo, status):
        _override(ProviderStub(push_status=status), repo)
        try:
            resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
        assert resp.json()["alertId"]
        assert resp.json()["notifications"] == {"pushNotification": False, "email": True}

    def test_push_timeout(self, repo):
        stub = ProviderStub(push_error=httpx.ReadTimeout("slow"))
        _override(stub, repo)
        try:
            resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
        assert resp.json()["notifications"]["pushNotification"] is False

    def test_email_provider_error(self, repo):
        _override(ProviderStub(email_status=502), repo)
        try:
            resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
        assert resp.json()["notifications"] == {"pushNotification": True, "email": False}

    def test_push_not_configured(self, repo):
        stub = ProviderStub()
        _override(stub, repo, push_configured=False)
        try:
            resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
        assert resp.json()["notifications"]["pushNotification"] is False
        assert stub.calls_to(PUSH_URL) == []


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: POST /processSOS — request-level errors
# ═══════════════════════════════════════════════════════════════════════════

class TestProcessSOSErrors:

    @pytest.mark.parametrize("payload", [
        {"lon": 88.36, "userId": "S123"},
        {"lat": 22.59, "userId": "S123"},
        {"lat": 22.59, "lon": 88.36},
        {"lat": 22.59, "lon": 88.36, "userId": ""},
        {},
    ])
    def test_missing_fields_400(self, client, repo, stub, payload):
        resp = client.post("/processSOS", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Missing required fields: lat, lon, and userId are required",
        }
        assert len(repo) == 0
        assert stub.requests == []

    @pytest.mark.parametrize("user_id", [123, True, ["S123"]])
    def test_non_string_user_id_400(self, client, repo, stub, user_id):
        resp = client.post("/processSOS", json={"lat": 1, "lon": 2, "userId": user_id})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid userId: must be a string"}
        assert len(repo) == 0
        assert stub.requests == []

    def test_malformed_body_400(self, client, repo):
        resp = client.post("/processSOS", content=b"[1, 2]",
                           headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert len(repo) == 0

    def test_unknown_subject_404(self, client, repo, stub):
        resp = client.post("/processSOS", json={"lat": 1, "lon": 2, "userId": "GHOST"})
        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "error": "Student with userId GHOST not found",
        }
        assert len(repo) == 0
        assert stub.requests == []

    def test_write_failure_500(self, stub):
        class FailingRepository(InMemoryAlertRepository):
            async def add(self, record):
                raise RuntimeError("quota exceeded")

        _override(stub, FailingRepository())
        try:
            resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": "Internal server error",
            "message": "quota exceeded",
        }
        assert stub.requests == []

    def test_pipeline_not_initialised_500(self):
        app.dependency_overrides.clear()
        resp = TestClient(app).post("/processSOS", json={"lat": 1, "lon": 2, "userId": "S123"})
        assert resp.status_code == 500
        assert resp.json()["success"] is False


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Health
# ═══════════════════════════════════════════════════════════════════════════

class TestHealth:

    def test_health(self):
        resp = TestClient(app).get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["message"] == "Server is running"
        assert body["timestamp"]

    def test_liveness(self):
        assert TestClient(app).get("/health/live").json() == {"status": "alive"}

    def test_readiness_reports_components(self):
        resp = TestClient(app).get("/health/ready")
        assert resp.status_code == 200
        names = [c["name"] for c in resp.json()["components"]]
        assert names == ["record_store", "push_provider", "email_provider"]

    def test_health_matches_schema(self):
        body = TestClient(app).get("/health").json()
        assert set(body) == {"status", "message", "timestamp"}


@pytest.fixture
def unreachable_db(tmp_path):
    # Parent directory does not exist, so SQLite cannot open the file
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'sos.db'}")
    yield db
    asyncio.run(db.close())


class TestReadinessUnhealthy:

    def test_report_marks_store_unhealthy(self, unreachable_db):
        report = asyncio.run(run_health_check(unreachable_db))
        assert report.status == HealthStatus.UNHEALTHY
        store = report.components[0]
        assert store.name == "record_store"
        assert store.status == HealthStatus.UNHEALTHY

    def test_ready_returns_503(self, unreachable_db):
        app.state.database = unreachable_db
        try:
            resp = TestClient(app).get("/health/ready")
        finally:
            del app.state.database
        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"
