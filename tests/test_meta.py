from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import create_app
from core.settings import reset_settings_cache


def test_meta_endpoint_fields(monkeypatch):
    monkeypatch.setenv("APP_VERSION", "1.2.3")
    monkeypatch.setenv("GIT_SHA", "abc1234")
    reset_settings_cache()
    client = TestClient(create_app())
    r = client.get("/api/meta")
    assert r.status_code == 200
    assert r.json() == {"app_version": "1.2.3", "git_sha": "abc1234", "build_ts": ""}


def test_healthz_runs_a_query(client):
    r = client.get("/api/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["status"] == "healthy"


def test_openapi_documents_cookie_auth_and_problems(client):
    schema = client.get("/openapi.json").json()
    comps = schema["components"]
    assert comps["securitySchemes"]["SessionCookie"]["name"] == "ps_session"
    assert "ProblemDetails" in comps["schemas"]
    post_reports = schema["paths"]["/api/reports"]["post"]
    assert {"$ref": "#/components/parameters/IdempotencyKey"} in post_reports["parameters"]
    assert "409" in schema["paths"]["/api/crm/consultations/{consultation_id}/move-to-report"]["post"]["responses"]


def test_request_id_round_trips(client):
    r = client.get("/api/auth/me", headers={"X-Request-ID": "req-42"})
    assert r.status_code == 401
    assert r.headers["x-request-id"] == "req-42"
    assert r.json()["request_id"] == "req-42"
    assert client.get("/api/healthz").headers["x-request-id"]
