from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_launch_service, get_stats_engine, get_sync_orchestrator
from app.core.auth import ROLE_ADMIN, ROLE_USER, create_access_token
from app.core.config import DEVELOPMENT_JWT_SECRET, Settings, get_settings
from app.core.errors import SourceUnavailable
from app.db import get_db
from app.main import app
from app.services.bootstrap import seed_accounts
from app.services.launches import LaunchQueryService
from app.services.stats import StatisticsEngine
from app.services.sync import SyncOrchestrator

from conftest import NOW, launch_json


client = TestClient(app)


@pytest.fixture(autouse=True)
def wired(session_factory, cache, fake_source, clock):
    seed_accounts(session_factory, get_settings())

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stats_engine] = lambda: StatisticsEngine(
        cache, session_factory, zone=timezone.utc, clock=clock)
    app.dependency_overrides[get_launch_service] = lambda: LaunchQueryService(session_factory, zone=timezone.utc)
    app.dependency_overrides[get_sync_orchestrator] = lambda: SyncOrchestrator(fake_source, cache, session_factory)
    yield
    app.dependency_overrides.clear()


def _login(email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def _auth(email="user@example.com", password="user123"):
    token = _login(email, password).json()["token"]
    return {"Authorization": f"Bearer {token}"}


def test_login_contract():
    resp = _login("admin@example.com", "admin123")
    assert resp.status_code == 200
    data = resp.json()
    assert data["type"] == "Bearer"
    assert data["token"]
    assert data["expires_in"] > 0


def test_login_rejects_bad_credentials():
    resp = _login("admin@example.com", "wrong")
    assert resp.status_code == 401
    data = resp.json()
    assert data["error"] is True
    assert data["code"] == "INVALID_CREDENTIALS"
    assert data["message"] == "Invalid credentials"


def test_dashboard_requires_a_token():
    resp = client.get("/api/dashboard/kpis")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"

    resp = client.get("/api/dashboard/kpis", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_expired_token_is_rejected():
    token = create_access_token("user@example.com", [ROLE_USER], now=NOW - timedelta(days=365))
    resp = client.get("/api/dashboard/kpis", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "TOKEN_EXPIRED"


def test_fallback_secret_only_applies_to_local_environments():
    assert Settings(sld_env="test", sld_jwt_secret=None).effective_jwt_secret == DEVELOPMENT_JWT_SECRET
    assert Settings(sld_env="production", sld_jwt_secret=None).effective_jwt_secret is None
    assert Settings(sld_env="production", sld_jwt_secret="s3cret").effective_jwt_secret == "s3cret"


def test_production_without_secret_refuses_tokens_signed_with_the_fallback(monkeypatch):
    production = Settings(sld_env="production", sld_jwt_secret=None)
    monkeypatch.setattr("app.core.auth.get_settings", lambda: production)
    forged = jwt.encode(
        {"sub": "attacker", "roles": [ROLE_ADMIN], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        DEVELOPMENT_JWT_SECRET,
        algorithm="HS256",
    )

    resp = client.post("/api/admin/resync", headers={"Authorization": f"Bearer {forged}"})

    assert resp.status_code == 500
    assert resp.json()["message"] == "JWT secret not configured"
    assert _login("admin@example.com", "admin123").status_code == 500


def test_admin_endpoints_require_admin_role():
    resp = client.post("/api/admin/resync", headers=_auth())
    assert resp.status_code == 403
    assert resp.json()["code"] == "ACCESS_DENIED"


def test_resync_then_dashboard_contract(fake_source):
    fake_source.launches = [
        launch_json("L1", NOW + timedelta(days=30), None, "R1"),
        launch_json("L2", NOW - timedelta(days=30), True, "R1", "slc40", ["P1"]),
    ]
    admin = _auth("admin@example.com", "admin123")

    resp = client.post("/api/admin/resync", headers=admin)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["launchesProcessed"] == 2
    for key in ["message", "failed", "skipped", "placeholders", "durationSeconds"]:
        assert key in data

    user = _auth()
    kpis = client.get("/api/dashboard/kpis", headers=user).json()
    assert kpis["totalLaunches"] == 2
    assert kpis["successRate"] == 50.0
    assert kpis["nextLaunch"]["id"] == "L1"
    assert kpis["nextLaunch"]["rocket"]["name"] == "Unknown Rocket"

    yearly = client.get("/api/dashboard/stats/yearly", headers=user).json()
    assert [entry["year"] for entry in yearly] == sorted(entry["year"] for entry in yearly)
    for entry in yearly:
        for key in ["year", "totalLaunches", "successRate"]:
            assert key in entry

    page = client.get("/api/dashboard/launches", params={"success": "true"}, headers=user).json()
    for key in ["content", "totalElements", "totalPages", "number", "size"]:
        assert key in page
    assert [launch["id"] for launch in page["content"]] == ["L2"]
    assert page["content"][0]["launchPad"]["locality"] == "Cape Canaveral"

    detail = client.get("/api/dashboard/launches/L2", headers=user).json()
    assert detail["dateUtc"].endswith("Z") or detail["dateUtc"].endswith("+00:00")
    assert [p["id"] for p in detail["payloads"]] == ["P1"]


def test_unknown_launch_is_404():
    resp = client.get("/api/dashboard/launches/missing", headers=_auth())
    assert resp.status_code == 404
    assert resp.json()["code"] == "RESOURCE_NOT_FOUND"


def test_invalid_paging_is_422():
    resp = client.get("/api/dashboard/launches", params={"size": 0}, headers=_auth())
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_resync_reports_fatal_source_failure(fake_source):
    fake_source.launches_error = SourceUnavailable("HTTP 503", url="https://api.spacexdata.com/v5/launches",
                                                   status_code=503)

    resp = client.post("/api/admin/resync", headers=_auth("admin@example.com", "admin123"))

    assert resp.status_code == 502
    data = resp.json()
    assert data["code"] == "DATA_SOURCE_ERROR"
    assert data["details"][0]["instance"] == "https://api.spacexdata.com/v5/launches"


def test_health_and_metrics():
    assert client.get("/health").json()["status"] in ("ok", "degraded")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "sld_sync_records_total" in resp.text
