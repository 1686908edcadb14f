from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from redis import RedisError
from sqlalchemy.exc import SQLAlchemyError

from enrollsync.core.config import Settings
from enrollsync.db import engine as db
from enrollsync.db import redis as cache_db
from enrollsync.main import app
from enrollsync.repos.billing_repo import InMemoryBillingGateway
from enrollsync.repos.catalog_repo import InMemoryCatalogGateway
from enrollsync.services.access_cache import InMemoryAccessCache
from enrollsync.services.capabilities import StaticCapabilities
from enrollsync.services.container import build_container, get_container


def test_health_without_backing_services(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "checks": {"database": "not_configured", "redis": "not_configured"},
        "capabilities": {"course_catalog": True, "bundle_addon": True},
    }


def test_health_reports_capabilities(settings: Settings) -> None:
    container = build_container(
        settings,
        billing=InMemoryBillingGateway(),
        catalog=InMemoryCatalogGateway(),
        cache=InMemoryAccessCache(),
        capabilities=StaticCapabilities(course_catalog=True, bundle_addon=False),
    )
    app.dependency_overrides[get_container] = lambda: container
    try:
        resp = TestClient(app).get("/health")
    finally:
        app.dependency_overrides.clear()
    assert resp.json()["capabilities"] == {"course_catalog": True, "bundle_addon": False}


def test_ready_without_database_is_200(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


class _DownEngine:
    def connect(self):
        raise SQLAlchemyError("connection refused")


class _DownRedis:
    def ping(self) -> bool:
        raise RedisError("connection refused")


def test_unreachable_dependencies_report_degraded(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(db, "engine", _DownEngine())
    monkeypatch.setattr(cache_db, "redis_client", _DownRedis())

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert body["checks"] == {"database": "degraded", "redis": "degraded"}
    assert client.get("/ready").status_code == 503


def test_redis_outage_does_not_fail_readiness(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cache_db, "redis_client", _DownRedis())
    assert client.get("/ready").status_code == 200
