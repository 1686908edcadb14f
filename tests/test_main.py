from __future__ import annotations

from fastapi.testclient import TestClient

from enrollsync.core.config import SETTINGS
from enrollsync.main import app


def test_app_title() -> None:
    assert app.title == "enrollsync"


def test_routes_registered() -> None:
    paths = {route.path for route in app.routes}
    assert {
        "/health",
        "/ready",
        "/metrics",
        "/v1/hooks/billing/checkout",
        "/v1/hooks/billing/level-changed",
        "/v1/hooks/billing/bulk-level-changes",
        "/v1/hooks/billing/order-refunded",
        "/v1/hooks/catalog/enrollment-completed",
        "/admin/users/{user_id}/levels/{level_id}/cancel-access",
        "/v1/users/{user_id}/courses/{course_id}/access",
    } <= paths


def test_docs_only_in_dev(client: TestClient) -> None:
    resp = client.get("/docs")
    assert resp.status_code == (200 if SETTINGS.is_dev else 404)
