from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from enrollsync.repos.billing_repo import InMemoryBillingGateway
from enrollsync.repos.catalog_repo import InMemoryCatalogGateway
from enrollsync.services.container import Container
from tests.conftest import add_courses, add_level, auth, mint_token


def test_access_reports_grant_and_attribution(
    client: TestClient,
    catalog_token: str,
    container: Container,
    billing: InMemoryBillingGateway,
    catalog: InMemoryCatalogGateway,
) -> None:
    add_courses(catalog, 10)
    add_level(billing, 5, 10)
    billing.assign_level(1, 5)
    container.engine.reconcile(1, [], [5])

    resp = client.get("/v1/users/1/courses/10/access", headers=auth(catalog_token))

    assert resp.status_code == 200
    assert resp.json() == {
        "user_id": 1,
        "course_id": 10,
        "has_access": True,
        "enrolled_by_membership": True,
    }


def test_access_denied_without_levels(
    client: TestClient, admin_token: str, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10)
    resp = client.get("/v1/users/2/courses/10/access", headers=auth(admin_token))
    body = resp.json()
    assert body["has_access"] is False
    assert body["enrolled_by_membership"] is False


def test_access_requires_token(client: TestClient) -> None:
    resp = client.get("/v1/users/1/courses/10/access")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.parametrize("roles", [None, ["viewer"], ["learner"]])
def test_access_rejects_callers_without_service_role(
    client: TestClient, roles: list[str] | None
) -> None:
    token = mint_token(subject="learner-1", roles=roles)
    resp = client.get("/v1/users/1/courses/10/access", headers=auth(token))
    assert resp.status_code == 403


def test_billing_service_can_read_access(
    client: TestClient, billing_token: str, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10)
    resp = client.get("/v1/users/1/courses/10/access", headers=auth(billing_token))
    assert resp.status_code == 200
