from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from enrollsync.core.config import Settings
from enrollsync.main import app
from enrollsync.models.course import Course
from enrollsync.models.level import MembershipLevel
from enrollsync.repos.billing_repo import InMemoryBillingGateway
from enrollsync.repos.catalog_repo import InMemoryCatalogGateway
from enrollsync.services import token_service
from enrollsync.services.access_cache import InMemoryAccessCache
from enrollsync.services.container import Container, build_container, get_container

# Ensure repo root is on sys.path so `import enrollsync` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def make_settings(**overrides) -> Settings:
    values = {
        "app_env": "test",
        "log_level": "info",
        "log_json": False,
        "port": 8000,
        "database_url": None,
        "redis_url": None,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Gateways and container
# ---------------------------------------------------------------------------


@pytest.fixture
def billing() -> InMemoryBillingGateway:
    return InMemoryBillingGateway()


@pytest.fixture
def catalog() -> InMemoryCatalogGateway:
    return InMemoryCatalogGateway()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def container(
    billing: InMemoryBillingGateway,
    catalog: InMemoryCatalogGateway,
    settings: Settings,
) -> Container:
    return build_container(
        settings, billing=billing, catalog=catalog, cache=InMemoryAccessCache()
    )


@pytest.fixture
def client(container: Container) -> Iterator[TestClient]:
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


def add_courses(catalog: InMemoryCatalogGateway, *course_ids: int, **fields) -> None:
    """Seed published, paid courses (fields override the Course defaults)."""
    for course_id in course_ids:
        catalog.add_course(Course(id=course_id, title=f"Course {course_id}", **fields))


def add_level(
    billing: InMemoryBillingGateway,
    level_id: int,
    *course_ids: int,
    **fields,
) -> MembershipLevel:
    """Seed a level bound to course_ids through the restricted-pages table."""
    level = billing.add_level(MembershipLevel(id=level_id, name=f"Level {level_id}", **fields))
    for course_id in course_ids:
        billing.restrict_page(level_id, course_id)
    return level


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def mint_token(
    subject: str = "test-service",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=subject, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token() -> str:
    return mint_token(subject="ops-admin", roles=["admin"])


@pytest.fixture
def billing_token() -> str:
    return mint_token(subject="billing-service", roles=["billing"])


@pytest.fixture
def catalog_token() -> str:
    return mint_token(subject="catalog-service", roles=["catalog"])
