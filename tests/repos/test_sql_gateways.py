"""SQL gateways against an in-memory SQLite database.

StaticPool keeps a single connection alive so every session sees the
same in-memory database.  The schema comes from Base.metadata rather
than the Alembic migration; both describe the same tables.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from enrollsync.core.config import Settings
from enrollsync.db.engine import Base, create_session_factory
from enrollsync.db.tables import (
    BundleCourseRow,
    CourseCategoryRow,
    CourseRow,
    MemberLevelRow,
    MembershipCategoryRow,
    MembershipLevelMetaRow,
    MembershipLevelRow,
    MembershipPageRow,
)
from enrollsync.models.enrollment import (
    ATTRIBUTION_MEMBERSHIP,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
)
from enrollsync.models.level import (
    BOUND_COURSE_KEY,
    CATEGORY_WISE_MEMBERSHIP,
    MEMBERSHIP_MODEL_KEY,
)
from enrollsync.repos.sql_billing_repo import SqlBillingGateway
from enrollsync.repos.sql_catalog_repo import SqlCatalogGateway
from enrollsync.services.access_cache import InMemoryAccessCache
from enrollsync.services.container import build_container


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def seeded(session_factory: sessionmaker[Session]) -> None:
    """Levels 5 → {10, 11}, 7 → {11, 12}, 6 category-wise over {4};
    user 1 holds 6 (expired) then 5."""
    with session_factory.begin() as session:
        session.add_all(
            [
                CourseRow(id=10, title="Intro"),
                CourseRow(id=11, title="Advanced"),
                CourseRow(id=12, title="Expert"),
                CourseRow(id=13, title="Draft", status="draft"),
                CourseRow(id=100, title="Bundle", post_type="bundle"),
                MembershipLevelRow(id=5, name="Silver"),
                MembershipLevelRow(id=6, name="Category"),
                MembershipLevelRow(id=7, name="Gold"),
            ]
        )
        session.flush()
        session.add_all(
            [
                CourseCategoryRow(course_id=10, category_id=4),
                BundleCourseRow(bundle_id=100, course_id=12, position=1),
                BundleCourseRow(bundle_id=100, course_id=10, position=0),
                MembershipPageRow(level_id=5, page_id=10),
                MembershipPageRow(level_id=5, page_id=11),
                MembershipPageRow(level_id=7, page_id=11),
                MembershipPageRow(level_id=7, page_id=12),
                MembershipLevelMetaRow(
                    level_id=6,
                    meta_key=MEMBERSHIP_MODEL_KEY,
                    meta_value=CATEGORY_WISE_MEMBERSHIP,
                ),
                MembershipLevelMetaRow(level_id=5, meta_key=BOUND_COURSE_KEY, meta_value="13"),
                MembershipLevelMetaRow(level_id=7, meta_key=BOUND_COURSE_KEY, meta_value="nope"),
                MembershipCategoryRow(level_id=6, category_id=4),
                MemberLevelRow(user_id=1, level_id=6, enddate=1),
                MemberLevelRow(user_id=1, level_id=5),
                MemberLevelRow(user_id=1, level_id=7, status="inactive"),
            ]
        )


# ---- billing ----


@pytest.mark.usefixtures("seeded")
def test_levels_for_user_in_holding_order(session_factory: sessionmaker[Session]) -> None:
    levels = SqlBillingGateway(session_factory).levels_for_user(1)

    assert [level.id for level in levels] == [6, 5]
    category = levels[0]
    assert category.access_model == CATEGORY_WISE_MEMBERSHIP
    assert category.category_ids == {4}
    assert category.enddate == 1
    assert levels[1].access_model is None


@pytest.mark.usefixtures("seeded")
def test_get_level(session_factory: sessionmaker[Session]) -> None:
    billing = SqlBillingGateway(session_factory)
    assert billing.get_level(7).name == "Gold"
    assert billing.get_level(404) is None


@pytest.mark.usefixtures("seeded")
def test_restricted_pages_and_attributes(session_factory: sessionmaker[Session]) -> None:
    billing = SqlBillingGateway(session_factory)
    assert billing.restricted_page_ids([5, 7]) == {10, 11, 12}
    assert billing.restricted_page_ids([]) == set()
    assert billing.level_attribute_values([5, 7], BOUND_COURSE_KEY) == {13}


# ---- catalog ----


@pytest.mark.usefixtures("seeded")
def test_course_queries(session_factory: sessionmaker[Session]) -> None:
    catalog = SqlCatalogGateway(session_factory)

    course = catalog.get_course(10)
    assert course.title == "Intro"
    assert course.category_ids == {4}
    assert catalog.get_course(404) is None
    assert catalog.published_course_ids([10, 13, 100, 404], ["course"]) == {10}
    assert catalog.published_course_ids([10, 100], ["course", "bundle"]) == {10, 100}
    assert catalog.course_ids_in_categories([10, 11], [4]) == {10}
    assert catalog.bundle_course_ids(100) == [10, 12]


@pytest.mark.usefixtures("seeded")
def test_enrollment_primitives(session_factory: sessionmaker[Session]) -> None:
    catalog = SqlCatalogGateway(session_factory)

    enrollment_id = catalog.enroll(10, 1)
    catalog.set_enrollment_status(enrollment_id, STATUS_COMPLETED)
    catalog.tag_enrollment(
        enrollment_id,
        attribution=ATTRIBUTION_MEMBERSHIP,
        level_id=5,
        order_id=42,
        order_code="SQL42",
    )

    enrollment = catalog.get_active_enrollment(10, 1)
    assert enrollment.id == enrollment_id
    assert enrollment.status == STATUS_COMPLETED
    assert enrollment.attribution == ATTRIBUTION_MEMBERSHIP
    assert (enrollment.level_id, enrollment.order_id, enrollment.order_code) == (
        5,
        42,
        "SQL42",
    )
    assert catalog.enrolled_course_ids(1) == {10}

    catalog.cancel_enrollment(10, 1)
    assert catalog.get_active_enrollment(10, 1) is None
    assert catalog.get_enrollment(enrollment_id).status == STATUS_CANCELLED


@pytest.mark.usefixtures("seeded")
def test_enrollment_primitives_reject_unknown_ids(
    session_factory: sessionmaker[Session],
) -> None:
    catalog = SqlCatalogGateway(session_factory)
    with pytest.raises(KeyError):
        catalog.enroll(404, 1)
    with pytest.raises(KeyError):
        catalog.set_enrollment_status(999, STATUS_COMPLETED)
    with pytest.raises(KeyError):
        catalog.tag_enrollment(999, attribution=ATTRIBUTION_MEMBERSHIP)


# ---- end to end through the container ----


@pytest.mark.usefixtures("seeded")
def test_level_upgrade_against_sql(
    session_factory: sessionmaker[Session], settings: Settings
) -> None:
    container = build_container(
        settings, session_factory=session_factory, cache=InMemoryAccessCache()
    )
    catalog = container.catalog
    assert isinstance(catalog, SqlCatalogGateway)

    first = container.engine.reconcile(1, [], [5])
    assert first.enrolled == {10, 11}
    kept = catalog.get_active_enrollment(11, 1)

    second = container.engine.reconcile(1, [5], [7])

    assert second.unenrolled == {10}
    assert second.enrolled == {12}
    assert catalog.get_active_enrollment(11, 1) == kept
    assert catalog.get_active_enrollment(12, 1).level_id == 7
