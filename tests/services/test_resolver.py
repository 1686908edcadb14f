from __future__ import annotations

from enrollsync.models.course import Course
from enrollsync.models.level import BOUND_BUNDLE_KEY, BOUND_COURSE_KEY
from enrollsync.repos.billing_repo import InMemoryBillingGateway
from enrollsync.repos.catalog_repo import InMemoryCatalogGateway
from enrollsync.services.capabilities import StaticCapabilities
from enrollsync.services.resolver import LevelCourseResolver
from tests.conftest import add_courses, add_level


def _resolver(
    billing: InMemoryBillingGateway,
    catalog: InMemoryCatalogGateway,
    *,
    bundle_addon: bool = True,
) -> LevelCourseResolver:
    return LevelCourseResolver(
        billing, catalog, StaticCapabilities(course_catalog=True, bundle_addon=bundle_addon)
    )


def test_empty_level_set_resolves_to_empty(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    assert _resolver(billing, catalog).resolve([]) == frozenset()
    assert _resolver(billing, catalog).resolve([0, -3]) == frozenset()


def test_restricted_pages_that_are_not_courses_are_ignored(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10)
    catalog.add_course(Course(id=50, title="Lesson", post_type="lesson"))
    # 60 is a plain page the catalog does not know.
    add_level(billing, 5, 10, 50, 60)

    assert _resolver(billing, catalog).resolve([5]) == {10}


def test_unpublished_courses_are_dropped(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10)
    add_courses(catalog, 11, status="draft")
    add_level(billing, 5, 10, 11)

    assert _resolver(billing, catalog).resolve([5]) == {10}


def test_pages_and_bound_attribute_are_unioned(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10, 11, 12)
    add_level(billing, 5, 10)
    billing.set_attribute(5, BOUND_COURSE_KEY, 11)
    add_level(billing, 7)
    billing.set_attribute(7, BOUND_COURSE_KEY, "12")

    assert _resolver(billing, catalog).resolve([5, 7]) == {10, 11, 12}


def test_stale_or_malformed_bound_attribute_is_discarded(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10)
    add_courses(catalog, 11, status="trash")
    add_level(billing, 5)
    billing.set_attribute(5, BOUND_COURSE_KEY, 10)
    billing.set_attribute(5, BOUND_COURSE_KEY, 11)
    billing.set_attribute(5, BOUND_COURSE_KEY, 999)
    billing.set_attribute(5, BOUND_COURSE_KEY, "abc")

    assert _resolver(billing, catalog).resolve([5]) == {10}


def test_bound_bundle_expands_to_published_members(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 20, 21)
    add_courses(catalog, 22, status="draft")
    catalog.add_course(Course(id=100, title="Bundle", post_type="bundle"))
    catalog.set_bundle_courses(100, [20, 21, 22])
    add_level(billing, 5)
    billing.set_attribute(5, BOUND_BUNDLE_KEY, 100)

    assert _resolver(billing, catalog).resolve([5]) == {20, 21}


def test_bound_bundle_ignored_without_bundle_addon(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 20)
    catalog.add_course(Course(id=100, title="Bundle", post_type="bundle"))
    catalog.set_bundle_courses(100, [20])
    add_level(billing, 5, 100)
    billing.set_attribute(5, BOUND_BUNDLE_KEY, 100)

    assert _resolver(billing, catalog, bundle_addon=False).resolve([5]) == frozenset()


def test_bundle_page_resolves_as_course_with_addon(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    catalog.add_course(Course(id=100, title="Bundle", post_type="bundle"))
    add_level(billing, 5, 100)

    assert _resolver(billing, catalog).resolve([5]) == {100}


def test_bound_bundle_pointing_at_plain_course_is_ignored(
    billing: InMemoryBillingGateway, catalog: InMemoryCatalogGateway
) -> None:
    add_courses(catalog, 10, 20)
    catalog.set_bundle_courses(10, [20])
    add_level(billing, 5)
    billing.set_attribute(5, BOUND_BUNDLE_KEY, 10)

    assert _resolver(billing, catalog).resolve([5]) == frozenset()
