from __future__ import annotations

from collections.abc import Iterable

from enrollsync.models.course import PRICE_TYPE_FREE, Course
from enrollsync.repos.catalog_repo import CatalogGateway


def is_membership_gated(course: Course) -> bool:
    """Public or free courses are never subject to membership gating."""
    return not course.is_public and course.price_type != PRICE_TYPE_FREE


def filter_gated(course_ids: Iterable[int], catalog: CatalogGateway) -> frozenset[int]:
    """Keep only known, membership-gated course ids."""
    kept: set[int] = set()
    for course_id in course_ids:
        course = catalog.get_course(course_id)
        if course is not None and is_membership_gated(course):
            kept.add(course_id)
    return frozenset(kept)
