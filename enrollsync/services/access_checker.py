"""Does a user's held membership independently grant one course?

Used by the bundle cascade to decide which bundle members a learner may
be enrolled in, by the ``binding`` attribution strategy, and by the
access-check HTTP route.

Decision order for a single (user, course) pair:

  1. unknown or non-gated (public/free) course   → False
  2. for each level the user holds, skipping expired ones:
       full_website_membership                   → True
       category_wise_membership, categories meet → True
       the level's resolved binding has course   → True
  3. otherwise                                   → False

Decisions are cached per pair for ACCESS_CACHE_TTL seconds.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from enrollsync.core.metrics import ACCESS_CHECK_CACHE
from enrollsync.models.level import (
    CATEGORY_WISE_MEMBERSHIP,
    FULL_WEBSITE_MEMBERSHIP,
    MembershipLevel,
)
from enrollsync.repos.billing_repo import BillingGateway
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.access_cache import AccessCache, access_key
from enrollsync.services.eligibility import is_membership_gated
from enrollsync.services.resolver import LevelCourseResolver

logger = logging.getLogger(__name__)


class AccessChecker:
    def __init__(
        self,
        billing: BillingGateway,
        catalog: CatalogGateway,
        resolver: LevelCourseResolver,
        cache: AccessCache,
        *,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._billing = billing
        self._catalog = catalog
        self._resolver = resolver
        self._cache = cache
        self._ttl = ttl_seconds
        self._clock = clock

    def has_course_access(self, course_id: int, user_id: int) -> bool:
        key = access_key(user_id, course_id)
        cached = self._cache.get(key)
        if cached is not None:
            ACCESS_CHECK_CACHE.labels(result="hit").inc()
            return cached

        ACCESS_CHECK_CACHE.labels(result="miss").inc()
        decision = self._compute(course_id, user_id)
        self._cache.set(key, decision, self._ttl)
        return decision

    def invalidate_user(self, user_id: int) -> None:
        self._cache.invalidate_user(user_id)

    def active_levels(self, user_id: int) -> list[MembershipLevel]:
        now = int(self._clock())
        return [
            level
            for level in self._billing.levels_for_user(user_id)
            if not level.is_expired(now)
        ]

    def _compute(self, course_id: int, user_id: int) -> bool:
        course = self._catalog.get_course(course_id)
        if course is None or not is_membership_gated(course):
            return False

        for level in self.active_levels(user_id):
            if level.access_model == FULL_WEBSITE_MEMBERSHIP:
                return True
            if level.access_model == CATEGORY_WISE_MEMBERSHIP:
                if level.category_ids & course.category_ids:
                    return True
                continue
            if course_id in self._resolver.resolve([level.id]):
                return True

        logger.debug(
            "No held level grants course",
            extra={"user_id": user_id, "course_id": course_id},
        )
        return False
