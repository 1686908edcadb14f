"""Level → course resolution.

A level grants a course through either of two independent sources, and
both are honoured:

  1. the billing subsystem's restricted-pages table, where a level is
     associated with page ids and some of those pages are courses;
  2. the ``bound_course_id`` level attribute, a backward pointer written
     when a course is authored for one specific level.

With the bundle add-on available, a third source joins the union: the
``bound_bundle_id`` attribute, which binds a level to a bundle, is
expanded into the bundle's member courses.

The sources are unioned, never ranked.  Candidates from the attribute
sources are re-validated against the catalog, since an attribute can
outlive the course it points at; stale ones are dropped quietly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from enrollsync.models.course import POST_TYPE_BUNDLE, POST_TYPE_COURSE
from enrollsync.models.level import BOUND_BUNDLE_KEY, BOUND_COURSE_KEY, level_ids_of
from enrollsync.repos.billing_repo import BillingGateway
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.capabilities import Capabilities

logger = logging.getLogger(__name__)


class LevelCourseResolver:
    def __init__(
        self,
        billing: BillingGateway,
        catalog: CatalogGateway,
        capabilities: Capabilities,
    ) -> None:
        self._billing = billing
        self._catalog = catalog
        self._capabilities = capabilities

    def _post_types(self) -> tuple[str, ...]:
        if self._capabilities.bundle_addon_available():
            return (POST_TYPE_COURSE, POST_TYPE_BUNDLE)
        return (POST_TYPE_COURSE,)

    def resolve(self, level_ids: Iterable[int]) -> frozenset[int]:
        """Return the published course ids granted by any of level_ids."""
        ids = level_ids_of(level_ids)
        if not ids:
            return frozenset()

        post_types = self._post_types()

        from_pages = self._catalog.published_course_ids(
            self._billing.restricted_page_ids(ids), post_types
        )

        bound = self._billing.level_attribute_values(ids, BOUND_COURSE_KEY)
        from_attribute = self._catalog.published_course_ids(bound, post_types)
        if stale := bound - from_attribute:
            logger.debug(
                "Discarding stale bound_course_id entries",
                extra={"level_id": sorted(ids), "course_id": sorted(stale)},
            )

        courses = set(from_pages) | from_attribute
        if self._capabilities.bundle_addon_available():
            courses |= self._bundle_members(ids, post_types)
        return frozenset(courses)

    def _bundle_members(
        self, level_ids: set[int], post_types: tuple[str, ...]
    ) -> set[int]:
        bundle_ids = self._catalog.published_course_ids(
            self._billing.level_attribute_values(level_ids, BOUND_BUNDLE_KEY),
            (POST_TYPE_BUNDLE,),
        )
        members: set[int] = set()
        for bundle_id in bundle_ids:
            members.update(self._catalog.bundle_course_ids(bundle_id))
        return self._catalog.published_course_ids(members, post_types)
