"""Attribution of catalog enrollments: membership or individual purchase.

The catalog notifies us after *every* enrollment it completes, including
ones this service never asked for (a learner buying a single course).
The tagger stamps each with ``membership`` or ``individual`` so the
reconciliation diff can leave individual purchases alone later.

Two strategies, chosen by ATTRIBUTION_STRATEGY:

  any_level  membership when the install is membership-only or the user
             holds any active level at all.  Coarse: a course bought
             outright by someone who also holds an unrelated level is
             tagged membership, and a later downgrade will revoke it.
  binding    membership when the install is membership-only or the
             user's held levels actually grant this course.

Enrollments that already carry an attribution (the engine tags its own
enrollments with level and order details) are left as they are.
"""

from __future__ import annotations

import logging

from enrollsync.models.enrollment import (
    ATTRIBUTION_INDIVIDUAL,
    ATTRIBUTION_MEMBERSHIP,
    GrantContext,
)
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.access_checker import AccessChecker
from enrollsync.services.bundle_cascade import BundleCascadeHandler
from enrollsync.services.capabilities import Capabilities

logger = logging.getLogger(__name__)

STRATEGY_ANY_LEVEL = "any_level"
STRATEGY_BINDING = "binding"


class AttributionTagger:
    def __init__(
        self,
        catalog: CatalogGateway,
        access_checker: AccessChecker,
        cascade: BundleCascadeHandler,
        capabilities: Capabilities,
        *,
        membership_only: bool = False,
        strategy: str = STRATEGY_ANY_LEVEL,
    ) -> None:
        self._catalog = catalog
        self._access = access_checker
        self._cascade = cascade
        self._capabilities = capabilities
        self._membership_only = membership_only
        self._strategy = strategy

    def handle_enrollment_completed(
        self, course_id: int, user_id: int, enrollment_id: int
    ) -> str | None:
        """Tag one enrollment; returns the attribution written, or None."""
        enrollment = self._catalog.get_enrollment(enrollment_id)
        if enrollment is None:
            logger.debug(
                "Enrollment not found, nothing to tag",
                extra={"user_id": user_id, "course_id": course_id},
            )
            return None
        if enrollment.attribution is not None:
            return None

        levels = self._access.active_levels(user_id)
        level_id = levels[0].id if levels else None

        if self._is_membership(course_id, user_id, has_levels=bool(levels)):
            attribution = ATTRIBUTION_MEMBERSHIP
        else:
            attribution = ATTRIBUTION_INDIVIDUAL
            level_id = None

        self._catalog.tag_enrollment(
            enrollment_id, attribution=attribution, level_id=level_id
        )
        logger.info(
            "Tagged enrollment %d as %s",
            enrollment_id,
            attribution,
            extra={"user_id": user_id, "course_id": course_id, "level_id": level_id},
        )

        if (
            attribution == ATTRIBUTION_MEMBERSHIP
            and self._capabilities.bundle_addon_available()
        ):
            course = self._catalog.get_course(course_id)
            if course is not None and course.is_bundle:
                self._cascade.expand(
                    course_id,
                    user_id,
                    grant=GrantContext(level_id=level_id or 0),
                    trigger="enrollment_completed",
                )
        return attribution

    def is_enrolled_by_membership(self, course_id: int, user_id: int) -> bool:
        enrollment = self._catalog.get_active_enrollment(course_id, user_id)
        return enrollment is not None and enrollment.attribution == ATTRIBUTION_MEMBERSHIP

    def _is_membership(self, course_id: int, user_id: int, *, has_levels: bool) -> bool:
        if self._membership_only:
            return True
        if self._strategy == STRATEGY_BINDING:
            return self._access.has_course_access(course_id, user_id)
        return has_levels
