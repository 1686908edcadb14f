"""Fan a bundle enrollment out to the bundle's member courses.

A member is enrolled only when the learner's held levels grant it on
their own (AccessChecker).  Expansion is one level deep: a member that
is itself a bundle gets enrolled like any other course, but its own
members are not unwound.
"""

from __future__ import annotations

import logging

from enrollsync.core.metrics import ENROLLMENT_MUTATION_FAILURES, ENROLLMENT_MUTATIONS
from enrollsync.models.enrollment import (
    ATTRIBUTION_MEMBERSHIP,
    STATUS_COMPLETED,
    GrantContext,
)
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.access_checker import AccessChecker

logger = logging.getLogger(__name__)


class BundleCascadeHandler:
    def __init__(self, catalog: CatalogGateway, access_checker: AccessChecker) -> None:
        self._catalog = catalog
        self._access = access_checker

    def expand(
        self,
        bundle_id: int,
        user_id: int,
        *,
        grant: GrantContext | None = None,
        trigger: str = "cascade",
    ) -> frozenset[int]:
        """Enroll user_id into each accessible member of bundle_id.

        Returns the member course ids actually enrolled.  A failure on
        one member is logged and the remaining members are still tried.
        """
        grant = grant or GrantContext()
        enrolled: set[int] = set()
        for course_id in self._catalog.bundle_course_ids(bundle_id):
            if course_id == bundle_id:
                continue
            try:
                if self._catalog.get_active_enrollment(course_id, user_id) is not None:
                    logger.debug(
                        "Bundle member already enrolled",
                        extra={"user_id": user_id, "course_id": course_id},
                    )
                    continue
                if not self._access.has_course_access(course_id, user_id):
                    logger.debug(
                        "Bundle member not independently granted",
                        extra={"user_id": user_id, "course_id": course_id},
                    )
                    continue
                enrollment_id = self._catalog.enroll(course_id, user_id)
                self._catalog.set_enrollment_status(enrollment_id, STATUS_COMPLETED)
                self._catalog.tag_enrollment(
                    enrollment_id,
                    attribution=ATTRIBUTION_MEMBERSHIP,
                    level_id=grant.level_id or None,
                    order_id=grant.order_id,
                    order_code=grant.order_code,
                )
            except Exception:
                logger.exception(
                    "Bundle cascade failed for member course",
                    extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
                )
                ENROLLMENT_MUTATION_FAILURES.labels(trigger=trigger, action="cascade").inc()
                continue

            enrolled.add(course_id)
            ENROLLMENT_MUTATIONS.labels(trigger=trigger, action="cascade").inc()
            logger.info(
                "Cascaded bundle %d to member course",
                bundle_id,
                extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
            )
        return frozenset(enrolled)
