"""The reconciliation engine: level sets in, minimal enrollment delta out.

HOW ONE CALL WORKS
------------------
    old_courses = gated(resolve(old_level_ids))
    new_courses = gated(resolve(new_level_ids))
    kept        = gated(resolve(retained_level_ids))

    to_unenroll = old_courses − new_courses − kept
    to_enroll   = new_courses − old_courses

Both sets are filtered for public/free courses *before* the diff, so a
course that became free between two events is in neither branch.

A course in old ∩ new never appears in either set, so a level swap that
keeps a course leaves its enrollment untouched.  ``retained_level_ids``
carries the levels the user still holds besides the ones changing; any
course they grant is kept even when a changing level also granted it.
That is what makes access OR-semantic across levels.

IDEMPOTENCE
-----------
Every mutation is guarded by a fresh read of the current enrollment:

  unenroll  only if an active enrollment exists and it is not
            individual-attributed (a direct purchase is never revoked
            by the membership diff)
  enroll    only if no active enrollment exists

So replaying the same event twice mutates nothing the second time.

FAILURE ISOLATION
-----------------
Each course is its own unit of work.  A primitive that raises is logged
with its traceback, counted, recorded in ``failed``, and the loop moves
on.  Nothing is retried; the next event re-derives the diff from the
current truth.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from enrollsync.core.metrics import (
    ENROLLMENT_MUTATION_FAILURES,
    ENROLLMENT_MUTATIONS,
    RECONCILE_DURATION,
)
from enrollsync.models.enrollment import (
    ATTRIBUTION_MEMBERSHIP,
    STATUS_COMPLETED,
    GrantContext,
    ReconciliationInput,
    ReconciliationResult,
)
from enrollsync.models.level import level_ids_of
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.access_checker import AccessChecker
from enrollsync.services.bundle_cascade import BundleCascadeHandler
from enrollsync.services.capabilities import Capabilities
from enrollsync.services.eligibility import filter_gated
from enrollsync.services.resolver import LevelCourseResolver

logger = logging.getLogger(__name__)

TRIGGER_CHECKOUT = "checkout"
TRIGGER_LEVEL_CHANGED = "level_changed"
TRIGGER_BULK = "bulk_level_changes"
TRIGGER_REFUND = "order_refunded"
TRIGGER_ACCESS_CANCELLED = "access_cancelled"
TRIGGER_MANUAL = "manual"


class ReconciliationEngine:
    def __init__(
        self,
        catalog: CatalogGateway,
        resolver: LevelCourseResolver,
        capabilities: Capabilities,
        access_checker: AccessChecker,
        cascade: BundleCascadeHandler,
    ) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._capabilities = capabilities
        self._access = access_checker
        self._cascade = cascade

    def course_set(self, level_ids: Iterable[int]) -> frozenset[int]:
        """Membership-gated courses granted by any of level_ids."""
        return filter_gated(self._resolver.resolve(level_ids), self._catalog)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def reconcile(
        self,
        user_id: int,
        old_level_ids: Iterable[int],
        new_level_ids: Iterable[int],
        *,
        trigger: str = TRIGGER_MANUAL,
        grant: GrantContext | None = None,
        retained_level_ids: Iterable[int] = (),
        apply_enrolls: bool = True,
    ) -> ReconciliationResult:
        request = ReconciliationInput(
            user_id=user_id,
            old_level_ids=frozenset(level_ids_of(old_level_ids)),
            new_level_ids=frozenset(level_ids_of(new_level_ids)),
        )
        retained = level_ids_of(retained_level_ids)

        with RECONCILE_DURATION.labels(trigger=trigger).time():
            self._access.invalidate_user(user_id)

            old_courses = self.course_set(request.old_level_ids)
            new_courses = self.course_set(request.new_level_ids)
            kept = (
                self.course_set(retained - request.old_level_ids)
                if retained
                else frozenset()
            )

            to_unenroll = old_courses - new_courses - kept
            to_enroll = new_courses - old_courses if apply_enrolls else frozenset()

            if grant is None or not grant.level_id:
                grant = GrantContext(
                    level_id=min(request.new_level_ids, default=0),
                    order=grant.order if grant else None,
                )

            unenrolled, unenroll_failed = self._unenroll_loop(
                user_id, to_unenroll, trigger=trigger
            )
            enrolled, cascaded, enroll_failed = self._enroll_loop(
                user_id, to_enroll, trigger=trigger, grant=grant
            )

        result = ReconciliationResult(
            user_id=user_id,
            trigger=trigger,
            enrolled=enrolled,
            unenrolled=unenrolled,
            failed=unenroll_failed | enroll_failed,
            cascaded=cascaded,
        )
        self._log_result(result, request)
        return result

    def enroll_courses(
        self,
        user_id: int,
        course_ids: Iterable[int],
        *,
        trigger: str = TRIGGER_CHECKOUT,
        grant: GrantContext | None = None,
    ) -> ReconciliationResult:
        """Enroll-only path: no course is ever removed."""
        with RECONCILE_DURATION.labels(trigger=trigger).time():
            self._access.invalidate_user(user_id)
            enrolled, cascaded, failed = self._enroll_loop(
                user_id,
                frozenset(course_ids),
                trigger=trigger,
                grant=grant or GrantContext(),
            )
        result = ReconciliationResult(
            user_id=user_id,
            trigger=trigger,
            enrolled=enrolled,
            failed=failed,
            cascaded=cascaded,
        )
        self._log_result(result)
        return result

    def revoke_courses(
        self,
        user_id: int,
        course_ids: Iterable[int],
        *,
        trigger: str = TRIGGER_ACCESS_CANCELLED,
    ) -> ReconciliationResult:
        """Cancel every listed course, regardless of attribution."""
        unenrolled: set[int] = set()
        failed: set[int] = set()
        with RECONCILE_DURATION.labels(trigger=trigger).time():
            self._access.invalidate_user(user_id)
            for course_id in sorted(set(course_ids)):
                try:
                    self._catalog.cancel_enrollment(course_id, user_id)
                except Exception:
                    self._record_failure(user_id, course_id, trigger, "revoke")
                    failed.add(course_id)
                    continue
                unenrolled.add(course_id)
                ENROLLMENT_MUTATIONS.labels(trigger=trigger, action="revoke").inc()
        result = ReconciliationResult(
            user_id=user_id,
            trigger=trigger,
            unenrolled=frozenset(unenrolled),
            failed=frozenset(failed),
        )
        self._log_result(result)
        return result

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def _unenroll_loop(
        self, user_id: int, course_ids: frozenset[int], *, trigger: str
    ) -> tuple[frozenset[int], frozenset[int]]:
        done: set[int] = set()
        failed: set[int] = set()
        for course_id in sorted(course_ids):
            try:
                if self._unenroll_one(user_id, course_id, trigger=trigger):
                    done.add(course_id)
            except Exception:
                self._record_failure(user_id, course_id, trigger, "unenroll")
                failed.add(course_id)
        return frozenset(done), frozenset(failed)

    def _unenroll_one(self, user_id: int, course_id: int, *, trigger: str) -> bool:
        enrollment = self._catalog.get_active_enrollment(course_id, user_id)
        if enrollment is None:
            logger.debug(
                "Not enrolled, nothing to cancel",
                extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
            )
            return False
        if enrollment.is_individual:
            logger.debug(
                "Keeping individually purchased enrollment",
                extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
            )
            return False

        self._catalog.cancel_enrollment(course_id, user_id)
        ENROLLMENT_MUTATIONS.labels(trigger=trigger, action="unenroll").inc()
        logger.info(
            "Unenrolled",
            extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
        )
        return True

    def _enroll_loop(
        self,
        user_id: int,
        course_ids: frozenset[int],
        *,
        trigger: str,
        grant: GrantContext,
    ) -> tuple[frozenset[int], frozenset[int], frozenset[int]]:
        done: set[int] = set()
        cascaded: set[int] = set()
        failed: set[int] = set()
        for course_id in sorted(course_ids):
            try:
                created = self._enroll_one(
                    user_id, course_id, trigger=trigger, grant=grant
                )
            except Exception:
                self._record_failure(user_id, course_id, trigger, "enroll")
                failed.add(course_id)
                continue
            if created:
                done.add(course_id)
                cascaded |= self._cascade_if_bundle(
                    course_id, user_id, trigger=trigger, grant=grant
                )
        return frozenset(done), frozenset(cascaded), frozenset(failed)

    def _enroll_one(
        self, user_id: int, course_id: int, *, trigger: str, grant: GrantContext
    ) -> bool:
        if self._catalog.get_active_enrollment(course_id, user_id) is not None:
            logger.debug(
                "Already enrolled",
                extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
            )
            return False

        enrollment_id = self._catalog.enroll(course_id, user_id)
        try:
            self._catalog.set_enrollment_status(enrollment_id, STATUS_COMPLETED)
            self._catalog.tag_enrollment(
                enrollment_id,
                attribution=ATTRIBUTION_MEMBERSHIP,
                level_id=grant.level_id or None,
                order_id=grant.order_id,
                order_code=grant.order_code,
            )
        except Exception:
            # An active, untagged row would block every later retry.
            self._rollback_enroll(user_id, course_id, trigger=trigger)
            raise
        ENROLLMENT_MUTATIONS.labels(trigger=trigger, action="enroll").inc()
        logger.info(
            "Enrolled",
            extra={
                "user_id": user_id,
                "course_id": course_id,
                "level_id": grant.level_id or None,
                "trigger": trigger,
            },
        )
        return True

    def _rollback_enroll(self, user_id: int, course_id: int, *, trigger: str) -> None:
        try:
            self._catalog.cancel_enrollment(course_id, user_id)
        except Exception:
            logger.exception(
                "Rollback of partial enrollment failed",
                extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
            )
            return
        logger.warning(
            "Rolled back partial enrollment",
            extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
        )

    def _cascade_if_bundle(
        self, course_id: int, user_id: int, *, trigger: str, grant: GrantContext
    ) -> frozenset[int]:
        if not self._capabilities.bundle_addon_available():
            return frozenset()
        try:
            course = self._catalog.get_course(course_id)
            if course is None or not course.is_bundle:
                return frozenset()
            return self._cascade.expand(course_id, user_id, grant=grant, trigger=trigger)
        except Exception:
            self._record_failure(user_id, course_id, trigger, "cascade")
            return frozenset()

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record_failure(
        self, user_id: int, course_id: int, trigger: str, action: str
    ) -> None:
        logger.exception(
            "Enrollment %s failed, continuing with next course",
            action,
            extra={"user_id": user_id, "course_id": course_id, "trigger": trigger},
        )
        ENROLLMENT_MUTATION_FAILURES.labels(trigger=trigger, action=action).inc()

    def _log_result(
        self,
        result: ReconciliationResult,
        request: ReconciliationInput | None = None,
    ) -> None:
        level = logging.INFO if result.changed or result.failed else logging.DEBUG
        if request is not None:
            logger.log(
                level,
                "%s old=%s new=%s enrolled=%s unenrolled=%s failed=%s",
                result.trigger,
                sorted(request.old_level_ids),
                sorted(request.new_level_ids),
                sorted(result.enrolled),
                sorted(result.unenrolled),
                sorted(result.failed),
                extra={"user_id": result.user_id, "trigger": result.trigger},
            )
        else:
            logger.log(
                level,
                "%s enrolled=%s unenrolled=%s failed=%s",
                result.trigger,
                sorted(result.enrolled),
                sorted(result.unenrolled),
                sorted(result.failed),
                extra={"user_id": result.user_id, "trigger": result.trigger},
            )
