"""Translate billing and catalog events into engine calls.

Each entry point mirrors one event contract of the collaborating
subsystems, decodes its loosely-typed payload at the boundary, and
hands the engine a clean (user, old levels, new levels) triple:

  on_checkout_completed      held ∪ {order level}, enroll only
  on_level_changed           old={cancel_level}, new={level_id},
                             other held levels retained
  on_bulk_level_changes      per user: old=pre-sweep, new=held now
  on_order_refunded          old={refunded level}, new=other held,
                             revoke only
  on_level_access_cancelled  access-model revoke, bypasses the diff
  on_enrollment_completed    attribution tagging

Every entry point first asks Capabilities whether the catalog is there
(no-op if not), and none of them raises: the event source must never see
a failure from us.  Unexpected errors are logged with their traceback
and an empty result is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from enrollsync.models.enrollment import (
    GrantContext,
    ReconciliationResult,
    as_id,
    decode_order,
)
from enrollsync.models.level import (
    CATEGORY_WISE_MEMBERSHIP,
    FULL_WEBSITE_MEMBERSHIP,
    level_ids_of,
)
from enrollsync.repos.billing_repo import BillingGateway
from enrollsync.repos.catalog_repo import CatalogGateway
from enrollsync.services.attribution import AttributionTagger
from enrollsync.services.capabilities import Capabilities
from enrollsync.services.reconciler import (
    TRIGGER_ACCESS_CANCELLED,
    TRIGGER_BULK,
    TRIGGER_CHECKOUT,
    TRIGGER_LEVEL_CHANGED,
    TRIGGER_REFUND,
    ReconciliationEngine,
)

logger = logging.getLogger(__name__)


class EnrollmentEventAdapters:
    def __init__(
        self,
        billing: BillingGateway,
        catalog: CatalogGateway,
        engine: ReconciliationEngine,
        tagger: AttributionTagger,
        capabilities: Capabilities,
    ) -> None:
        self._billing = billing
        self._catalog = catalog
        self._engine = engine
        self._tagger = tagger
        self._capabilities = capabilities

    def _held_level_ids(self, user_id: int) -> list[int]:
        """Held level ids in the billing subsystem's order."""
        return [level.id for level in self._billing.levels_for_user(user_id)]

    # ------------------------------------------------------------------
    # Billing events
    # ------------------------------------------------------------------

    def on_checkout_completed(self, user_id: object, order: object) -> ReconciliationResult:
        uid = as_id(user_id)
        empty = ReconciliationResult(user_id=uid, trigger=TRIGGER_CHECKOUT)
        if not self._capabilities.course_catalog_available() or not uid:
            return empty
        try:
            decoded = decode_order(order)
            level_ids = set(self._held_level_ids(uid))
            if decoded is not None and decoded.level_id:
                level_ids.add(decoded.level_id)
            if not level_ids:
                return empty

            grant = GrantContext(
                level_id=decoded.level_id if decoded else 0, order=decoded
            )
            return self._engine.enroll_courses(
                uid,
                self._engine.course_set(level_ids),
                trigger=TRIGGER_CHECKOUT,
                grant=grant,
            )
        except Exception:
            logger.exception("Checkout reconciliation failed", extra={"user_id": uid})
            return empty

    def on_level_changed(
        self, level_id: object, user_id: object, cancel_level: object = None
    ) -> ReconciliationResult:
        uid = as_id(user_id)
        new_level = as_id(level_id)
        old_level = as_id(cancel_level)
        empty = ReconciliationResult(user_id=uid, trigger=TRIGGER_LEVEL_CHANGED)
        if not self._capabilities.course_catalog_available() or not uid:
            return empty
        try:
            retained = set(self._held_level_ids(uid))
            return self._engine.reconcile(
                uid,
                {old_level} - {0},
                {new_level} - {0},
                trigger=TRIGGER_LEVEL_CHANGED,
                grant=GrantContext(level_id=new_level),
                retained_level_ids=retained,
            )
        except Exception:
            logger.exception(
                "Level change reconciliation failed",
                extra={"user_id": uid, "level_id": new_level},
            )
            return empty

    def on_bulk_level_changes(
        self, old_user_levels: Mapping[object, Iterable[object]] | None
    ) -> dict[int, ReconciliationResult]:
        results: dict[int, ReconciliationResult] = {}
        if not self._capabilities.course_catalog_available() or not old_user_levels:
            return results

        logger.info("Bulk level change for %d user(s)", len(old_user_levels))
        for raw_user_id, old_levels in old_user_levels.items():
            uid = as_id(raw_user_id)
            if not uid:
                continue
            try:
                current = self._held_level_ids(uid)
                results[uid] = self._engine.reconcile(
                    uid,
                    level_ids_of(old_levels),
                    current,
                    trigger=TRIGGER_BULK,
                    grant=GrantContext(level_id=current[0] if current else 0),
                )
            except Exception:
                logger.exception(
                    "Bulk reconciliation failed for user, continuing",
                    extra={"user_id": uid},
                )
                results[uid] = ReconciliationResult(user_id=uid, trigger=TRIGGER_BULK)
        return results

    def on_order_refunded(
        self, order: object, old_status: str | None = None
    ) -> ReconciliationResult:
        decoded = decode_order(order)
        uid = decoded.user_id if decoded else 0
        empty = ReconciliationResult(user_id=uid, trigger=TRIGGER_REFUND)
        if not self._capabilities.course_catalog_available():
            return empty
        if decoded is None or not decoded.user_id or not decoded.level_id:
            logger.debug("Refund payload without user or level, ignoring")
            return empty
        try:
            others = [
                level_id
                for level_id in self._held_level_ids(uid)
                if level_id != decoded.level_id
            ]
            return self._engine.reconcile(
                uid,
                {decoded.level_id},
                others,
                trigger=TRIGGER_REFUND,
                apply_enrolls=False,
            )
        except Exception:
            logger.exception(
                "Refund reconciliation failed",
                extra={"user_id": uid, "level_id": decoded.level_id},
            )
            return empty

    def on_level_access_cancelled(
        self, level_id: object, user_id: object, cancel_level: object = None
    ) -> ReconciliationResult:
        uid = as_id(user_id)
        cancelled = as_id(cancel_level)
        empty = ReconciliationResult(user_id=uid, trigger=TRIGGER_ACCESS_CANCELLED)
        if not self._capabilities.course_catalog_available() or not uid or not cancelled:
            return empty
        try:
            level = self._billing.get_level(cancelled)
            if level is None:
                return empty

            if level.access_model == FULL_WEBSITE_MEMBERSHIP:
                targets = self._catalog.enrolled_course_ids(uid)
            elif level.access_model == CATEGORY_WISE_MEMBERSHIP:
                if not level.category_ids:
                    return empty
                targets = self._catalog.course_ids_in_categories(
                    self._catalog.enrolled_course_ids(uid), level.category_ids
                )
            else:
                return empty

            return self._engine.revoke_courses(
                uid, targets, trigger=TRIGGER_ACCESS_CANCELLED
            )
        except Exception:
            logger.exception(
                "Access-model revoke failed",
                extra={"user_id": uid, "level_id": cancelled},
            )
            return empty

    # ------------------------------------------------------------------
    # Catalog events
    # ------------------------------------------------------------------

    def on_enrollment_completed(
        self, course_id: object, user_id: object, enrollment_id: object
    ) -> str | None:
        uid = as_id(user_id)
        cid = as_id(course_id)
        eid = as_id(enrollment_id)
        if not self._capabilities.course_catalog_available() or not (uid and cid and eid):
            return None
        try:
            return self._tagger.handle_enrollment_completed(cid, uid, eid)
        except Exception:
            logger.exception(
                "Attribution tagging failed",
                extra={"user_id": uid, "course_id": cid},
            )
            return None
