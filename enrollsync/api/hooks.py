"""Webhook routes for the billing and catalog subsystems.

Each route validates the payload shape (pydantic → 422 on junk), then
publishes the matching event on the container's bus, exactly as an
in-process subscriber would receive it:

  POST /v1/hooks/billing/checkout            → billing.checkout_completed
  POST /v1/hooks/billing/level-changed       → billing.level_changed
  POST /v1/hooks/billing/bulk-level-changes  → billing.bulk_levels_changed
  POST /v1/hooks/billing/order-refunded      → billing.order_refunded
  POST /v1/hooks/catalog/enrollment-completed → catalog.enrollment_completed

Routes answer 202 with what the reconciliation did.  A failure inside a
handler is absorbed by the bus, so the event source always gets its 202;
the failure shows up in logs and in event_handler_failures_total.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from enrollsync.api.dependencies import require_any_role
from enrollsync.models.enrollment import ReconciliationResult
from enrollsync.models.principal import ROLE_ADMIN, ROLE_BILLING, ROLE_CATALOG, Principal
from enrollsync.services import event_bus as events
from enrollsync.services.container import Container, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/hooks", tags=["hooks"])

_billing_caller = require_any_role({ROLE_BILLING, ROLE_ADMIN})
_catalog_caller = require_any_role({ROLE_CATALOG, ROLE_ADMIN})


class OrderIn(BaseModel):
    id: int | None = None
    code: str | None = None
    user_id: int | None = None
    membership_id: int | None = None


class CheckoutIn(BaseModel):
    user_id: int = Field(ge=0)
    order: OrderIn | None = None


class LevelChangedIn(BaseModel):
    level_id: int = Field(default=0, ge=0)  # 0 means cancelled, no replacement
    user_id: int = Field(ge=0)
    cancel_level: int | None = None


class BulkLevelChangesIn(BaseModel):
    # user id → level ids held before the sweep
    old_user_levels: dict[int, list[int]]


class OrderRefundedIn(BaseModel):
    order: OrderIn | None = None
    old_status: str | None = None


class EnrollmentCompletedIn(BaseModel):
    course_id: int = Field(ge=0)
    user_id: int = Field(ge=0)
    enrollment_id: int = Field(ge=0)


class HookAccepted(BaseModel):
    event: str
    results: list[dict[str, Any]]


class AttributionAccepted(BaseModel):
    event: str
    attribution: str | None


def _serialize(results: list[Any]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for result in results:
        if isinstance(result, ReconciliationResult):
            out.append(result.to_dict())
        elif isinstance(result, dict):
            out.extend(r.to_dict() for r in result.values())
    return out


def _publish(container: Container, event: str, *args: Any) -> HookAccepted:
    results = container.bus.publish(event, *args)
    return HookAccepted(event=event, results=_serialize(results))


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


@router.post(
    "/billing/checkout",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
)
def checkout_completed(
    body: CheckoutIn,
    principal: Annotated[Principal, Depends(_billing_caller)],
    container: Annotated[Container, Depends(get_container)],
) -> HookAccepted:
    order = body.order.model_dump() if body.order else None
    return _publish(container, events.CHECKOUT_COMPLETED, body.user_id, order)


@router.post(
    "/billing/level-changed",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
)
def level_changed(
    body: LevelChangedIn,
    principal: Annotated[Principal, Depends(_billing_caller)],
    container: Annotated[Container, Depends(get_container)],
) -> HookAccepted:
    return _publish(
        container, events.LEVEL_CHANGED, body.level_id, body.user_id, body.cancel_level
    )


@router.post(
    "/billing/bulk-level-changes",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
)
def bulk_level_changes(
    body: BulkLevelChangesIn,
    principal: Annotated[Principal, Depends(_billing_caller)],
    container: Annotated[Container, Depends(get_container)],
) -> HookAccepted:
    logger.info(
        "Bulk level change hook from %s for %d user(s)",
        principal.subject,
        len(body.old_user_levels),
    )
    return _publish(container, events.BULK_LEVELS_CHANGED, body.old_user_levels)


@router.post(
    "/billing/order-refunded",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
)
def order_refunded(
    body: OrderRefundedIn,
    principal: Annotated[Principal, Depends(_billing_caller)],
    container: Annotated[Container, Depends(get_container)],
) -> HookAccepted:
    order = body.order.model_dump() if body.order else None
    return _publish(container, events.ORDER_REFUNDED, order, body.old_status)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@router.post(
    "/catalog/enrollment-completed",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AttributionAccepted,
)
def enrollment_completed(
    body: EnrollmentCompletedIn,
    principal: Annotated[Principal, Depends(_catalog_caller)],
    container: Annotated[Container, Depends(get_container)],
) -> AttributionAccepted:
    results = container.bus.publish(
        events.ENROLLMENT_COMPLETED, body.course_id, body.user_id, body.enrollment_id
    )
    return AttributionAccepted(
        event=events.ENROLLMENT_COMPLETED,
        attribution=results[0] if results else None,
    )
