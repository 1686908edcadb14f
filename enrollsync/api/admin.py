"""Operator routes.

POST /admin/users/{user_id}/levels/{level_id}/cancel-access
  Access-model-aware revoke for one cancelled level: a full-website
  level cancels every enrollment the user holds, a category-wise level
  cancels the enrollments in its categories.  Unlike the membership diff
  this path does not spare individually purchased enrollments.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from enrollsync.api.dependencies import require_role
from enrollsync.models.principal import ROLE_ADMIN, Principal
from enrollsync.services.container import Container, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users/{user_id}/levels/{level_id}/cancel-access")
def cancel_level_access(
    user_id: int,
    level_id: int,
    principal: Annotated[Principal, Depends(require_role(ROLE_ADMIN))],
    container: Annotated[Container, Depends(get_container)],
) -> dict[str, Any]:
    level = container.billing.get_level(level_id)
    if level is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Level not found",
        )

    logger.info(
        "Admin %s cancelling access for level",
        principal.subject,
        extra={"user_id": user_id, "level_id": level_id},
    )
    result = container.adapters.on_level_access_cancelled(0, user_id, level_id)
    return {"access_model": level.access_model, **result.to_dict()}
