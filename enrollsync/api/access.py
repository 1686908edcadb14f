"""GET /v1/users/{user_id}/courses/{course_id}/access

Answers whether the user's held membership levels grant the course,
through the same cached AccessChecker the bundle cascade uses.
Service and admin callers only.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from enrollsync.api.dependencies import require_any_role
from enrollsync.models.principal import ROLE_ADMIN, ROLE_BILLING, ROLE_CATALOG, Principal
from enrollsync.services.container import Container, get_container

router = APIRouter(prefix="/v1/users", tags=["access"])

_access_reader = require_any_role({ROLE_ADMIN, ROLE_BILLING, ROLE_CATALOG})


class CourseAccessOut(BaseModel):
    user_id: int
    course_id: int
    has_access: bool
    enrolled_by_membership: bool


@router.get("/{user_id}/courses/{course_id}/access", response_model=CourseAccessOut)
def course_access(
    user_id: int,
    course_id: int,
    principal: Annotated[Principal, Depends(_access_reader)],
    container: Annotated[Container, Depends(get_container)],
) -> CourseAccessOut:
    return CourseAccessOut(
        user_id=user_id,
        course_id=course_id,
        has_access=container.access_checker.has_course_access(course_id, user_id),
        enrolled_by_membership=container.tagger.is_enrolled_by_membership(
            course_id, user_id
        ),
    )
