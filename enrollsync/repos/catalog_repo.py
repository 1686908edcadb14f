"""Course-catalog subsystem: course queries and enrollment primitives.

The catalog owns courses and enrollment rows.  This service mutates
enrollments only through enroll / set_enrollment_status /
cancel_enrollment / tag_enrollment, never by writing rows directly.
"""

from __future__ import annotations

import time
from collections.abc import Collection
from dataclasses import replace
from typing import Protocol

from enrollsync.models.course import Course
from enrollsync.models.enrollment import STATUS_ACTIVE, STATUS_CANCELLED, Enrollment


class CatalogGateway(Protocol):
    def get_course(self, course_id: int) -> Course | None: ...
    def published_course_ids(
        self, course_ids: Collection[int], post_types: Collection[str]
    ) -> set[int]: ...
    def get_active_enrollment(
        self, course_id: int, user_id: int
    ) -> Enrollment | None: ...
    def get_enrollment(self, enrollment_id: int) -> Enrollment | None: ...
    def enroll(self, course_id: int, user_id: int) -> int: ...
    def set_enrollment_status(self, enrollment_id: int, status: str) -> None: ...
    def cancel_enrollment(self, course_id: int, user_id: int) -> None: ...
    def tag_enrollment(
        self,
        enrollment_id: int,
        *,
        attribution: str,
        level_id: int | None = None,
        order_id: int | None = None,
        order_code: str | None = None,
    ) -> None: ...
    def enrolled_course_ids(self, user_id: int) -> set[int]: ...
    def course_ids_in_categories(
        self, course_ids: Collection[int], category_ids: Collection[int]
    ) -> set[int]: ...
    def bundle_course_ids(self, bundle_id: int) -> list[int]: ...


class InMemoryCatalogGateway:
    def __init__(self) -> None:
        self._courses: dict[int, Course] = {}
        self._bundles: dict[int, list[int]] = {}
        self._enrollments: dict[int, Enrollment] = {}
        self._next_id = 1

    # --- seeding helpers ---

    def add_course(self, course: Course) -> Course:
        self._courses[course.id] = course
        return course

    def set_bundle_courses(self, bundle_id: int, course_ids: list[int]) -> None:
        self._bundles[bundle_id] = list(course_ids)

    def enrollments_for(self, user_id: int) -> list[Enrollment]:
        return [e for e in self._enrollments.values() if e.user_id == user_id]

    # --- CatalogGateway ---

    def get_course(self, course_id: int) -> Course | None:
        return self._courses.get(course_id)

    def published_course_ids(
        self, course_ids: Collection[int], post_types: Collection[str]
    ) -> set[int]:
        return {
            cid
            for cid in course_ids
            if (c := self._courses.get(cid)) is not None
            and c.is_published
            and c.post_type in post_types
        }

    def get_active_enrollment(
        self, course_id: int, user_id: int
    ) -> Enrollment | None:
        for enrollment in self._enrollments.values():
            if (
                enrollment.course_id == course_id
                and enrollment.user_id == user_id
                and enrollment.is_active
            ):
                return enrollment
        return None

    def get_enrollment(self, enrollment_id: int) -> Enrollment | None:
        return self._enrollments.get(enrollment_id)

    def enroll(self, course_id: int, user_id: int) -> int:
        if course_id not in self._courses:
            raise KeyError(f"course {course_id} not found")
        enrollment = Enrollment(
            id=self._next_id,
            user_id=user_id,
            course_id=course_id,
            status=STATUS_ACTIVE,
            enrolled_at=int(time.time()),
        )
        self._next_id += 1
        self._enrollments[enrollment.id] = enrollment
        return enrollment.id

    def set_enrollment_status(self, enrollment_id: int, status: str) -> None:
        enrollment = self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise KeyError(f"enrollment {enrollment_id} not found")
        self._enrollments[enrollment_id] = replace(enrollment, status=status)

    def cancel_enrollment(self, course_id: int, user_id: int) -> None:
        for enrollment in list(self._enrollments.values()):
            if (
                enrollment.course_id == course_id
                and enrollment.user_id == user_id
                and enrollment.is_active
            ):
                self._enrollments[enrollment.id] = replace(
                    enrollment, status=STATUS_CANCELLED
                )

    def tag_enrollment(
        self,
        enrollment_id: int,
        *,
        attribution: str,
        level_id: int | None = None,
        order_id: int | None = None,
        order_code: str | None = None,
    ) -> None:
        enrollment = self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise KeyError(f"enrollment {enrollment_id} not found")
        self._enrollments[enrollment_id] = replace(
            enrollment,
            attribution=attribution,
            level_id=level_id if level_id is not None else enrollment.level_id,
            order_id=order_id if order_id is not None else enrollment.order_id,
            order_code=order_code if order_code is not None else enrollment.order_code,
        )

    def enrolled_course_ids(self, user_id: int) -> set[int]:
        return {
            e.course_id
            for e in self._enrollments.values()
            if e.user_id == user_id and e.is_active
        }

    def course_ids_in_categories(
        self, course_ids: Collection[int], category_ids: Collection[int]
    ) -> set[int]:
        wanted = set(category_ids)
        return {
            cid
            for cid in course_ids
            if (c := self._courses.get(cid)) is not None
            and c.is_published
            and c.category_ids & wanted
        }

    def bundle_course_ids(self, bundle_id: int) -> list[int]:
        return list(self._bundles.get(bundle_id, []))
