"""SQL implementation of CatalogGateway."""

from __future__ import annotations

import time
from collections.abc import Collection

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from enrollsync.db.tables import (
    BundleCourseRow,
    CourseCategoryRow,
    CourseRow,
    EnrollmentRow,
)
from enrollsync.models.course import STATUS_PUBLISHED, Course
from enrollsync.models.enrollment import STATUS_ACTIVE, STATUS_CANCELLED, Enrollment


class SqlCatalogGateway:
    """Satisfies the CatalogGateway Protocol using SQLAlchemy.

    Reads open a plain session; every mutation runs in its own
    ``session_factory.begin()`` block so each primitive commits (or
    rolls back) on its own and a failure on one course leaves the
    others untouched.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # --- courses ---

    def get_course(self, course_id: int) -> Course | None:
        with self._session_factory() as session:
            row = session.get(CourseRow, course_id)
            if row is None:
                return None
            categories = session.scalars(
                select(CourseCategoryRow.category_id).where(
                    CourseCategoryRow.course_id == course_id
                )
            )
            return _row_to_course(row, frozenset(categories))

    def published_course_ids(
        self, course_ids: Collection[int], post_types: Collection[str]
    ) -> set[int]:
        if not course_ids or not post_types:
            return set()
        stmt = select(CourseRow.id).where(
            CourseRow.id.in_(list(course_ids)),
            CourseRow.status == STATUS_PUBLISHED,
            CourseRow.post_type.in_(list(post_types)),
        )
        with self._session_factory() as session:
            return set(session.scalars(stmt))

    def course_ids_in_categories(
        self, course_ids: Collection[int], category_ids: Collection[int]
    ) -> set[int]:
        if not course_ids or not category_ids:
            return set()
        stmt = (
            select(CourseCategoryRow.course_id)
            .join(CourseRow, CourseRow.id == CourseCategoryRow.course_id)
            .where(
                CourseCategoryRow.course_id.in_(list(course_ids)),
                CourseCategoryRow.category_id.in_(list(category_ids)),
                CourseRow.status == STATUS_PUBLISHED,
            )
            .distinct()
        )
        with self._session_factory() as session:
            return set(session.scalars(stmt))

    def bundle_course_ids(self, bundle_id: int) -> list[int]:
        stmt = (
            select(BundleCourseRow.course_id)
            .where(BundleCourseRow.bundle_id == bundle_id)
            .order_by(BundleCourseRow.position, BundleCourseRow.course_id)
        )
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    # --- enrollments ---

    def get_active_enrollment(
        self, course_id: int, user_id: int
    ) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.user_id == user_id,
                EnrollmentRow.status != STATUS_CANCELLED,
            )
            .order_by(EnrollmentRow.id.desc())
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _row_to_enrollment(row) if row is not None else None

    def get_enrollment(self, enrollment_id: int) -> Enrollment | None:
        with self._session_factory() as session:
            row = session.get(EnrollmentRow, enrollment_id)
            return _row_to_enrollment(row) if row is not None else None

    def enrolled_course_ids(self, user_id: int) -> set[int]:
        stmt = select(EnrollmentRow.course_id).where(
            EnrollmentRow.user_id == user_id,
            EnrollmentRow.status != STATUS_CANCELLED,
        )
        with self._session_factory() as session:
            return set(session.scalars(stmt))

    def enroll(self, course_id: int, user_id: int) -> int:
        with self._session_factory.begin() as session:
            if session.get(CourseRow, course_id) is None:
                raise KeyError(f"course {course_id} not found")
            row = EnrollmentRow(
                user_id=user_id,
                course_id=course_id,
                status=STATUS_ACTIVE,
                enrolled_at=int(time.time()),
            )
            session.add(row)
            session.flush()
            return row.id

    def set_enrollment_status(self, enrollment_id: int, status: str) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(status=status)
        )
        with self._session_factory.begin() as session:
            if session.execute(stmt).rowcount == 0:
                raise KeyError(f"enrollment {enrollment_id} not found")

    def cancel_enrollment(self, course_id: int, user_id: int) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.user_id == user_id,
                EnrollmentRow.status != STATUS_CANCELLED,
            )
            .values(status=STATUS_CANCELLED)
        )
        with self._session_factory.begin() as session:
            session.execute(stmt)

    def tag_enrollment(
        self,
        enrollment_id: int,
        *,
        attribution: str,
        level_id: int | None = None,
        order_id: int | None = None,
        order_code: str | None = None,
    ) -> None:
        values: dict[str, object] = {"attribution": attribution}
        if level_id is not None:
            values["level_id"] = level_id
        if order_id is not None:
            values["order_id"] = order_id
        if order_code is not None:
            values["order_code"] = order_code
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(**values)
        )
        with self._session_factory.begin() as session:
            if session.execute(stmt).rowcount == 0:
                raise KeyError(f"enrollment {enrollment_id} not found")


def _row_to_course(row: CourseRow, category_ids: frozenset[int]) -> Course:
    return Course(
        id=row.id,
        title=row.title or "",
        status=row.status,
        is_public=bool(row.is_public),
        price_type=row.price_type,
        post_type=row.post_type,
        category_ids=category_ids,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        status=row.status,
        enrolled_at=row.enrolled_at,
        attribution=row.attribution,
        level_id=row.level_id,
        order_id=row.order_id,
        order_code=row.order_code,
    )
