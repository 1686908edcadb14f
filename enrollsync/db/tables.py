"""SQLAlchemy table definitions.

These mirror the rows owned by the two external subsystems.  The billing
tables are only ever read here; the catalog's enrollments table is only
written through the catalog gateway's enrollment primitives.  Repos
convert between SQLAlchemy rows and the frozen dataclasses in
enrollsync/models/.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from enrollsync.db.engine import Base

# --- Billing subsystem ---


class MembershipLevelRow(Base):
    __tablename__ = "membership_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class MembershipLevelMetaRow(Base):
    """Level attributes (membership_model, bound_course_id, bound_bundle_id)."""

    __tablename__ = "membership_level_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    level_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("membership_levels.id", ondelete="CASCADE"), nullable=False
    )
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False)
    meta_value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (Index("ix_level_meta_key_level", "meta_key", "level_id"),)


class MembershipPageRow(Base):
    """Restricted-pages table: one row per level-page association."""

    __tablename__ = "membership_pages"

    level_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    page_id: Mapped[int] = mapped_column(Integer, primary_key=True)


class MembershipCategoryRow(Base):
    __tablename__ = "membership_categories"

    level_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("membership_levels.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category_id: Mapped[int] = mapped_column(Integer, primary_key=True)


class MemberLevelRow(Base):
    """A user's holding of a level; only status='active' rows count."""

    __tablename__ = "member_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    level_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("membership_levels.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    enddate: Mapped[int | None] = mapped_column(Integer, nullable=True)


# --- Course catalog subsystem ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="publish")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price_type: Mapped[str] = mapped_column(String(20), nullable=False, default="paid")
    post_type: Mapped[str] = mapped_column(String(20), nullable=False, default="course")


class CourseCategoryRow(Base):
    __tablename__ = "course_categories"

    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[int] = mapped_column(Integer, primary_key=True)


class BundleCourseRow(Base):
    __tablename__ = "bundle_courses"

    bundle_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    course_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    enrolled_at: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attribution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    level_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (Index("ix_enrollments_user_course", "user_id", "course_id"),)
