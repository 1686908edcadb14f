"""initial schema

Revision ID: 3b9e1c7d2a10
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e1c7d2a10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- billing ---
    op.create_table(
        "membership_levels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
    )
    op.create_table(
        "membership_level_meta",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "level_id",
            sa.Integer(),
            sa.ForeignKey("membership_levels.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("meta_key", sa.String(length=255), nullable=False),
        sa.Column("meta_value", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index(
        "ix_level_meta_key_level", "membership_level_meta", ["meta_key", "level_id"]
    )
    op.create_table(
        "membership_pages",
        sa.Column("level_id", sa.Integer(), primary_key=True),
        sa.Column("page_id", sa.Integer(), primary_key=True),
    )
    op.create_table(
        "membership_categories",
        sa.Column(
            "level_id",
            sa.Integer(),
            sa.ForeignKey("membership_levels.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("category_id", sa.Integer(), primary_key=True),
    )
    op.create_table(
        "member_levels",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "level_id",
            sa.Integer(),
            sa.ForeignKey("membership_levels.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("enddate", sa.Integer(), nullable=True),
    )
    op.create_index("ix_member_levels_user_id", "member_levels", ["user_id"])

    # --- catalog ---
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="publish"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("price_type", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("post_type", sa.String(length=20), nullable=False, server_default="course"),
    )
    op.create_table(
        "course_categories",
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("category_id", sa.Integer(), primary_key=True),
    )
    op.create_table(
        "bundle_courses",
        sa.Column(
            "bundle_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("course_id", sa.Integer(), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("enrolled_at", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attribution", sa.String(length=20), nullable=True),
        sa.Column("level_id", sa.Integer(), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("order_code", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_enrollments_user_course", "enrollments", ["user_id", "course_id"])


def downgrade() -> None:
    op.drop_index("ix_enrollments_user_course", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("bundle_courses")
    op.drop_table("course_categories")
    op.drop_table("courses")
    op.drop_index("ix_member_levels_user_id", table_name="member_levels")
    op.drop_table("member_levels")
    op.drop_table("membership_categories")
    op.drop_table("membership_pages")
    op.drop_index("ix_level_meta_key_level", table_name="membership_level_meta")
    op.drop_table("membership_level_meta")
    op.drop_table("membership_levels")
