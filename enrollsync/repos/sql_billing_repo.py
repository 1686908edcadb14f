"""SQL implementation of BillingGateway."""

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from enrollsync.db.tables import (
    MemberLevelRow,
    MembershipCategoryRow,
    MembershipLevelMetaRow,
    MembershipLevelRow,
    MembershipPageRow,
)
from enrollsync.models.level import MEMBERSHIP_MODEL_KEY, MembershipLevel

MEMBER_LEVEL_ACTIVE = "active"


class SqlBillingGateway:
    """Satisfies the BillingGateway Protocol using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def levels_for_user(self, user_id: int) -> list[MembershipLevel]:
        stmt = (
            select(MembershipLevelRow, MemberLevelRow.enddate)
            .join(MemberLevelRow, MemberLevelRow.level_id == MembershipLevelRow.id)
            .where(
                MemberLevelRow.user_id == user_id,
                MemberLevelRow.status == MEMBER_LEVEL_ACTIVE,
            )
            .order_by(MemberLevelRow.id)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
            return [
                _row_to_level(session, row, enddate) for row, enddate in rows
            ]

    def get_level(self, level_id: int) -> MembershipLevel | None:
        with self._session_factory() as session:
            row = session.get(MembershipLevelRow, level_id)
            if row is None:
                return None
            return _row_to_level(session, row, None)

    def restricted_page_ids(self, level_ids: Collection[int]) -> set[int]:
        if not level_ids:
            return set()
        stmt = select(MembershipPageRow.page_id).where(
            MembershipPageRow.level_id.in_(list(level_ids))
        )
        with self._session_factory() as session:
            return set(session.scalars(stmt))

    def level_attribute_values(
        self, level_ids: Collection[int], key: str
    ) -> set[int]:
        if not level_ids:
            return set()
        stmt = select(MembershipLevelMetaRow.meta_value).where(
            MembershipLevelMetaRow.meta_key == key,
            MembershipLevelMetaRow.level_id.in_(list(level_ids)),
        )
        values: set[int] = set()
        with self._session_factory() as session:
            for raw in session.scalars(stmt):
                try:
                    value = int(raw)
                except (TypeError, ValueError):
                    continue
                if value > 0:
                    values.add(value)
        return values


def _row_to_level(
    session: Session, row: MembershipLevelRow, enddate: int | None
) -> MembershipLevel:
    model = session.scalars(
        select(MembershipLevelMetaRow.meta_value).where(
            MembershipLevelMetaRow.level_id == row.id,
            MembershipLevelMetaRow.meta_key == MEMBERSHIP_MODEL_KEY,
        )
    ).first()
    categories = session.scalars(
        select(MembershipCategoryRow.category_id).where(
            MembershipCategoryRow.level_id == row.id
        )
    )
    return MembershipLevel(
        id=row.id,
        name=row.name or "",
        access_model=model or None,
        category_ids=frozenset(categories),
        enddate=enddate,
    )
