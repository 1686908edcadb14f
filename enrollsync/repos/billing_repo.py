"""Read-only view of the membership-billing subsystem.

The billing subsystem owns levels, the restricted-pages table, level
attributes and which levels each user holds.  This service only reads
them; every method here is a query.
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol

from enrollsync.models.level import MembershipLevel


class BillingGateway(Protocol):
    def levels_for_user(self, user_id: int) -> list[MembershipLevel]: ...
    def get_level(self, level_id: int) -> MembershipLevel | None: ...
    def restricted_page_ids(self, level_ids: Collection[int]) -> set[int]: ...
    def level_attribute_values(
        self, level_ids: Collection[int], key: str
    ) -> set[int]: ...


class InMemoryBillingGateway:
    def __init__(self) -> None:
        self._levels: dict[int, MembershipLevel] = {}
        self._held: dict[int, list[int]] = {}
        self._pages: set[tuple[int, int]] = set()
        self._attributes: dict[tuple[int, str], list[str]] = {}

    # --- seeding helpers (stand-ins for the billing admin) ---

    def add_level(self, level: MembershipLevel) -> MembershipLevel:
        self._levels[level.id] = level
        return level

    def assign_level(self, user_id: int, level_id: int) -> None:
        held = self._held.setdefault(user_id, [])
        if level_id not in held:
            held.append(level_id)

    def remove_level(self, user_id: int, level_id: int) -> None:
        held = self._held.get(user_id, [])
        if level_id in held:
            held.remove(level_id)

    def restrict_page(self, level_id: int, page_id: int) -> None:
        self._pages.add((level_id, page_id))

    def set_attribute(self, level_id: int, key: str, value: object) -> None:
        self._attributes.setdefault((level_id, key), []).append(str(value))

    # --- BillingGateway ---

    def levels_for_user(self, user_id: int) -> list[MembershipLevel]:
        return [
            self._levels[level_id]
            for level_id in self._held.get(user_id, [])
            if level_id in self._levels
        ]

    def get_level(self, level_id: int) -> MembershipLevel | None:
        return self._levels.get(level_id)

    def restricted_page_ids(self, level_ids: Collection[int]) -> set[int]:
        wanted = set(level_ids)
        return {page_id for level_id, page_id in self._pages if level_id in wanted}

    def level_attribute_values(
        self, level_ids: Collection[int], key: str
    ) -> set[int]:
        values: set[int] = set()
        for level_id in level_ids:
            for raw in self._attributes.get((level_id, key), []):
                try:
                    value = int(raw)
                except ValueError:
                    continue
                if value > 0:
                    values.add(value)
        return values
