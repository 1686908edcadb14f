from __future__ import annotations

from dataclasses import dataclass, field

FULL_WEBSITE_MEMBERSHIP = "full_website_membership"
CATEGORY_WISE_MEMBERSHIP = "category_wise_membership"
ACCESS_MODELS = (FULL_WEBSITE_MEMBERSHIP, CATEGORY_WISE_MEMBERSHIP)

# Level attribute keys written by the billing subsystem
MEMBERSHIP_MODEL_KEY = "membership_model"
BOUND_COURSE_KEY = "bound_course_id"
BOUND_BUNDLE_KEY = "bound_bundle_id"


@dataclass(frozen=True, slots=True)
class MembershipLevel:
    """A membership tier held by a learner.

    access_model is None for course-specific levels, which grant access
    only through restricted-page rows or the bound_course_id attribute.
    enddate is epoch seconds; None or 0 means the level never expires.
    """

    id: int
    name: str = ""
    access_model: str | None = None  # full_website_membership|category_wise_membership
    category_ids: frozenset[int] = field(default_factory=frozenset)
    enddate: int | None = None

    def is_expired(self, now: int) -> bool:
        return bool(self.enddate) and self.enddate < now  # type: ignore[operator]


def level_ids_of(levels) -> set[int]:
    """Collect positive level ids from levels, ints, or None."""
    ids: set[int] = set()
    for level in levels or ():
        raw = getattr(level, "id", level)
        try:
            level_id = int(raw)
        except (TypeError, ValueError):
            continue
        if level_id > 0:
            ids.add(level_id)
    return ids
