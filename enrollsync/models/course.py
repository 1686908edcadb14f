from __future__ import annotations

from dataclasses import dataclass, field

POST_TYPE_COURSE = "course"
POST_TYPE_BUNDLE = "bundle"

STATUS_PUBLISHED = "publish"

PRICE_TYPE_FREE = "free"
PRICE_TYPE_PAID = "paid"


@dataclass(frozen=True, slots=True)
class Course:
    id: int
    title: str = ""
    status: str = STATUS_PUBLISHED  # publish|draft|trash
    is_public: bool = False
    price_type: str = PRICE_TYPE_PAID  # free|paid
    post_type: str = POST_TYPE_COURSE  # course|bundle
    category_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_published(self) -> bool:
        return self.status == STATUS_PUBLISHED

    @property
    def is_bundle(self) -> bool:
        return self.post_type == POST_TYPE_BUNDLE
