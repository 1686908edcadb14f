from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

ATTRIBUTION_MEMBERSHIP = "membership"
ATTRIBUTION_INDIVIDUAL = "individual"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One learner-course enrollment row owned by the catalog.

    A cancelled enrollment is never deleted; re-enrolling creates a new
    row.  attribution is None until the tagger or the engine writes it.
    """

    id: int
    user_id: int
    course_id: int
    status: str = STATUS_ACTIVE  # active|completed|cancelled
    enrolled_at: int = 0
    attribution: str | None = None  # membership|individual
    level_id: int | None = None
    order_id: int | None = None
    order_code: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_CANCELLED

    @property
    def is_individual(self) -> bool:
        return self.attribution == ATTRIBUTION_INDIVIDUAL


@dataclass(frozen=True, slots=True)
class Order:
    """A billing order as seen by this service.

    Decoded from whatever the billing subsystem sends by decode_order();
    code past the adapter boundary only ever sees ``Order | None``.
    """

    user_id: int
    level_id: int
    order_id: int | None = None
    order_code: str | None = None


def as_id(value: object) -> int:
    """Coerce a loosely-typed id to a non-negative int; junk becomes 0."""
    try:
        return max(int(value), 0)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 0


def decode_order(raw: object) -> Order | None:
    """Decode a mapping or attribute-bearing object into an Order.

    Accepts ``membership_id`` or ``level_id`` for the level and ``id`` or
    ``order_id`` for the order.  Missing or malformed fields decode to 0 /
    None; a payload that is None or not an object yields None.
    """
    if raw is None or isinstance(raw, (str, bytes, int, float, bool)):
        return None

    if isinstance(raw, Mapping):
        get = raw.get
    else:

        def get(key: str, default: object = None) -> object:
            return getattr(raw, key, default)

    level_id = as_id(get("membership_id", None) or get("level_id", None))
    order_id = as_id(get("id", None) or get("order_id", None)) or None
    code = get("code", None) or get("order_code", None)

    return Order(
        user_id=as_id(get("user_id", None)),
        level_id=level_id,
        order_id=order_id,
        order_code=str(code).strip() if code else None,
    )


@dataclass(frozen=True, slots=True)
class GrantContext:
    """Traceability data written onto enrollments the engine creates."""

    level_id: int = 0
    order: Order | None = None

    @property
    def order_id(self) -> int | None:
        return self.order.order_id if self.order else None

    @property
    def order_code(self) -> str | None:
        return self.order.order_code if self.order else None


@dataclass(frozen=True, slots=True)
class ReconciliationInput:
    user_id: int
    old_level_ids: frozenset[int] = field(default_factory=frozenset)
    new_level_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """What one reconciliation call actually changed.

    enrolled/unenrolled hold course ids whose primitive succeeded;
    failed holds course ids whose primitive raised; cascaded holds
    bundle members enrolled by the bundle cascade.
    """

    user_id: int
    trigger: str
    enrolled: frozenset[int] = field(default_factory=frozenset)
    unenrolled: frozenset[int] = field(default_factory=frozenset)
    failed: frozenset[int] = field(default_factory=frozenset)
    cascaded: frozenset[int] = field(default_factory=frozenset)

    @property
    def changed(self) -> bool:
        return bool(self.enrolled or self.unenrolled or self.cascaded)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "trigger": self.trigger,
            "enrolled": sorted(self.enrolled),
            "unenrolled": sorted(self.unenrolled),
            "failed": sorted(self.failed),
            "cascaded": sorted(self.cascaded),
        }
