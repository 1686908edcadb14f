from __future__ import annotations

from dataclasses import dataclass

# Roles carried by callers of the HTTP surface.  Billing and catalog are
# service principals (the subsystems delivering events); admin is a human.
ROLE_ADMIN = "admin"
ROLE_BILLING = "billing"
ROLE_CATALOG = "catalog"


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT."""

    subject: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles
