"""Feature availability of the collaborating subsystems.

Entry points ask once, at the top, whether the catalog (and its bundle
add-on) is available.  Nothing below an entry point checks again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class Capabilities(Protocol):
    def course_catalog_available(self) -> bool: ...
    def bundle_addon_available(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class StaticCapabilities:
    """Capabilities fixed at startup from COURSE_CATALOG_ENABLED / BUNDLE_ADDON_ENABLED."""

    course_catalog: bool = True
    bundle_addon: bool = True

    def course_catalog_available(self) -> bool:
        return self.course_catalog

    def bundle_addon_available(self) -> bool:
        # The add-on lives inside the catalog; it cannot be on without it.
        return self.course_catalog and self.bundle_addon
