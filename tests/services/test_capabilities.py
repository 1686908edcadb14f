from __future__ import annotations

import pytest

from enrollsync.services.capabilities import StaticCapabilities


@pytest.mark.parametrize(
    ("catalog", "bundle", "expected"),
    [
        (True, True, (True, True)),
        (True, False, (True, False)),
        # The add-on cannot be on without the catalog.
        (False, True, (False, False)),
        (False, False, (False, False)),
    ],
)
def test_static_capabilities(catalog: bool, bundle: bool, expected: tuple[bool, bool]) -> None:
    caps = StaticCapabilities(course_catalog=catalog, bundle_addon=bundle)
    assert (caps.course_catalog_available(), caps.bundle_addon_available()) == expected
