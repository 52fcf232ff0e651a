"""Ordered list of source adapters.

Order decides dedup tie-breaks (first seen wins), so official state sources
come before the Google Places supplement.
"""

from typing import Callable, List, Tuple

from nearme.core.geocode import Geocoder
from nearme.models import Dispensary
from nearme.sources import (
    california,
    colorado,
    connecticut,
    google_places,
    illinois,
    maine,
    massachusetts,
    missouri,
    new_york,
    oregon,
    washington,
)

Adapter = Callable[[Geocoder], List[Dispensary]]

ADAPTERS: Tuple[Tuple[str, Adapter], ...] = tuple(
    (module.STATE, module.fetch_active_retailers)
    for module in (
        colorado,
        california,
        oregon,
        washington,
        illinois,
        new_york,
        missouri,
        connecticut,
        maine,
        massachusetts,
        google_places,
    )
)

ADAPTER_NAMES = tuple(name for name, _ in ADAPTERS)


def select(only=None) -> List[Tuple[str, Adapter]]:
    """Adapters in canonical order, optionally restricted to the names in `only`."""
    if not only:
        return list(ADAPTERS)
    wanted = {name.strip().upper() for name in only}
    unknown = wanted - set(ADAPTER_NAMES)
    if unknown:
        raise ValueError(f"unknown adapters: {', '.join(sorted(unknown))}")
    return [(name, fetch) for name, fetch in ADAPTERS if name in wanted]
