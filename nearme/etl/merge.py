"""Reconcile authoritative license records with a secondary (live) source.

Authoritative and secondary sources share no key, so duplicates are found by
proximity: a secondary record within DEDUP_THRESHOLD_MILES (~100 m) of a
retained authoritative record is treated as the same storefront.
"""

from dataclasses import replace
from typing import List, Optional, Sequence

from nearme.core.distance import haversine_miles
from nearme.models import Coordinates, Dispensary

DEDUP_THRESHOLD_MILES = 0.062


def _distance(origin: Coordinates, item: Dispensary) -> float:
    return haversine_miles(origin.latitude, origin.longitude, item.latitude, item.longitude)


def filter_by_radius(
    dispensaries: Sequence[Dispensary], origin: Coordinates, radius_miles: float
) -> List[Dispensary]:
    return [item for item in dispensaries if _distance(origin, item) <= radius_miles]


def is_near_any(candidate: Dispensary, anchors: Sequence[Dispensary], threshold: float = DEDUP_THRESHOLD_MILES) -> bool:
    return any(
        haversine_miles(anchor.latitude, anchor.longitude, candidate.latitude, candidate.longitude) < threshold
        for anchor in anchors
    )


def merge_dispensaries(
    authoritative: Sequence[Dispensary],
    secondary: Sequence[Dispensary],
    origin: Coordinates,
    radius_miles: Optional[float] = None,
) -> List[Dispensary]:
    """Return a new list sorted closest-first with `distance_miles` attached.

    Authoritative records beyond `radius_miles` are dropped (no filter when None);
    secondary records are assumed pre-filtered by their own query radius. Inputs
    are left untouched.
    """
    if radius_miles is None:
        retained = list(authoritative)
    else:
        retained = filter_by_radius(authoritative, origin, radius_miles)

    merged = retained + [item for item in secondary if not is_near_any(item, retained)]

    annotated = [replace(item, distance_miles=_distance(origin, item)) for item in merged]
    annotated.sort(key=lambda item: item.distance_miles or 0.0)
    return annotated
