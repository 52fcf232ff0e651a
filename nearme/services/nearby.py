"""Nearby search: the published dataset merged with a live OSM lookup."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, NamedTuple

import requests

from nearme.core.distance import miles_to_meters
from nearme.etl.merge import merge_dispensaries
from nearme.models import Coordinates, Dispensary
from nearme.services.dataset import DatasetClient, DatasetUnavailable
from nearme.vendors.overpass import OverpassError, query_overpass

logger = logging.getLogger(__name__)

LiveLookup = Callable[[float, float, int], List[Dispensary]]


class NoDataSourceError(RuntimeError):
    """Neither the dataset nor the live lookup produced anything."""


class NearbyResult(NamedTuple):
    dispensaries: List[Dispensary]
    stale: bool


def find_nearby(
    origin: Coordinates,
    radius_miles: float,
    *,
    dataset: DatasetClient,
    live_lookup: LiveLookup = query_overpass,
) -> NearbyResult:
    """Fetch both sources concurrently and merge; one failing side marks the result stale."""
    radius_m = miles_to_meters(radius_miles)

    with ThreadPoolExecutor(max_workers=2) as pool:
        dataset_future = pool.submit(dataset.snapshot)
        live_future = pool.submit(live_lookup, origin.latitude, origin.longitude, radius_m)

        stale = False
        authoritative: List[Dispensary] = []
        secondary: List[Dispensary] = []
        failures = 0

        try:
            snapshot = dataset_future.result()
            authoritative = snapshot.dispensaries
            stale = stale or snapshot.stale
        except DatasetUnavailable as exc:
            logger.warning("Dataset unavailable: %s", exc)
            failures += 1

        try:
            secondary = live_future.result()
        except (requests.RequestException, OverpassError, ValueError) as exc:
            logger.warning("Live lookup failed: %s", exc)
            failures += 1

    if failures == 2:
        raise NoDataSourceError("no dispensary source was reachable")

    merged = merge_dispensaries(authoritative, secondary, origin, radius_miles)
    return NearbyResult(merged, stale or failures > 0)
