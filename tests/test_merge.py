import math

import pytest

from nearme.core.distance import EARTH_RADIUS_MILES, haversine_miles
from nearme.etl.merge import DEDUP_THRESHOLD_MILES, merge_dispensaries
from nearme.models import Coordinates, Dispensary, SourceKind

ORIGIN = Coordinates(39.7392, -104.9903)


def north_of(origin, miles):
    """Latitude that puts a point exactly `miles` due north of origin on the haversine sphere."""
    return origin.latitude + math.degrees(miles / EARTH_RADIUS_MILES)


def record(name, lat, lon, source=SourceKind.SCRAPED, **extra):
    return Dispensary(name=name, address="", city="Denver", state="CO", latitude=lat, longitude=lon, source=source, **extra)


def test_haversine_known_distance():
    # Denver to Boulder is roughly 24 miles
    assert haversine_miles(39.7392, -104.9903, 40.0150, -105.2705) == pytest.approx(24.0, abs=0.5)
    assert haversine_miles(1, 1, 1, 1) == 0


def test_scenario_nearby_secondary_is_suppressed():
    scraped = record("Licensed", ORIGIN.latitude, ORIGIN.longitude)
    osm = record("OSM copy", north_of(ORIGIN, 0.03), ORIGIN.longitude, source=SourceKind.OSM)

    merged = merge_dispensaries([scraped], [osm], ORIGIN, radius_miles=10)

    assert [item.name for item in merged] == ["Licensed"]
    assert merged[0].distance_miles == pytest.approx(0)


def test_scenario_distant_secondary_is_kept_and_sorted():
    scraped = record("Licensed", north_of(ORIGIN, 2.0), ORIGIN.longitude)
    osm = record("OSM only", north_of(ORIGIN, 0.5), ORIGIN.longitude, source=SourceKind.OSM)

    merged = merge_dispensaries([scraped], [osm], ORIGIN, radius_miles=10)

    assert [item.name for item in merged] == ["OSM only", "Licensed"]
    assert merged[0].source is SourceKind.OSM
    assert merged[0].distance_miles == pytest.approx(0.5)
    assert merged[1].distance_miles == pytest.approx(2.0)


def test_threshold_boundary():
    scraped = record("Licensed", ORIGIN.latitude, ORIGIN.longitude)
    just_inside = record("inside", north_of(ORIGIN, DEDUP_THRESHOLD_MILES * 0.999), ORIGIN.longitude, source=SourceKind.OSM)
    just_outside = record("outside", north_of(ORIGIN, DEDUP_THRESHOLD_MILES * 1.001), ORIGIN.longitude, source=SourceKind.OSM)

    merged = merge_dispensaries([scraped], [just_inside, just_outside], ORIGIN)

    assert [item.name for item in merged] == ["Licensed", "outside"]


def test_secondary_exactly_at_threshold_is_kept():
    scraped = record("Licensed", ORIGIN.latitude, ORIGIN.longitude)
    other = record("edge", 0.0, 0.0, source=SourceKind.OSM)

    # place `other` so its distance to `scraped` equals the threshold as computed by haversine
    lat = north_of(ORIGIN, DEDUP_THRESHOLD_MILES)
    while haversine_miles(ORIGIN.latitude, ORIGIN.longitude, lat, ORIGIN.longitude) < DEDUP_THRESHOLD_MILES:
        lat = math.nextafter(lat, 90.0)
    other.latitude, other.longitude = lat, ORIGIN.longitude

    merged = merge_dispensaries([scraped], [other], ORIGIN)

    assert [item.name for item in merged] == ["Licensed", "edge"]


def test_radius_boundary_is_inclusive():
    at_radius = record("edge", north_of(ORIGIN, 5.0), ORIGIN.longitude)
    radius = haversine_miles(ORIGIN.latitude, ORIGIN.longitude, at_radius.latitude, at_radius.longitude)
    beyond = record("beyond", north_of(ORIGIN, 5.1), ORIGIN.longitude)

    merged = merge_dispensaries([at_radius, beyond], [], ORIGIN, radius_miles=radius)

    assert [item.name for item in merged] == ["edge"]


def test_no_radius_keeps_everything():
    far = record("far", north_of(ORIGIN, 500), ORIGIN.longitude)
    assert len(merge_dispensaries([far], [], ORIGIN)) == 1


def test_secondary_is_only_deduped_against_retained_records():
    # the authoritative record lies outside the radius, so the secondary near it survives
    scraped = record("Licensed far", north_of(ORIGIN, 20), ORIGIN.longitude)
    osm = record("OSM far", north_of(ORIGIN, 20.01), ORIGIN.longitude, source=SourceKind.OSM)

    merged = merge_dispensaries([scraped], [osm], ORIGIN, radius_miles=10)

    assert [item.name for item in merged] == ["OSM far"]


def test_output_is_sorted_and_inputs_untouched():
    scraped = [record(f"s{i}", north_of(ORIGIN, miles), ORIGIN.longitude) for i, miles in enumerate([3, 1, 2])]
    osm = [record(f"o{i}", north_of(ORIGIN, miles), ORIGIN.longitude + 0.5, source=SourceKind.OSM) for i, miles in enumerate([0.5, 4])]

    merged = merge_dispensaries(scraped, osm, ORIGIN, radius_miles=50)

    distances = [item.distance_miles for item in merged]
    assert distances == sorted(distances)
    assert all(item.distance_miles is None for item in scraped + osm)
    assert merged[0] is not scraped[1]


def test_empty_inputs():
    assert merge_dispensaries([], [], ORIGIN, radius_miles=10) == []
    osm = record("osm", ORIGIN.latitude, ORIGIN.longitude, source=SourceKind.GOOGLE)
    merged = merge_dispensaries([], [osm], ORIGIN, radius_miles=10)
    assert merged[0].source is SourceKind.GOOGLE


def test_green_leaf_duplicate_from_osm_is_dropped():
    origin = Coordinates(39.75, -104.99)
    licensed = record("Green Leaf", 39.75, -104.99)
    osm = record("Green Leaf OSM", 39.7501, -104.9901, source=SourceKind.OSM)

    merged = merge_dispensaries([licensed], [osm], origin, radius_miles=10)

    assert [item.name for item in merged] == ["Green Leaf"]
    assert merged[0].distance_miles == 0


def test_green_leaf_keeps_distant_osm_entry_after_it():
    origin = Coordinates(39.75, -104.99)
    licensed = record("Green Leaf", 39.75, -104.99)
    osm = record("Far", 40.0, -105.0, source=SourceKind.OSM)

    merged = merge_dispensaries([licensed], [osm], origin, radius_miles=10)

    assert [item.name for item in merged] == ["Green Leaf", "Far"]
    assert merged[0].distance_miles == 0
    assert merged[1].distance_miles == pytest.approx(17.28, abs=0.01)
    assert merged[1].source is SourceKind.OSM
