"""Utilities for transforming upstream payloads into Dispensary records and back to JSON."""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from nearme.models import Dispensary, SourceKind

logger = logging.getLogger(__name__)

_COUNTRY_SUFFIX = re.compile(r",?\s*(USA|United States)\s*$")
_STATE_ZIP = re.compile(r"^([A-Z]{2})\s+(\d{5})")

# python attribute -> JSON key, in output order
_JSON_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("id", "id"),
    ("name", "name"),
    ("address", "address"),
    ("city", "city"),
    ("state", "state"),
    ("zip", "zip"),
    ("latitude", "latitude"),
    ("longitude", "longitude"),
    ("phone", "phone"),
    ("website", "website"),
    ("license_number", "licenseNumber"),
    ("opening_hours", "openingHours"),
    ("rating", "rating"),
    ("review_count", "reviewCount"),
    ("source", "source"),
    ("distance_miles", "distanceMiles"),
)


def parse_google_address(formatted: str) -> Optional[Dict[str, str]]:
    """Split "123 Main St, City, ST 12345, USA" into street/city/state/zip."""
    clean = _COUNTRY_SUFFIX.sub("", formatted or "").strip()
    parts = clean.split(", ")
    if len(parts) < 3:
        return None

    match = _STATE_ZIP.match(parts[-1])
    if not match:
        return None

    return {
        "address": ", ".join(parts[:-2]),
        "city": parts[-2],
        "state": match.group(1),
        "zip": match.group(2),
    }


def place_to_dispensary(result: Dict[str, Any]) -> Optional[Dispensary]:
    """Build a record from a Places text-search result, or None when unusable."""
    parsed = parse_google_address(result.get("formatted_address", ""))
    if not parsed:
        return None

    location = (result.get("geometry") or {}).get("location") or {}
    lat, lng = location.get("lat"), location.get("lng")
    name = (result.get("name") or "").strip()
    if lat is None or lng is None or not name:
        return None

    place_id = result.get("place_id")
    return Dispensary(
        id=f"{SourceKind.GOOGLE.value}-{place_id}" if place_id else None,
        name=name,
        address=parsed["address"],
        city=parsed["city"],
        state=parsed["state"],
        zip=parsed["zip"],
        latitude=float(lat),
        longitude=float(lng),
        rating=result.get("rating"),
        review_count=result.get("user_ratings_total"),
        source=SourceKind.GOOGLE,
    )


def osm_element_to_dispensary(element: Dict[str, Any]) -> Optional[Dispensary]:
    """Build a record from an Overpass node/way; ways carry their position in `center`."""
    center = element.get("center") or {}
    lat = element.get("lat", center.get("lat"))
    lon = element.get("lon", center.get("lon"))
    if lat is None or lon is None:
        return None

    tags = element.get("tags") or {}
    house_number = tags.get("addr:housenumber", "")
    street = tags.get("addr:street", "")
    address = f"{house_number} {street}" if house_number and street else street

    return Dispensary(
        id=f"{SourceKind.OSM.value}-{element.get('id')}",
        name=tags.get("name") or tags.get("brand") or "Cannabis Dispensary",
        address=address.strip(),
        city=tags.get("addr:city", "").strip(),
        state=tags.get("addr:state", "").strip(),
        zip=tags.get("addr:postcode", "").strip(),
        latitude=float(lat),
        longitude=float(lon),
        phone=tags.get("phone") or tags.get("contact:phone") or None,
        website=tags.get("website") or tags.get("contact:website") or None,
        opening_hours=tags.get("opening_hours") or None,
        source=SourceKind.OSM,
    )


def to_dict(dispensary: Dispensary) -> Dict[str, Any]:
    """Serialize for the published dataset; absent optional fields are omitted."""
    payload: Dict[str, Any] = {}
    for attr, key in _JSON_FIELDS:
        value = getattr(dispensary, attr)
        if value is None:
            continue
        if isinstance(value, SourceKind):
            value = value.value
        payload[key] = value
    return payload


def from_dict(payload: Dict[str, Any]) -> Dispensary:
    """Inverse of to_dict; unknown keys are ignored. Raises KeyError/ValueError on bad rows."""
    values: Dict[str, Any] = {}
    for attr, key in _JSON_FIELDS:
        if key in payload and payload[key] is not None:
            values[attr] = payload[key]
    values["latitude"] = float(values["latitude"])
    values["longitude"] = float(values["longitude"])
    values["source"] = SourceKind(values.get("source", SourceKind.SCRAPED.value))
    for attr in ("address", "city", "state", "zip"):
        values.setdefault(attr, "")
    if not values.get("name"):
        raise ValueError("dispensary without a name")
    return Dispensary(**values)
