"""Helpers shared by the per-state license adapters."""

import logging
import math
import re
from typing import Any, Mapping, Optional

from shapely import wkt
from shapely.errors import ShapelyError

from nearme.core.geocode import Geocoder
from nearme.models import Coordinates, Dispensary, SourceKind

logger = logging.getLogger(__name__)

_ZIP_RE = re.compile(r"\d{5}")


def pick(row: Mapping[str, Any], *aliases: str) -> str:
    """Return the first non-empty value among `aliases`, trimmed.

    Publishers rename columns between releases, so callers list every
    spelling they have seen in priority order.
    """
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def join_parts(*parts: str) -> str:
    return " ".join(part for part in parts if part).strip()


def zip5(value: str) -> str:
    """First five digits of a ZIP / ZIP+4, or the trimmed input when it has none."""
    value = (value or "").strip()
    match = _ZIP_RE.search(value)
    return match.group(0) if match else value[:5]


def parse_float(value: Any) -> Optional[float]:
    try:
        if value is None or str(value).strip() == "":
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def embedded_coordinates(lat: Any, lon: Any) -> Optional[Coordinates]:
    latitude = parse_float(lat)
    longitude = parse_float(lon)
    if latitude is None or longitude is None:
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    return Coordinates(latitude, longitude)


def parse_wkt_point(text: str) -> Optional[Coordinates]:
    """Parse a WKT ``POINT (lon lat)`` into coordinates."""
    if not text or not text.strip():
        return None
    try:
        geom = wkt.loads(text.strip())
    except (ShapelyError, ValueError):
        logger.debug("Unparseable WKT geometry: %r", text)
        return None
    if geom.geom_type != "Point" or geom.is_empty:
        return None
    return embedded_coordinates(geom.y, geom.x)


def full_address(street: str, city: str, state: str, postal: str = "") -> str:
    return f"{street}, {city}, {join_parts(state, postal)}"


def locate(
    geocoder: Geocoder,
    street: str,
    city: str,
    state: str,
    postal: str = "",
    *,
    embedded: Optional[Coordinates] = None,
) -> Optional[Coordinates]:
    """Use embedded coordinates when present, otherwise geocode the synthesized address."""
    if embedded is not None:
        return embedded
    address = full_address(street, city, state, postal)
    coords = geocoder.resolve(address)
    if coords is None:
        logger.warning("[%s] Could not geocode: %s", state, address)
    return coords


def make_dispensary(
    *,
    name: str,
    address: str,
    city: str,
    state: str,
    postal: str,
    coords: Coordinates,
    phone: str = "",
    website: str = "",
    license_number: str = "",
) -> Dispensary:
    return Dispensary(
        name=name,
        address=address,
        city=city,
        state=state,
        zip=postal,
        latitude=coords.latitude,
        longitude=coords.longitude,
        phone=phone or None,
        website=website or None,
        license_number=license_number or None,
        source=SourceKind.SCRAPED,
    )
