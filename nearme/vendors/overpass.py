"""Client utilities for the OpenStreetMap Overpass API."""

import logging
from typing import List

import requests

from nearme.core.config import get_settings
from nearme.etl.transform import osm_element_to_dispensary
from nearme.models import Dispensary

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

DEFAULT_RADIUS_METERS = 16093
QUERY_TIMEOUT_SECONDS = 25

# (element type, key, value) selectors for retail cannabis
_SELECTORS = (
    ("node", "shop", "cannabis"),
    ("way", "shop", "cannabis"),
    ("node", "shop", "marijuana"),
    ("way", "shop", "marijuana"),
    ("node", "amenity", "cannabis"),
    ("node", "cannabis", "retail"),
    ("way", "cannabis", "retail"),
)


class OverpassError(RuntimeError):
    """Raised when Overpass returns a payload we cannot interpret."""


def build_query(lat: float, lon: float, radius_m: int, timeout: int = QUERY_TIMEOUT_SECONDS) -> str:
    around = f"(around:{radius_m},{lat},{lon})"
    clauses = "\n".join(f'  {kind}["{key}"="{value}"]{around};' for kind, key, value in _SELECTORS)
    return f"[out:json][timeout:{timeout}];\n(\n{clauses}\n);\nout body center;"


def query_overpass(lat: float, lon: float, radius_m: int = DEFAULT_RADIUS_METERS) -> List[Dispensary]:
    """Return OSM-tagged dispensaries around a point. Transport and payload errors raise."""
    settings = get_settings()
    query = build_query(lat, lon, radius_m)
    headers = {"User-Agent": settings.user_agent}
    response = _SESSION.post(
        settings.overpass_url,
        data={"data": query},
        headers=headers,
        timeout=QUERY_TIMEOUT_SECONDS + 5,
    )
    response.raise_for_status()
    payload = response.json()

    elements = payload.get("elements") if isinstance(payload, dict) else None
    if not isinstance(elements, list):
        logger.error("Overpass returned unexpected payload: %r", payload)
        raise OverpassError("expected an 'elements' list")

    results = [item for item in map(osm_element_to_dispensary, elements) if item is not None]
    logger.info("[Overpass] %d OSM results for (%.4f, %.4f)", len(results), lat, lon)
    return results
