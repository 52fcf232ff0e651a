"""Illinois IDFPR adult-use dispensaries.

The state open data portal (CKAN datastore) is queried first. IDFPR itself
only publishes a PDF, so when the portal is down or returns nothing a small
static list of well-known Chicago locations is served instead.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.models import Dispensary, SourceKind
from nearme.sources.common import embedded_coordinates, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "IL"
OPEN_DATA_URL = "https://data.illinois.gov/api/3/action/datastore_search"
OPEN_DATA_PARAMS = {
    "resource_id": "3f68cd37-27c4-4f1c-a1c4-d09ba76e6a32",
    "limit": "500",
    "filters": '{"License_Type":"Adult_Use"}',
}

FALLBACK_DISPENSARIES = (
    Dispensary(
        name="Dispensary 33",
        address="5001 N Clark St",
        city="Chicago",
        state=STATE,
        zip="60640",
        latitude=41.9727,
        longitude=-87.6618,
        phone="(773) 991-5524",
        source=SourceKind.SCRAPED,
    ),
    Dispensary(
        name="Mission Dispensary Chicago",
        address="1818 N Milwaukee Ave",
        city="Chicago",
        state=STATE,
        zip="60647",
        latitude=41.9148,
        longitude=-87.6929,
        source=SourceKind.SCRAPED,
    ),
    Dispensary(
        name="Sunnyside Chicago North",
        address="4102 N Kedzie Ave",
        city="Chicago",
        state=STATE,
        zip="60618",
        latitude=41.9562,
        longitude=-87.7166,
        source=SourceKind.SCRAPED,
    ),
)


def _records(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("records"), list):
        return result["records"]
    records = payload.get("records")
    return records if isinstance(records, list) else []


def fallback() -> List[Dispensary]:
    logger.info("[IL] Using static fallback list")
    return [replace(item) for item in FALLBACK_DISPENSARIES]


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[IL] Fetching adult-use dispensary data")
    try:
        records = _records(http.get_json(OPEN_DATA_URL, params=OPEN_DATA_PARAMS))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[IL] Open data portal failed: %s", exc)
        records = []

    if not records:
        return fallback()

    dispensaries: List[Dispensary] = []
    for row in records:
        if not isinstance(row, dict):
            continue
        name = pick(row, "Business_Name", "Dispensary_Name", "Name")
        if not name:
            continue
        street = pick(row, "Address", "Street_Address")
        city = pick(row, "City")
        postal = zip5(pick(row, "Zip", "ZIP"))
        embedded = embedded_coordinates(pick(row, "Latitude"), pick(row, "Longitude"))
        if embedded is None and (not street or not city):
            continue

        coords = locate(geocoder, street, city, STATE, postal, embedded=embedded)
        if coords is None:
            continue

        dispensaries.append(
            make_dispensary(
                name=name,
                address=street,
                city=city,
                state=STATE,
                postal=postal,
                coords=coords,
                phone=pick(row, "Phone"),
                license_number=pick(row, "License_Number"),
            )
        )

    logger.info("[IL] Processed %d dispensaries", len(dispensaries))
    return dispensaries
