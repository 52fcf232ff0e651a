"""California DCC (Department of Cannabis Control) retailer licenses.

The license search API is tried first; when it fails the bulk CSV export is
used instead. API rows without coordinates are dropped, CSV rows fall back to
geocoding.
"""

import logging
from typing import Any, Dict, List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import embedded_coordinates, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "CA"
API_URL = "https://search.cannabis.ca.gov/api/licenses"
CSV_URL = "https://cannabis.ca.gov/wp-content/uploads/sites/2/2021/09/Active_License_Data_as_of_01012025.csv"


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[CA] Fetching DCC active license data")
    try:
        return _from_api()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[CA] API failed, trying CSV: %s", exc)

    try:
        return _from_csv(geocoder)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[CA] Both API and CSV failed: %s", exc)
        return []


def _api_items(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "licenses"):
            items = payload.get(key)
            if isinstance(items, list):
                return items
    raise ValueError("unrecognised license API payload")


def _from_api() -> List[Dispensary]:
    params = {"license_type": "Retailer", "status": "Active", "per_page": "1000", "page": "1"}
    items = _api_items(http.get_json(API_URL, params=params))

    dispensaries: List[Dispensary] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        coords = embedded_coordinates(
            pick(item, "latitude", "lat"),
            pick(item, "longitude", "lng", "lon"),
        )
        name = pick(item, "business_name", "dba_name", "name")
        if coords is None or not name:
            continue

        dispensaries.append(
            make_dispensary(
                name=name,
                address=pick(item, "premise_address", "address"),
                city=pick(item, "premise_city", "city"),
                state=STATE,
                postal=zip5(pick(item, "premise_zip", "zip")),
                coords=coords,
                phone=pick(item, "business_phone", "phone"),
                website=pick(item, "website"),
                license_number=pick(item, "license_number"),
            )
        )

    logger.info("[CA] API: found %d retailers", len(dispensaries))
    return dispensaries


def is_active_retailer(row: Row) -> bool:
    license_type = pick(row, "License Type").lower()
    status = pick(row, "License Status").lower()
    return "retail" in license_type and status == "active"


def _from_csv(geocoder: Geocoder) -> List[Dispensary]:
    rows = read_csv_rows(http.get_text(CSV_URL))
    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[CA] CSV: found %d active retailers", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "Business Name", "DBA Name")
        if not name:
            continue
        street = pick(row, "Premise Address", "Address")
        city = pick(row, "Premise City", "City")
        postal = zip5(pick(row, "Premise Zip", "ZIP", "Zip Code"))
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
                license_number=pick(row, "License Number"),
            )
        )

    return dispensaries
