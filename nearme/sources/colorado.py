"""Colorado MED (Marijuana Enforcement Division) licensed stores.

Source: https://med.colorado.gov/licensee-information-and-lookup-tool/licensed-facilities

One Google Sheets workbook with a medical tab and a retail tab, both exported
as CSV. Columns: License Number | Facility Name | DBA | Facility Type | Street |
City | ZIP Code | Date Updated.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "CO"
_SHEET_URL = "https://docs.google.com/spreadsheets/d/1PqYThJJwGEsrwWvciu9vXosuC0BzAw4YtD03RvlSKzE/export"
MEDICAL_URL = f"{_SHEET_URL}?format=csv&gid=0"
RETAIL_URL = f"{_SHEET_URL}?format=csv&gid=1679153291"


def _fetch_tab(url: str, label: str) -> List[Row]:
    try:
        return read_csv_rows(http.get_text(url))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[CO] Failed to fetch %s: %s", label, exc)
        return []


def is_active_store(row: Row) -> bool:
    return "marijuana store" in pick(row, "Facility Type").lower()


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[CO] Fetching MED medical + retail store tabs")
    with ThreadPoolExecutor(max_workers=2) as pool:
        medical_future = pool.submit(_fetch_tab, MEDICAL_URL, "medical tab")
        retail_future = pool.submit(_fetch_tab, RETAIL_URL, "retail tab")
        medical, retail = medical_future.result(), retail_future.result()

    logger.info("[CO] Medical rows: %d, retail rows: %d", len(medical), len(retail))
    stores = [row for row in medical + retail if is_active_store(row)]
    logger.info("[CO] Found %d marijuana stores", len(stores))

    dispensaries: List[Dispensary] = []
    for row in stores:
        name = pick(row, "DBA", "Facility Name")
        street = pick(row, "Street")
        city = pick(row, "City")
        postal = zip5(pick(row, "ZIP Code", "Zip Code", "ZIP"))
        if not name or not street or not city:
            continue

        coords = locate(geocoder, street, city, STATE, postal)
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

    logger.info("[CO] Processed %d dispensaries", len(dispensaries))
    return dispensaries
