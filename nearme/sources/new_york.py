"""New York OCM (Office of Cannabis Management) operational retail dispensaries.

Source: https://data.ny.gov/Economic-Development/Cannabis-Retail-Dispensaries/jskf-tt3q

Columns include: License Number | License Type | License Status |
Operational Status | Entity Name | DBA | Address Line 1 | Address Line 2 |
City | State | Zip Code
"""

import logging
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import join_parts, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "NY"
CSV_URL = "https://data.ny.gov/api/views/jskf-tt3q/rows.csv?accessType=DOWNLOAD"

_RETAIL_TYPES = ("retail", "caurd", "consumption", "dispensar")


def is_active_retailer(row: Row) -> bool:
    license_type = pick(row, "License Type").lower()
    operational = pick(row, "Operational Status").lower()
    return any(word in license_type for word in _RETAIL_TYPES) and operational == "operational"


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[NY] Fetching OCM cannabis licenses CSV")
    try:
        rows = read_csv_rows(http.get_text(CSV_URL))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[NY] Failed to load CSV: %s", exc)
        return []

    logger.info("[NY] Total rows: %d", len(rows))
    logger.debug("[NY] License types: %s", " | ".join(sorted({pick(row, "License Type") for row in rows})))

    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[NY] Found %d operational retail dispensaries", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "DBA", "Entity Name")
        if not name:
            continue
        street = join_parts(pick(row, "Address Line 1"), pick(row, "Address Line 2"))
        city = pick(row, "City")
        postal = zip5(pick(row, "Zip Code"))
        if not street or not city:
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

    logger.info("[NY] Processed %d dispensaries", len(dispensaries))
    return dispensaries
