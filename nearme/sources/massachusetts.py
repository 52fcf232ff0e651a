"""Massachusetts CCC (Cannabis Control Commission) active retailers.

Columns: Industry | BUSINESS_NAME | LICENSE_NUMBER | LICENSE_TYPE |
LICENSE_STATUS | ADDRESS_1 | CITY | STATE | ZIP_CODE | BUSINESS_PHONE

Socrata caps exports at 1000 rows unless $limit is raised.
"""

import logging
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "MA"
CSV_URL = "https://masscannabiscontrol.com/resource/l_licenses_active.csv"
CSV_PARAMS = {"$limit": "10000"}


def is_active_retailer(row: Row) -> bool:
    return pick(row, "LICENSE_TYPE") == "Marijuana Retailer" and pick(row, "LICENSE_STATUS") == "Active"


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[MA] Fetching CCC active licenses CSV")
    try:
        rows = read_csv_rows(http.get_text(CSV_URL, params=CSV_PARAMS))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[MA] Failed to load CSV: %s", exc)
        return []

    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[MA] Found %d active marijuana retailers", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "BUSINESS_NAME")
        street = pick(row, "ADDRESS_1")
        city = pick(row, "CITY")
        postal = zip5(pick(row, "ZIP_CODE"))
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
                phone=pick(row, "BUSINESS_PHONE"),
                license_number=pick(row, "LICENSE_NUMBER"),
            )
        )

    logger.info("[MA] Processed %d dispensaries", len(dispensaries))
    return dispensaries
