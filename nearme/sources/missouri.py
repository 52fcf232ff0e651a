"""Missouri DHSS licensed dispensary facilities.

Row 0 of the workbook is a title banner; the column headers are on row 1.
Columns: Medical | Comprehensive | Approved to Operate | License Number |
Entity Name | Fictitious Name | Facility Street | Unit# | City | State |
Postal Code | Contact Information 1 | Contact Information 2 | Contact Phone

Every listed facility is a licensed dispensary, so no type filter applies.
"""

import logging
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import read_xlsx_rows
from nearme.models import Dispensary
from nearme.sources.common import join_parts, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "MO"
XLSX_URL = "https://health.mo.gov/safety/cannabis/xls/licensed-dispensary-facilities-508.xlsx"
HEADER_ROW = 1


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[MO] Fetching DHSS licensed dispensary workbook")
    try:
        rows = read_xlsx_rows(http.get_bytes(XLSX_URL), header_row=HEADER_ROW)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[MO] Failed to load workbook: %s", exc)
        return []
    logger.info("[MO] Parsed %d dispensary rows", len(rows))

    dispensaries: List[Dispensary] = []
    for row in rows:
        name = pick(row, "Fictitious Name", "Entity Name")
        if not name:
            continue
        street = join_parts(pick(row, "Facility Street"), pick(row, "Unit#", "Unit #"))
        city = pick(row, "City")
        postal = zip5(pick(row, "Postal Code", "Zip Code"))
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
                phone=pick(row, "Contact Phone"),
                license_number=pick(row, "License Number"),
            )
        )

    logger.info("[MO] Processed %d dispensaries", len(dispensaries))
    return dispensaries
