"""Oregon OLCC (Oregon Liquor and Cannabis Commission) approved retailers.

OLCC publishes a weekly CSV of approved marijuana licenses; column names have
drifted between releases, hence the alias lists.
"""

import logging
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import embedded_coordinates, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "OR"
CSV_URL = "https://www.oregon.gov/olcc/marijuana/Documents/Approved_License_List.csv"


def is_active_retailer(row: Row) -> bool:
    return "retailer" in pick(row, "License Type", "LicenseType").lower()


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[OR] Fetching OLCC approved license CSV")
    try:
        rows = read_csv_rows(http.get_text(CSV_URL))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[OR] Failed to load OLCC CSV: %s", exc)
        return []

    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[OR] Found %d marijuana retailers", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "Trade Name", "Business Name", "Licensee Name")
        if not name:
            continue
        street = pick(row, "Street Address", "Address")
        city = pick(row, "City")
        postal = zip5(pick(row, "Zip Code", "ZIP", "Zip"))
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
                license_number=pick(row, "License Number"),
            )
        )

    logger.info("[OR] Processed %d dispensaries", len(dispensaries))
    return dispensaries
