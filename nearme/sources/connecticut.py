"""Connecticut DCP (Department of Consumer Protection) cannabis licensees.

Columns: Type | License | Business | DBA | Street Address | City | ZIPCode |
WebAddress | Geolocation

Geolocation is a WKT point in lon/lat order, e.g. "POINT (-72.67993 41.64271)";
rows carrying one never touch the geocoder.
"""

import logging
from typing import List

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import locate, make_dispensary, parse_wkt_point, pick, zip5

logger = logging.getLogger(__name__)

STATE = "CT"
CSV_URL = "https://data.ct.gov/api/views/vw4a-3bnz/rows.csv?accessType=DOWNLOAD"


def is_active_retailer(row: Row) -> bool:
    return "retail" in pick(row, "Type").lower()


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[CT] Fetching DCP cannabis licensees CSV")
    try:
        rows = read_csv_rows(http.get_text(CSV_URL))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[CT] Failed to load CSV: %s", exc)
        return []

    logger.info("[CT] Total rows: %d", len(rows))
    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[CT] Found %d cannabis retailers", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "DBA", "Business")
        street = pick(row, "Street Address")
        city = pick(row, "City")
        postal = zip5(pick(row, "ZIPCode", "Zip Code"))
        if not name or not street or not city:
            continue

        embedded = parse_wkt_point(pick(row, "Geolocation"))
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
                website=pick(row, "WebAddress"),
                license_number=pick(row, "License"),
            )
        )

    logger.info("[CT] Processed %d dispensaries", len(dispensaries))
    return dispensaries
