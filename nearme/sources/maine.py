"""Maine OCP (Office of Cannabis Policy) adult-use establishments.

The CSV is date-stamped on the first of each month and the page linking it is
not stable, so the current month is probed first, then up to three earlier
months.

The file is denormalized (one row per business entity member), so rows are
collapsed on LICENSE before filtering. LICENSE_ADDRESS often carries the full
address plus a county annotation, e.g. "48 Mechanic Falls Rd, Poland, ME
(Androscoggin)"; only the street portion is kept.
"""

import logging
import re
from datetime import date
from typing import List, Optional

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_csv_rows
from nearme.models import Dispensary
from nearme.sources.common import locate, make_dispensary, pick

logger = logging.getLogger(__name__)

STATE = "ME"
BASE_URL = "https://www.maine.gov/dafs/ocp/sites/maine.gov.dafs.ocp/files/inline-files/"
MAX_MONTHS_BACK = 3

_COUNTY_SUFFIX = re.compile(r"\s*\([^)]*\)\s*$")


def csv_url_for(year: int, month: int) -> str:
    return f"{BASE_URL}Adult_Use_Establishments_And_Contacts_{year}_{month:02d}_01.csv"


def candidate_urls(today: Optional[date] = None) -> List[str]:
    today = today or date.today()
    urls = []
    for offset in range(MAX_MONTHS_BACK + 1):
        months = today.year * 12 + (today.month - 1) - offset
        urls.append(csv_url_for(months // 12, months % 12 + 1))
    return urls


def find_latest_csv_url(today: Optional[date] = None) -> Optional[str]:
    for url in candidate_urls(today):
        if http.exists(url):
            logger.info("[ME] Found CSV: %s", url)
            return url
    return None


def unique_licenses(rows: List[Row]) -> List[Row]:
    seen = set()
    unique = []
    for row in rows:
        license_number = pick(row, "LICENSE")
        if not license_number or license_number in seen:
            continue
        seen.add(license_number)
        unique.append(row)
    return unique


def is_active_retailer(row: Row) -> bool:
    license_type = pick(row, "LICENSE_TYPE").lower()
    status = pick(row, "LICENSE_STATUS").lower()
    return ("store" in license_type or "retail" in license_type) and status == "active"


def street_from(raw_address: str, city: str) -> str:
    """Cut a full "street, city, ST (County)" address down to its street part."""
    cleaned = _COUNTY_SUFFIX.sub("", raw_address or "")
    parts = re.split(rf",\s*{re.escape(city)}", cleaned, flags=re.IGNORECASE) if city else [cleaned]
    if len(parts) > 1:
        return parts[0].strip()
    return cleaned.split(",")[0].strip()


def fetch_active_retailers(geocoder: Geocoder, today: Optional[date] = None) -> List[Dispensary]:
    logger.info("[ME] Finding latest OCP adult-use establishments CSV")
    url = find_latest_csv_url(today)
    if not url:
        logger.warning("[ME] Could not find a published CSV; skipping")
        return []

    try:
        rows = read_csv_rows(http.get_text(url))
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[ME] Failed to load CSV: %s", exc)
        return []

    logger.info("[ME] Total rows (denormalized): %d", len(rows))
    retailers = [row for row in unique_licenses(rows) if is_active_retailer(row)]
    logger.info("[ME] Found %d active adult-use stores", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "DBA", "LICENSE_NAME")
        city = pick(row, "LICENSE_CITY")
        raw_address = pick(row, "LICENSE_ADDRESS")
        if not name or not raw_address or not city:
            continue
        street = street_from(raw_address, city)
        if not street:
            continue

        coords = locate(geocoder, street, city, STATE)
        if coords is None:
            continue

        dispensaries.append(
            make_dispensary(
                name=name,
                address=street,
                city=city,
                state=STATE,
                postal="",
                coords=coords,
                website=pick(row, "LICENSE_WEBSITE"),
                license_number=pick(row, "LICENSE"),
            )
        )

    logger.info("[ME] Processed %d dispensaries", len(dispensaries))
    return dispensaries
