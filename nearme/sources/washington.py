"""Washington WSLCB (Liquor and Cannabis Board) licensed retailers.

The workbook filename changes with every release, so the current link is
scraped from the "frequently requested lists" page before downloading.

Columns: Tradename | License | UBI | Street Address | Suite Rm | City | State |
county | Zip Code | Priv Desc | Privilege Status | Day Phone
"""

import logging
from typing import List, Optional

import requests

from nearme.core import http
from nearme.core.geocode import Geocoder
from nearme.etl.tables import Row, read_xlsx_rows
from nearme.models import Dispensary
from nearme.sources.common import join_parts, locate, make_dispensary, pick, zip5

logger = logging.getLogger(__name__)

STATE = "WA"
LISTS_PAGE_URL = "https://lcb.wa.gov/records/frequently-requested-lists"
LINK_PATTERN = r"CannabisApplicants[^\"']*\.xlsx"

_CLOSED_STATUSES = ("CLOSED", "CANCELLED", "REVOKED", "EXPIRED")


def current_workbook_url() -> Optional[str]:
    try:
        url = http.find_link(LISTS_PAGE_URL, LINK_PATTERN)
    except requests.RequestException as exc:
        logger.warning("[WA] Failed to fetch WSLCB lists page: %s", exc)
        return None
    if not url:
        logger.warning("[WA] Could not find a CannabisApplicants link on %s", LISTS_PAGE_URL)
    return url


def is_active_retailer(row: Row) -> bool:
    privilege = pick(row, "Priv Desc").upper()
    status = pick(row, "Privilege Status").upper()
    return privilege == "CANNABIS RETAILER" and not any(word in status for word in _CLOSED_STATUSES)


def fetch_active_retailers(geocoder: Geocoder) -> List[Dispensary]:
    logger.info("[WA] Finding current WSLCB workbook")
    url = current_workbook_url()
    if not url:
        return []

    logger.info("[WA] Downloading %s", url)
    try:
        rows = read_xlsx_rows(http.get_bytes(url), sheet_pattern="retailer")
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[WA] Failed to load workbook: %s", exc)
        return []

    retailers = [row for row in rows if is_active_retailer(row)]
    logger.info("[WA] Found %d active cannabis retailers", len(retailers))

    dispensaries: List[Dispensary] = []
    for row in retailers:
        name = pick(row, "Tradename", "Trade Name")
        if not name:
            continue
        street = join_parts(pick(row, "Street Address"), pick(row, "Suite Rm"))
        city = pick(row, "City")
        postal = zip5(pick(row, "Zip Code"))
        if not street or not city:
            logger.debug("[WA] Missing address for %s", name)
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
                phone=pick(row, "Day Phone"),
                # The published header carries a trailing space.
                license_number=pick(row, "License", "License "),
            )
        )

    logger.info("[WA] Processed %d dispensaries", len(dispensaries))
    return dispensaries
