"""Google Places coverage for states without machine-readable license data.

One text search per (state, city) pair. Results are deduplicated by place_id
across the whole run, permanently closed places are skipped, and results that
parse to a different state than the one queried (e.g. El Paso TX when
searching Sunland Park NM) are discarded.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

import requests

from nearme.core.config import Settings, get_settings
from nearme.core.geocode import Geocoder
from nearme.etl.transform import place_to_dispensary
from nearme.models import Dispensary
from nearme.vendors import google_places

logger = logging.getLogger(__name__)

STATE = "GOOGLE"
PLACE_TYPE = "store"
PAGE_TOKEN_DELAY = 2.5

# States already covered by a license adapter are left out.
COVERAGE: Dict[str, Sequence[str]] = {
    "AZ": (
        "Phoenix", "Tucson", "Mesa", "Chandler", "Scottsdale", "Glendale", "Gilbert",
        "Tempe", "Peoria", "Surprise", "Yuma", "Flagstaff", "Avondale", "Goodyear",
        "Lake Havasu City", "Prescott", "Kingman", "Sierra Vista", "Casa Grande", "Bullhead City",
    ),
    "NV": (
        "Las Vegas", "Henderson", "Reno", "North Las Vegas", "Sparks", "Carson City",
        "Boulder City", "Mesquite", "Elko", "Laughlin",
    ),
    "NJ": (
        "Newark", "Jersey City", "Paterson", "Elizabeth", "Trenton", "Camden",
        "Clifton", "Atlantic City", "Cherry Hill", "Edison", "Toms River",
        "Brick", "Woodbridge", "Lakewood", "Hamilton", "Bayonne", "Hoboken",
        "Passaic", "Union City", "East Orange",
    ),
    "MI": (
        "Detroit", "Grand Rapids", "Warren", "Sterling Heights", "Ann Arbor",
        "Lansing", "Flint", "Dearborn", "Livonia", "Westland", "Troy",
        "Kalamazoo", "Farmington Hills", "Pontiac", "Muskegon", "Saginaw",
        "Battle Creek", "Bay City", "Holland", "Traverse City",
    ),
    "VT": (
        "Burlington", "Rutland", "South Burlington", "Montpelier", "Barre",
        "Brattleboro", "St. Johnsbury", "Bennington", "Middlebury", "Stowe",
    ),
    "RI": (
        "Providence", "Cranston", "Warwick", "Pawtucket", "East Providence",
        "Woonsocket", "North Providence", "Cumberland", "Westerly", "Newport",
    ),
    "OH": (
        "Columbus", "Cleveland", "Cincinnati", "Toledo", "Akron", "Dayton",
        "Parma", "Canton", "Youngstown", "Lorain", "Hamilton", "Springfield",
        "Kettering", "Elyria", "Lakewood", "Dublin", "Newark", "Middletown",
        "Mentor", "Strongsville",
    ),
    "MN": (
        "Minneapolis", "St. Paul", "Rochester", "Duluth", "Bloomington",
        "Brooklyn Park", "Plymouth", "St. Cloud", "Eagan", "Coon Rapids",
        "Burnsville", "Eden Prairie", "Maple Grove", "Woodbury", "Blaine",
    ),
    "VA": (
        "Virginia Beach", "Norfolk", "Chesapeake", "Richmond", "Newport News",
        "Alexandria", "Hampton", "Roanoke", "Portsmouth", "Suffolk",
        "Lynchburg", "Harrisonburg", "Charlottesville", "Fredericksburg", "Danville",
    ),
    "AK": (
        "Anchorage", "Fairbanks", "Juneau", "Sitka", "Ketchikan",
        "Wasilla", "Kenai", "Kodiak", "Palmer",
    ),
    "MT": (
        "Billings", "Missoula", "Great Falls", "Bozeman", "Butte",
        "Helena", "Kalispell", "Havre", "Belgrade", "Whitefish",
    ),
    "DE": (
        "Wilmington", "Dover", "Newark", "Middletown", "Smyrna",
        "Milford", "Seaford", "Rehoboth Beach", "Georgetown",
    ),
    "NM": (
        "Albuquerque", "Santa Fe", "Las Cruces", "Rio Rancho", "Roswell",
        "Farmington", "Alamogordo", "Clovis", "Hobbs", "Carlsbad",
        "Gallup", "Taos", "Sunland Park", "Santa Teresa", "Silver City",
    ),
    "FL": (
        "Jacksonville", "Miami", "Tampa", "Orlando", "St. Petersburg",
        "Hialeah", "Tallahassee", "Fort Lauderdale", "Port St. Lucie",
        "Cape Coral", "Gainesville", "Hollywood", "Clearwater", "Lakeland",
        "Daytona Beach", "Sarasota", "Fort Myers", "West Palm Beach", "Ocala",
        "Pensacola", "Boca Raton", "Bradenton", "Pompano Beach", "Naples",
    ),
    "OK": (
        "Oklahoma City", "Tulsa", "Norman", "Broken Arrow", "Lawton",
        "Edmond", "Moore", "Midwest City", "Enid", "Stillwater",
        "Muskogee", "Bartlesville", "Owasso", "Ardmore", "Shawnee",
        "Yukon", "Sapulpa", "Bixby", "Jenks", "Claremore",
    ),
    "PA": (
        "Philadelphia", "Pittsburgh", "Allentown", "Erie", "Reading",
        "Scranton", "Bethlehem", "Lancaster", "Harrisburg", "Altoona",
        "York", "Wilkes-Barre", "State College", "Easton", "Lebanon",
        "Pottsville", "Hazleton", "Chester", "Norristown", "Monroeville",
    ),
}


def build_query(city: str, state: str) -> str:
    return f"cannabis dispensary in {city}, {state}"


class _Throttle:
    """Keep at least `interval` seconds between consecutive requests."""

    def __init__(
        self,
        interval: float,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.interval = interval
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            if self._last is not None:
                remaining = self.interval - (self._clock() - self._last)
                if remaining > 0:
                    self._sleep(remaining)
            self._last = self._clock()


def search_city(
    city: str,
    state: str,
    *,
    api_key: str,
    max_pages: int,
    throttle: _Throttle,
) -> List[dict]:
    """Collect raw results for one city across up to `max_pages` pages."""
    query = build_query(city, state)
    results: List[dict] = []
    page_token = None
    pages = 0

    while pages < max_pages:
        throttle.wait()
        try:
            response = google_places.text_search(
                query=query, api_key=api_key, pagetoken=page_token, place_type=PLACE_TYPE
            )
        except (requests.RequestException, google_places.GooglePlacesError) as exc:
            logger.warning('[Google] Failed "%s": %s', query, exc)
            break

        results.extend(response.get("results") or [])
        pages += 1
        page_token = response.get("next_page_token")
        if not page_token:
            break
        # next_page_token only becomes valid after a short delay
        time.sleep(PAGE_TOKEN_DELAY)

    return results


def fetch_active_retailers(
    geocoder: Optional[Geocoder] = None,
    *,
    settings: Optional[Settings] = None,
    coverage: Optional[Dict[str, Sequence[str]]] = None,
) -> List[Dispensary]:
    """Query every covered city. The geocoder is unused; Places results carry coordinates."""
    settings = settings or get_settings()
    api_key = settings.google_places_api_key
    if not api_key:
        logger.warning("[Google] GOOGLE_PLACES_API_KEY not set; skipping")
        return []

    coverage = COVERAGE if coverage is None else coverage
    total_cities = sum(len(cities) for cities in coverage.values())
    logger.info("[Google] Scraping Places API for %d states (%d city queries)", len(coverage), total_cities)

    throttle = _Throttle(settings.places_interval_seconds)
    seen_place_ids = set()
    dispensaries: List[Dispensary] = []

    for state, cities in coverage.items():
        state_count = 0
        for city in cities:
            for place in search_city(
                city, state, api_key=api_key, max_pages=settings.places_max_pages, throttle=throttle
            ):
                place_id = place.get("place_id")
                if not place_id or place_id in seen_place_ids:
                    continue
                seen_place_ids.add(place_id)

                if place.get("business_status") == "CLOSED_PERMANENTLY":
                    continue

                dispensary = place_to_dispensary(place)
                if dispensary is None:
                    logger.debug("[Google] Unusable result %s", place_id)
                    continue
                if dispensary.state != state:
                    continue

                dispensaries.append(dispensary)
                state_count += 1

        logger.info("[Google] %s: %d dispensaries", state, state_count)

    logger.info("[Google] Total: %d dispensaries across %d states", len(dispensaries), len(coverage))
    return dispensaries
