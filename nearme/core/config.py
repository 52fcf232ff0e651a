"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

MIN_GEOCODE_INTERVAL = 1.1
DEFAULT_USER_AGENT = "420nearme-scraper/1.0 (github.com/ussblade/420info)"


@dataclass(frozen=True)
class Settings:
    google_places_api_key: str = ""
    output_path: str = "output/dispensaries.json"
    geocode_cache_path: str = "output/geocode-cache.json"
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: int = 30
    geocode_interval_seconds: float = 1.1
    geocode_flush_every: int = 25
    places_interval_seconds: float = 0.2
    places_max_pages: int = 3
    scraper_workers: int = 4
    dataset_url: str = ""
    dataset_ttl_hours: int = 24
    search_radius_miles: float = 10.0
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    worker_port: int = 9000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    defaults = Settings()
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "").strip()
    dataset_url = os.getenv("DATASET_URL", "").strip()
    geocode_interval = float(os.getenv("GEOCODE_INTERVAL_SECONDS", "1.1"))
    if geocode_interval < MIN_GEOCODE_INTERVAL:
        logger.warning(
            "GEOCODE_INTERVAL_SECONDS=%s is below the Nominatim usage policy; using %s",
            geocode_interval,
            MIN_GEOCODE_INTERVAL,
        )
        geocode_interval = MIN_GEOCODE_INTERVAL

    settings = Settings(
        google_places_api_key=google_places_api_key,
        output_path=os.getenv("OUTPUT_PATH") or defaults.output_path,
        geocode_cache_path=os.getenv("GEOCODE_CACHE_PATH") or defaults.geocode_cache_path,
        user_agent=os.getenv("SCRAPER_USER_AGENT") or defaults.user_agent,
        request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30")),
        geocode_interval_seconds=geocode_interval,
        geocode_flush_every=int(os.getenv("GEOCODE_FLUSH_EVERY", "25")),
        places_interval_seconds=float(os.getenv("PLACES_INTERVAL_SECONDS", "0.2")),
        places_max_pages=int(os.getenv("PLACES_MAX_PAGES", "3")),
        scraper_workers=int(os.getenv("SCRAPER_WORKERS", "4")),
        dataset_url=dataset_url or os.getenv("OUTPUT_PATH") or defaults.output_path,
        dataset_ttl_hours=int(os.getenv("DATASET_TTL_HOURS", "24")),
        search_radius_miles=float(os.getenv("SEARCH_RADIUS_MILES", "10")),
        overpass_url=os.getenv("OVERPASS_URL") or defaults.overpass_url,
        nominatim_url=os.getenv("NOMINATIM_URL") or defaults.nominatim_url,
        worker_port=int(os.getenv("WORKER_PORT", "9000")),
    )

    if not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Google Places coverage will be skipped.")
    if not dataset_url:
        logger.warning("DATASET_URL is not set; the nearby service will read %s.", settings.dataset_url)

    return settings
