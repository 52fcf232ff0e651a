"""Client utilities for the OpenStreetMap Nominatim search API."""

import logging
from typing import Any, Dict, List

import requests

from nearme.core.config import get_settings

logger = logging.getLogger(__name__)
_SESSION = requests.Session()


class NominatimError(RuntimeError):
    """Raised when Nominatim returns a payload we cannot interpret."""


def search(query: str, limit: int = 5, timeout: int = 10) -> List[Dict[str, Any]]:
    """Run a free-text search restricted to the US and return the raw result list."""
    settings = get_settings()
    params = {
        "q": query.strip(),
        "format": "json",
        "countrycodes": "us",
        "addressdetails": "0",
        "limit": str(limit),
    }
    headers = {"User-Agent": settings.user_agent, "Accept-Language": "en"}
    response = _SESSION.get(settings.nominatim_url, params=params, headers=headers, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, list):
        logger.error("Nominatim returned unexpected payload type: %s", type(payload).__name__)
        raise NominatimError("expected a JSON list of results")
    return payload


def to_place(result: Dict[str, Any]) -> Dict[str, Any]:
    """Shape one search result as a place suggestion."""
    return {
        "placeId": result.get("place_id"),
        "displayName": result.get("display_name"),
        "latitude": float(result["lat"]),
        "longitude": float(result["lon"]),
    }
