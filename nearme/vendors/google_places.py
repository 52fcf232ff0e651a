"""Client utilities for the Google Places text search API."""

import logging
from typing import Any, Dict, Optional

import requests

from nearme.core.config import get_settings

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
_ACCEPTED_STATUSES = frozenset({"OK", "ZERO_RESULTS"})


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def text_search(
    query: str,
    api_key: str,
    pagetoken: Optional[str] = None,
    place_type: Optional[str] = None,
    timeout: Optional[int] = None,
) -> Dict[str, Any]:
    """Fetch one page of text search results; a `next_page_token` in the payload marks more."""
    settings = get_settings()
    params = {"query": query, "key": api_key}
    params.update({name: value for name, value in (("type", place_type), ("pagetoken", pagetoken)) if value})
    headers = {"User-Agent": settings.user_agent}
    response = _SESSION.get(
        TEXT_SEARCH_URL,
        params=params,
        headers=headers,
        timeout=timeout or settings.request_timeout,
    )
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in _ACCEPTED_STATUSES:
        logger.error("[Google] text search %r failed: status=%s, error_message=%s", query, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload
