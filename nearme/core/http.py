"""Shared HTTP helpers for the government data sources."""

import logging
import re
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from nearme.core.config import get_settings

logger = logging.getLogger(__name__)


def _build_session() -> requests.Session:
    """Session with retries for transient 5xx errors and the scraper User-Agent."""
    session = requests.Session()
    retries = Retry(
        total=2,
        backoff_factor=1,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers["User-Agent"] = get_settings().user_agent
    return session


_session = _build_session()


def get_session() -> requests.Session:
    return _session


def get(url: str, *, params=None, timeout: Optional[int] = None) -> requests.Response:
    """GET a document, following redirects; non-2xx responses raise HTTPError."""
    response = get_session().get(
        url,
        params=params,
        timeout=timeout or get_settings().request_timeout,
        allow_redirects=True,
    )
    response.raise_for_status()
    return response


def get_text(url: str, **kwargs) -> str:
    response = get(url, **kwargs)
    # Government CSV exports frequently omit the charset header.
    if response.encoding is None or response.encoding.lower() == "iso-8859-1":
        response.encoding = response.apparent_encoding or "utf-8"
    return response.text


def get_bytes(url: str, **kwargs) -> bytes:
    return get(url, **kwargs).content


def get_json(url: str, **kwargs):
    return get(url, **kwargs).json()


def exists(url: str, *, timeout: Optional[int] = None) -> bool:
    """HEAD-probe a URL; any failure counts as missing."""
    try:
        response = get_session().head(
            url,
            timeout=timeout or get_settings().request_timeout,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        logger.debug("HEAD %s failed: %s", url, exc)
        return False
    return 200 <= response.status_code < 300


def find_link(page_url: str, pattern: str) -> Optional[str]:
    """Fetch an index page and return the first absolute href matching `pattern`.

    Raises requests.RequestException when the page cannot be fetched.
    """
    html = get_text(page_url)
    soup = BeautifulSoup(html, "html.parser")
    regex = re.compile(pattern, re.IGNORECASE)
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href and regex.search(href):
            return urljoin(page_url, href)
    return None
