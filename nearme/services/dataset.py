"""Read the published dataset with an in-memory TTL cache.

The dataset is rebuilt monthly, so a fresh copy is fetched at most once per
TTL. When a refresh fails the last good copy is served and marked stale.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional

import requests

from nearme.core import http
from nearme.etl.aggregate import parse_payload
from nearme.models import Dispensary

logger = logging.getLogger(__name__)


class DatasetUnavailable(RuntimeError):
    """Raised when the dataset cannot be fetched and nothing is cached."""


class DatasetSnapshot(NamedTuple):
    dispensaries: List[Dispensary]
    stale: bool


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class DatasetClient:
    def __init__(
        self,
        source: str,
        ttl_hours: float = 24,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[List[Dispensary]] = None
        self._fetched_at: Optional[float] = None

    def _is_fresh(self) -> bool:
        if self._cached is None or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at <= self.ttl_seconds

    def _fetch(self) -> List[Dispensary]:
        if _is_url(self.source):
            payload = http.get_json(self.source)
        else:
            with Path(self.source).open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        return parse_payload(payload)

    def snapshot(self) -> DatasetSnapshot:
        """Fresh cache, else a new fetch, else the stale cache."""
        with self._lock:
            if self._is_fresh():
                logger.debug("Dataset cache hit (%d entries)", len(self._cached))
                return DatasetSnapshot(self._cached, False)

            try:
                records = self._fetch()
            except (requests.RequestException, OSError, ValueError) as exc:
                logger.warning("Dataset fetch from %s failed: %s", self.source, exc)
                if self._cached is not None:
                    logger.info("Using stale dataset cache (%d entries)", len(self._cached))
                    return DatasetSnapshot(self._cached, True)
                raise DatasetUnavailable(str(exc)) from exc

            self._cached = records
            self._fetched_at = self._clock()
            logger.info("Fetched %d dispensaries from %s", len(records), self.source)
            return DatasetSnapshot(records, False)

    def invalidate(self) -> None:
        with self._lock:
            self._fetched_at = None
