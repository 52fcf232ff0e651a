"""Rate-limited, cache-backed geocoding for addresses missing coordinates.

Nominatim's usage policy allows at most one request per second, so every live
lookup goes through a single lock that enforces the spacing no matter how many
source adapters are running. Results, including "not found" tombstones, are
kept in a JSON file between monthly runs so known addresses never hit the
network again.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from nearme.core.config import get_settings
from nearme.models import Coordinates
from nearme.vendors import nominatim

logger = logging.getLogger(__name__)

LookupFn = Callable[[str], List[Dict[str, Any]]]


def normalize_address(address: str) -> str:
    return (address or "").strip().lower()


def _nominatim_lookup(address: str) -> List[Dict[str, Any]]:
    return nominatim.search(address, limit=1)


def _parse_entry(value: Any) -> Optional[Coordinates]:
    if value is None:
        return None
    return Coordinates(float(value["lat"]), float(value["lon"]))


class Geocoder:
    """Resolve free-text addresses to coordinates with a persistent cache."""

    def __init__(
        self,
        cache_path: str | os.PathLike,
        *,
        lookup: Optional[LookupFn] = None,
        min_interval: Optional[float] = None,
        flush_every: Optional[int] = None,
        retry_not_found: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = get_settings()
        self.cache_path = Path(cache_path)
        self._lookup = lookup or _nominatim_lookup
        self.min_interval = settings.geocode_interval_seconds if min_interval is None else min_interval
        self.flush_every = settings.geocode_flush_every if flush_every is None else flush_every
        self.retry_not_found = retry_not_found
        self._clock = clock
        self._sleep = sleep

        self._entries: Dict[str, Optional[Coordinates]] = {}
        self._retried: set = set()
        self._cache_lock = threading.Lock()
        self._lookup_lock = threading.Lock()
        self._last_request: Optional[float] = None
        self._unsaved = 0
        self.lookups = 0

    # ---------- lifecycle ----------

    def load(self) -> int:
        """Read the cache file; a missing file means an empty cache."""
        entries: Dict[str, Optional[Coordinates]] = {}
        try:
            with self.cache_path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            logger.info("No geocode cache at %s; starting empty", self.cache_path)
            raw = {}

        if not isinstance(raw, dict):
            logger.warning("Geocode cache %s is not a JSON object; ignoring it", self.cache_path)
            raw = {}

        for key, value in raw.items():
            try:
                entries[normalize_address(key)] = _parse_entry(value)
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed geocode cache entry for %r", key)

        with self._cache_lock:
            self._entries = entries
            self._unsaved = 0
        logger.info("Loaded %d geocode cache entries from %s", len(entries), self.cache_path)
        return len(entries)

    def flush(self) -> None:
        """Write the whole cache atomically."""
        with self._cache_lock:
            payload = {
                key: (None if coords is None else {"lat": coords.latitude, "lon": coords.longitude})
                for key, coords in sorted(self._entries.items())
            }
            self._unsaved = 0

        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_path.parent, prefix=".geocode-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_name, self.cache_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info("Saved %d geocode cache entries to %s", len(payload), self.cache_path)

    def __enter__(self) -> "Geocoder":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.flush()

    def __len__(self) -> int:
        return len(self._entries)

    # ---------- lookups ----------

    def cached(self, address: str) -> bool:
        return normalize_address(address) in self._entries

    def resolve(self, address: str) -> Optional[Coordinates]:
        """Return coordinates for `address`, or None when it cannot be found."""
        key = normalize_address(address)
        if not key:
            return None

        hit, coords = self._from_cache(key)
        if hit:
            return coords

        with self._lookup_lock:
            # Another thread may have resolved the same key while we waited.
            hit, coords = self._from_cache(key)
            if hit:
                return coords
            self._wait_for_slot()
            coords = self._live_lookup(address)
            self._store(key, coords)
        return coords

    def _from_cache(self, key: str):
        with self._cache_lock:
            if key not in self._entries:
                return False, None
            coords = self._entries[key]
            if coords is None and self.retry_not_found and key not in self._retried:
                return False, None
            return True, coords

    def _wait_for_slot(self) -> None:
        if self._last_request is not None:
            elapsed = self._clock() - self._last_request
            remaining = self.min_interval - elapsed
            if remaining > 0:
                self._sleep(remaining)
        self._last_request = self._clock()

    def _live_lookup(self, address: str) -> Optional[Coordinates]:
        self.lookups += 1
        try:
            results = self._lookup(address)
        except (requests.RequestException, nominatim.NominatimError, ValueError) as exc:
            logger.warning("Geocode failed for %r: %s", address, exc)
            return None

        if not results:
            logger.debug("No geocode results for %r", address)
            return None

        first = results[0]
        try:
            return Coordinates(float(first["lat"]), float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unusable geocode result for %r: %s", address, exc)
            return None

    def _store(self, key: str, coords: Optional[Coordinates]) -> None:
        with self._cache_lock:
            self._entries[key] = coords
            self._retried.add(key)
            self._unsaved += 1
            should_flush = self.flush_every > 0 and self._unsaved >= self.flush_every
        if should_flush:
            self.flush()
