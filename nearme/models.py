"""Core data models shared by the dispensary pipeline and the nearby service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional


class SourceKind(str, Enum):
    """Where a record came from; drives trust precedence when merging."""

    SCRAPED = "scraped"
    OSM = "osm"
    GOOGLE = "google"


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


@dataclass(slots=True)
class Dispensary:
    """Normalized snapshot of one retail location."""

    name: str
    address: str
    city: str
    state: str
    latitude: float
    longitude: float
    zip: str = ""
    id: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    license_number: Optional[str] = None
    opening_hours: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    source: SourceKind = SourceKind.SCRAPED
    distance_miles: Optional[float] = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)
