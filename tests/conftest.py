import sys
from pathlib import Path

import pytest

# Ensure the `nearme` package is importable when running pytest from the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nearme.core import config  # noqa: E402
from nearme.models import Coordinates  # noqa: E402


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Keep a developer's .env and environment out of the tests."""
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)
    for name in ("GOOGLE_PLACES_API_KEY", "DATASET_URL", "OUTPUT_PATH", "GEOCODE_CACHE_PATH", "REQUEST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


class FakeGeocoder:
    """Stands in for Geocoder: answers from a dict and records every address asked."""

    def __init__(self, known=None):
        self.known = {key.lower(): Coordinates(*value) for key, value in (known or {}).items()}
        self.calls = []

    def add(self, address, lat, lon):
        self.known[address.lower()] = Coordinates(lat, lon)

    def resolve(self, address):
        self.calls.append(address)
        return self.known.get(address.lower())


@pytest.fixture
def geocoder():
    return FakeGeocoder()
