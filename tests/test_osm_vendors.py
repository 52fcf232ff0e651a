import pytest
import requests

from nearme.models import SourceKind
from nearme.vendors import nominatim, overpass


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        return self.response

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        return self.response


def test_nominatim_search_sends_policy_headers(monkeypatch):
    session = DummySession(DummyResponse(payload=[{"place_id": 7, "display_name": "Denver", "lat": "39.7", "lon": "-104.9"}]))
    monkeypatch.setattr(nominatim, "_SESSION", session)

    results = nominatim.search("  Denver ", limit=1)

    call = session.calls[0]
    assert call["params"]["q"] == "Denver"
    assert call["params"]["countrycodes"] == "us"
    assert call["params"]["limit"] == "1"
    assert call["headers"]["User-Agent"].startswith("420nearme-scraper")
    assert nominatim.to_place(results[0]) == {
        "placeId": 7,
        "displayName": "Denver",
        "latitude": 39.7,
        "longitude": -104.9,
    }


def test_nominatim_rejects_non_list_payload(monkeypatch):
    monkeypatch.setattr(nominatim, "_SESSION", DummySession(DummyResponse(payload={"error": "x"})))
    with pytest.raises(nominatim.NominatimError):
        nominatim.search("Denver")


def test_nominatim_http_error_raises(monkeypatch):
    monkeypatch.setattr(nominatim, "_SESSION", DummySession(DummyResponse(status_code=429)))
    with pytest.raises(requests.HTTPError):
        nominatim.search("Denver")


def test_overpass_query_covers_all_tags():
    query = overpass.build_query(39.7, -104.9, 1000)
    assert query.startswith("[out:json][timeout:25];")
    for clause in (
        'node["shop"="cannabis"](around:1000,39.7,-104.9);',
        'way["shop"="marijuana"](around:1000,39.7,-104.9);',
        'node["amenity"="cannabis"](around:1000,39.7,-104.9);',
        'way["cannabis"="retail"](around:1000,39.7,-104.9);',
    ):
        assert clause in query
    assert query.endswith("out body center;")


def test_query_overpass_maps_nodes_and_ways(monkeypatch):
    payload = {
        "elements": [
            {
                "type": "node",
                "id": 1,
                "lat": 39.75,
                "lon": -104.99,
                "tags": {
                    "name": "Green Door",
                    "addr:housenumber": "12",
                    "addr:street": "Main St",
                    "addr:city": "Denver",
                    "contact:phone": "555-0100",
                    "opening_hours": "Mo-Su 09:00-21:00",
                },
            },
            {"type": "way", "id": 2, "center": {"lat": 39.76, "lon": -104.98}, "tags": {"brand": "Chain"}},
            {"type": "way", "id": 3, "tags": {}},
        ]
    }
    session = DummySession(DummyResponse(payload=payload))
    monkeypatch.setattr(overpass, "_SESSION", session)

    results = overpass.query_overpass(39.7, -104.9, radius_m=5000)

    assert "around:5000" in session.calls[0]["data"]["data"]
    assert [item.id for item in results] == ["osm-1", "osm-2"]
    first, second = results
    assert first.address == "12 Main St"
    assert first.phone == "555-0100"
    assert first.opening_hours == "Mo-Su 09:00-21:00"
    assert first.source is SourceKind.OSM
    assert second.name == "Chain"
    assert (second.latitude, second.longitude) == (39.76, -104.98)


def test_query_overpass_rejects_bad_payload(monkeypatch):
    monkeypatch.setattr(overpass, "_SESSION", DummySession(DummyResponse(payload={"remark": "timeout"})))
    with pytest.raises(overpass.OverpassError):
        overpass.query_overpass(0, 0)
