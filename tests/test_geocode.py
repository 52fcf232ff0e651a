import json
import threading
import time

import pytest
import requests

from nearme.core import geocode
from nearme.models import Coordinates


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingLookup:
    def __init__(self, answers=None, error=None):
        self.answers = answers or {}
        self.error = error
        self.calls = []

    def __call__(self, address):
        self.calls.append(address)
        if self.error:
            raise self.error
        return self.answers.get(address, [])


def make_geocoder(tmp_path, lookup, **kwargs):
    clock = kwargs.pop("clock", FakeClock())
    return geocode.Geocoder(
        tmp_path / "cache.json",
        lookup=lookup,
        min_interval=1.1,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def write_cache(tmp_path, payload):
    (tmp_path / "cache.json").write_text(json.dumps(payload), encoding="utf-8")


def test_cache_hit_skips_network(tmp_path):
    write_cache(tmp_path, {"123 main st, denver, co 80202": {"lat": 39.7, "lon": -104.9}})
    lookup = RecordingLookup()
    geocoder = make_geocoder(tmp_path, lookup)
    geocoder.load()

    coords = geocoder.resolve("  123 Main St, Denver, CO 80202 ")

    assert coords == Coordinates(39.7, -104.9)
    assert lookup.calls == []
    assert geocoder.lookups == 0


def test_tombstone_is_not_retried_by_default(tmp_path):
    write_cache(tmp_path, {"nowhere, xx": None})
    lookup = RecordingLookup()
    geocoder = make_geocoder(tmp_path, lookup)
    geocoder.load()

    assert geocoder.resolve("Nowhere, XX") is None
    assert lookup.calls == []


def test_retry_not_found_reattempts_tombstone_once(tmp_path):
    write_cache(tmp_path, {"nowhere, xx": None})
    lookup = RecordingLookup({"Nowhere, XX": [{"lat": "1.5", "lon": "2.5"}]})
    geocoder = make_geocoder(tmp_path, lookup, retry_not_found=True)
    geocoder.load()

    assert geocoder.resolve("Nowhere, XX") == Coordinates(1.5, 2.5)
    assert geocoder.resolve("Nowhere, XX") == Coordinates(1.5, 2.5)
    assert lookup.calls == ["Nowhere, XX"]


def test_retry_not_found_keeps_tombstone_when_still_missing(tmp_path):
    write_cache(tmp_path, {"nowhere, xx": None})
    lookup = RecordingLookup()
    geocoder = make_geocoder(tmp_path, lookup, retry_not_found=True)
    geocoder.load()

    assert geocoder.resolve("Nowhere, XX") is None
    assert geocoder.resolve("Nowhere, XX") is None
    assert len(lookup.calls) == 1


def test_miss_queries_and_caches_first_result(tmp_path):
    lookup = RecordingLookup(
        {"1 Elm St, Salem, OR": [{"lat": "44.9", "lon": "-123.0"}, {"lat": "0", "lon": "0"}]}
    )
    geocoder = make_geocoder(tmp_path, lookup)
    geocoder.load()

    assert geocoder.resolve("1 Elm St, Salem, OR") == Coordinates(44.9, -123.0)
    assert geocoder.resolve("1 ELM ST, SALEM, OR") == Coordinates(44.9, -123.0)
    assert lookup.calls == ["1 Elm St, Salem, OR"]
    assert geocoder.cached("1 elm st, salem, or")


def test_zero_results_and_errors_become_tombstones(tmp_path):
    geocoder = make_geocoder(tmp_path, RecordingLookup())
    assert geocoder.resolve("Unknown Rd") is None
    assert geocoder.cached("unknown rd")

    failing = make_geocoder(tmp_path, RecordingLookup(error=requests.ConnectionError("down")))
    assert failing.resolve("Broken Rd") is None
    assert failing.cached("broken rd")

    failing.flush()
    saved = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert saved == {"broken rd": None}


def test_empty_address_is_not_looked_up(tmp_path):
    lookup = RecordingLookup()
    geocoder = make_geocoder(tmp_path, lookup)

    assert geocoder.resolve("   ") is None
    assert lookup.calls == []
    assert len(geocoder) == 0


def test_live_lookups_are_spaced(tmp_path):
    clock = FakeClock()
    lookup = RecordingLookup()
    geocoder = make_geocoder(tmp_path, lookup, clock=clock)

    geocoder.resolve("a")
    geocoder.resolve("b")
    clock.now += 5
    geocoder.resolve("c")

    assert clock.sleeps == [pytest.approx(1.1)]
    assert geocoder.lookups == 3


def test_load_ignores_malformed_entries(tmp_path):
    write_cache(
        tmp_path,
        {
            "good": {"lat": 1, "lon": 2, "extra": "ignored"},
            "missing-lon": {"lat": 1},
            "bad-type": "somewhere",
            "tomb": None,
        },
    )
    geocoder = make_geocoder(tmp_path, RecordingLookup())

    assert geocoder.load() == 2
    assert geocoder.resolve("good") == Coordinates(1.0, 2.0)
    assert geocoder.cached("tomb")
    assert not geocoder.cached("missing-lon")


def test_load_ignores_non_object_file(tmp_path, caplog):
    write_cache(tmp_path, ["not", "a", "dict"])
    geocoder = make_geocoder(tmp_path, RecordingLookup())

    with caplog.at_level("WARNING"):
        assert geocoder.load() == 0
    assert "not a JSON object" in " ".join(caplog.messages)


def test_missing_cache_file_is_empty(tmp_path):
    geocoder = make_geocoder(tmp_path, RecordingLookup())
    assert geocoder.load() == 0


def test_flushes_every_n_new_entries(tmp_path):
    geocoder = make_geocoder(tmp_path, RecordingLookup(), flush_every=2)
    cache_file = tmp_path / "cache.json"

    geocoder.resolve("first")
    assert not cache_file.exists()
    geocoder.resolve("second")
    assert json.loads(cache_file.read_text(encoding="utf-8")) == {"first": None, "second": None}


def test_context_manager_flushes_on_error(tmp_path):
    lookup = RecordingLookup({"x": [{"lat": "1", "lon": "1"}]})
    with pytest.raises(RuntimeError):
        with make_geocoder(tmp_path, lookup) as geocoder:
            geocoder.resolve("x")
            raise RuntimeError("adapter blew up")

    saved = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert saved == {"x": {"lat": 1.0, "lon": 1.0}}


def test_concurrent_resolves_share_one_lookup(tmp_path):
    lookup = RecordingLookup({"same": [{"lat": "3", "lon": "4"}]})
    geocoder = make_geocoder(tmp_path, lookup)
    results = []

    threads = [threading.Thread(target=lambda: results.append(geocoder.resolve("same"))) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [Coordinates(3.0, 4.0)] * 5
    assert lookup.calls == ["same"]


def test_concurrent_distinct_lookups_queue_behind_one_interval(tmp_path):
    starts = []

    def lookup(address):
        starts.append(time.monotonic())
        return [{"lat": "1", "lon": "2"}]

    geocoder = geocode.Geocoder(tmp_path / "cache.json", lookup=lookup, min_interval=0.2)
    addresses = ["1 a st", "2 b st", "3 c st", "4 d st"]

    threads = [threading.Thread(target=geocoder.resolve, args=(address,)) for address in addresses]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert geocoder.lookups == 4
    gaps = [later - earlier for earlier, later in zip(sorted(starts), sorted(starts)[1:])]
    assert len(gaps) == 3
    assert all(gap >= 0.19 for gap in gaps)
