import threading

import pytest
import requests

from nearme.core import http


class DummyResponse:
    def __init__(self, status_code=200, text="", encoding="utf-8"):
        self.status_code = status_code
        self.text = text
        self.encoding = encoding
        self.apparent_encoding = "windows-1252"

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None, allow_redirects=False):
        self.calls.append(("GET", url, params, timeout))
        return self.response

    def head(self, url, timeout=None, allow_redirects=False):
        self.calls.append(("HEAD", url, None, timeout))
        if self.error:
            raise self.error
        return self.response


def use_session(monkeypatch, session):
    monkeypatch.setattr(http, "_session", session)
    return session


def test_get_uses_default_timeout_and_raises(monkeypatch):
    session = use_session(monkeypatch, DummySession(DummyResponse(status_code=404)))
    with pytest.raises(requests.HTTPError):
        http.get("https://example.com/data.csv", params={"a": "1"})
    assert session.calls[0] == ("GET", "https://example.com/data.csv", {"a": "1"}, 30)


def test_get_text_guesses_missing_charset(monkeypatch):
    response = DummyResponse(text="café", encoding="ISO-8859-1")
    use_session(monkeypatch, DummySession(response))
    assert http.get_text("https://example.com") == "café"
    assert response.encoding == "windows-1252"


def test_exists_treats_errors_as_missing(monkeypatch):
    use_session(monkeypatch, DummySession(DummyResponse(status_code=200)))
    assert http.exists("https://example.com/ok.csv") is True

    use_session(monkeypatch, DummySession(DummyResponse(status_code=404)))
    assert http.exists("https://example.com/missing.csv") is False

    use_session(monkeypatch, DummySession(error=requests.ConnectionError("dns")))
    assert http.exists("https://example.com/down.csv") is False


def test_find_link_returns_absolute_url(monkeypatch):
    page = """
    <html><body>
      <a href="/files/report.pdf">Report</a>
      <a href="/sites/default/files/CannabisApplicants_02012025.xlsx">Applicants</a>
    </body></html>
    """
    monkeypatch.setattr(http, "get_text", lambda url: page)

    url = http.find_link("https://lcb.wa.gov/records/lists", r"CannabisApplicants[^\"']*\.xlsx")

    assert url == "https://lcb.wa.gov/sites/default/files/CannabisApplicants_02012025.xlsx"
    assert http.find_link("https://lcb.wa.gov/records/lists", r"nothing\.xlsx") is None


def test_session_sends_scraper_user_agent():
    session = http._build_session()
    assert session.headers["User-Agent"].startswith("420nearme-scraper")
    assert session.get_adapter("https://example.com").max_retries.total == 2


def test_shared_session_is_created_once_across_threads():
    seen = []
    threads = [threading.Thread(target=lambda: seen.append(http.get_session())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len({id(session) for session in seen}) == 1
    assert seen[0] is http._session
