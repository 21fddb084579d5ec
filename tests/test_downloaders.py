"""Unit tests for cvecwe.downloaders — keyword search over requests."""

from unittest.mock import MagicMock

import pytest
import requests

from cvecwe.downloaders import get_text, requests_session, search_cves
from cvecwe.errors import FetchError

SEARCH_HTML = """
<h2>Search Results</h2>
<table>
  <tr><th>Name</th><th>Description</th></tr>
  <tr><td><a href="/cgi-bin/cvename.cgi?name=CVE-2024-0001">CVE-2024-0001</a></td><td>USB bug</td></tr>
</table>
"""


def _session_returning(text: str) -> MagicMock:
    session = MagicMock()
    session.get.return_value.text = text
    session.get.return_value.raise_for_status = MagicMock()
    return session


# ── requests_session ─────────────────────────────────────────────────────────


class TestRequestsSession:
    def test_user_agent(self):
        s = requests_session()
        assert s.headers["User-Agent"].startswith("cvecwe/")

    def test_accepts_html(self):
        s = requests_session()
        assert "text/html" in s.headers["Accept"]

    def test_no_proxy_by_default(self):
        s = requests_session()
        assert "https" not in s.proxies

    def test_proxy(self):
        s = requests_session("http://127.0.0.1:8080")
        assert s.proxies["http"] == "http://127.0.0.1:8080"
        assert s.proxies["https"] == "http://127.0.0.1:8080"


# ── get_text ─────────────────────────────────────────────────────────────────


class TestGetText:
    def test_returns_body(self):
        session = _session_returning("<html/>")
        assert get_text(session, "https://example.com", "usb") == "<html/>"

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        with pytest.raises(FetchError) as exc:
            get_text(session, "https://example.com", "usb")
        assert exc.value.kind == "http"
        assert exc.value.identifier == "usb"

    def test_network_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(FetchError) as exc:
            get_text(session, "https://example.com", "usb")
        assert exc.value.kind == "network"
        assert isinstance(exc.value.cause, requests.ConnectionError)


# ── search_cves ──────────────────────────────────────────────────────────────


class TestSearchCves:
    def test_parses_records(self):
        session = _session_returning(SEARCH_HTML)
        records = search_cves(session, "usb")
        assert [r.id for r in records] == ["CVE-2024-0001"]
        assert records[0].link == "https://cve.mitre.org/cgi-bin/cvename.cgi?name=CVE-2024-0001"
        assert records[0].description == "USB bug"

    def test_sends_keyword_param(self):
        session = _session_returning(SEARCH_HTML)
        search_cves(session, "usb hub", url="https://example.com/cvekey.cgi")
        args, kwargs = session.get.call_args
        assert args[0] == "https://example.com/cvekey.cgi"
        assert kwargs["params"] == {"keyword": "usb hub"}

    def test_parse_error(self):
        session = _session_returning("<html><body>Service unavailable</body></html>")
        with pytest.raises(FetchError) as exc:
            search_cves(session, "usb")
        assert exc.value.kind == "parse"
