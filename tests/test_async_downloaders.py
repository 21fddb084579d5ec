"""Unit tests for cvecwe.async_downloaders — aiohttp weakness fetcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from cvecwe.async_downloaders import WeaknessFetcher, _default_headers, fetch_weaknesses
from cvecwe.config import RunConfig
from cvecwe.errors import FetchError
from cvecwe.models import CveRecord, Weakness
from cvecwe.scheduler import BatchScheduler
from cvecwe.store import RecordStore

DETAIL_HTML = """
<div>
  <h3>Weakness Enumeration</h3>
  <table>
    <thead><tr><th>CWE-ID</th><th>CWE Name</th><th>Source</th></tr></thead>
    <tbody><tr><td>CWE-787</td><td>Out-of-bounds Write</td><td>NIST</td></tr></tbody>
  </table>
</div>
"""

# ── Helper for async context manager mocking ────────────────────────────────


class AsyncContextManager:
    """Wraps an async mock to support `async with session.get(url) as resp:`."""

    def __init__(self, mock_resp):
        self.mock_resp = mock_resp

    async def __aenter__(self):
        return self.mock_resp

    async def __aexit__(self, *args):
        pass


def _session_returning(text: str) -> AsyncMock:
    mock_resp = AsyncMock()
    mock_resp.text = AsyncMock(return_value=text)
    mock_resp.raise_for_status = MagicMock()

    mock_session = AsyncMock()
    mock_session.get = MagicMock(return_value=AsyncContextManager(mock_resp))
    return mock_session


def _undecodable_session() -> AsyncMock:
    mock_resp = AsyncMock()
    mock_resp.text = AsyncMock(side_effect=UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte"))
    mock_resp.raise_for_status = MagicMock()

    mock_session = AsyncMock()
    mock_session.get = MagicMock(return_value=AsyncContextManager(mock_resp))
    return mock_session


# ── _default_headers ─────────────────────────────────────────────────────────


class TestDefaultHeaders:
    def test_user_agent(self):
        assert _default_headers()["User-Agent"].startswith("cvecwe/")


# ── fetch_weaknesses ─────────────────────────────────────────────────────────


class TestFetchWeaknesses:
    def test_parses_table(self):
        session = _session_returning(DETAIL_HTML)
        result = asyncio.run(fetch_weaknesses(session, "CVE-2024-0001"))
        assert result == [Weakness("CWE-787", "Out-of-bounds Write")]

    def test_builds_url_and_proxy(self):
        session = _session_returning(DETAIL_HTML)
        asyncio.run(
            fetch_weaknesses(session, "CVE-2024-0001", "https://nvd.example/detail/", proxy="http://proxy:3128")
        )
        session.get.assert_called_once_with("https://nvd.example/detail/CVE-2024-0001", proxy="http://proxy:3128")

    def test_http_error(self):
        mock_resp = AsyncMock()
        mock_resp.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(MagicMock(), (), status=404, message="Not Found")
        )
        session = AsyncMock()
        session.get = MagicMock(return_value=AsyncContextManager(mock_resp))

        with pytest.raises(FetchError) as exc:
            asyncio.run(fetch_weaknesses(session, "CVE-2024-0001"))
        assert exc.value.kind == "http"
        assert exc.value.identifier == "CVE-2024-0001"

    def test_network_error(self):
        session = AsyncMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("reset by peer"))
        with pytest.raises(FetchError) as exc:
            asyncio.run(fetch_weaknesses(session, "CVE-2024-0002"))
        assert exc.value.kind == "network"

    def test_timeout(self):
        session = AsyncMock()
        session.get = MagicMock(side_effect=asyncio.TimeoutError())
        with pytest.raises(FetchError) as exc:
            asyncio.run(fetch_weaknesses(session, "CVE-2024-0003"))
        assert exc.value.kind == "network"

    def test_parse_error(self):
        session = _session_returning("<html><body>Rate limited</body></html>")
        with pytest.raises(FetchError) as exc:
            asyncio.run(fetch_weaknesses(session, "CVE-2024-0004"))
        assert exc.value.kind == "parse"

    def test_undecodable_body(self):
        session = _undecodable_session()
        with pytest.raises(FetchError) as exc:
            asyncio.run(fetch_weaknesses(session, "CVE-2024-0005"))
        assert exc.value.kind == "parse"
        assert isinstance(exc.value.cause, UnicodeDecodeError)

    def test_undecodable_body_skipped_by_scheduler(self):
        good = _session_returning(DETAIL_HTML)
        bad = _undecodable_session()
        session = AsyncMock()
        session.get = MagicMock(
            side_effect=lambda url, proxy=None: (bad if url.endswith("CVE-BAD") else good).get(url, proxy=proxy)
        )
        fetcher = WeaknessFetcher(detail_url="https://nvd.example/")
        fetcher._session = session
        store = RecordStore([CveRecord(id="CVE-BAD"), CveRecord(id="CVE-OK")])

        summary = asyncio.run(BatchScheduler(policy="skip", on_wave=None).run(store, fetcher))

        assert [e.identifier for e in summary.failures] == ["CVE-BAD"]
        assert summary.enriched == 1
        assert store.get(1).weaknesses == [Weakness("CWE-787", "Out-of-bounds Write")]


# ── WeaknessFetcher ──────────────────────────────────────────────────────────


class TestWeaknessFetcher:
    def test_from_config(self):
        cfg = RunConfig(workers=4, proxy="http://proxy:3128", sources={"detail_url": "https://x/", "timeout": 5})
        fetcher = WeaknessFetcher.from_config(cfg)
        assert fetcher.limit == 4
        assert fetcher.proxy == "http://proxy:3128"
        assert fetcher.detail_url == "https://x/"
        assert fetcher.timeout.total == 5

    def test_outside_context_raises(self):
        fetcher = WeaknessFetcher()
        with pytest.raises(RuntimeError, match="async with"):
            asyncio.run(fetcher("CVE-2024-0001"))

    def test_call_uses_session(self):
        fetcher = WeaknessFetcher(detail_url="https://nvd.example/")
        fetcher._session = _session_returning(DETAIL_HTML)
        assert asyncio.run(fetcher("CVE-2024-0009")) == [Weakness("CWE-787", "Out-of-bounds Write")]
        fetcher._session.get.assert_called_once_with("https://nvd.example/CVE-2024-0009", proxy=None)

    def test_context_opens_and_closes_session(self):
        async def go():
            fetcher = WeaknessFetcher(limit=3)
            async with fetcher:
                session = fetcher._session
                assert isinstance(session, aiohttp.ClientSession)
                assert session.connector.limit == 3
            return fetcher, session

        fetcher, session = asyncio.run(go())
        assert fetcher._session is None
        assert session.closed
