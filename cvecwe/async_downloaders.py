"""Async weakness fetcher for NVD detail pages.

Uses ``aiohttp`` so that all workers of a wave share one event loop and
one connection pool.  The connector limit equals the configured worker
count, which bounds outbound connections per wave.

Usage::

    async with WeaknessFetcher.from_config(cfg) as fetcher:
        weaknesses = await fetcher.fetch_weaknesses("CVE-2024-12345")
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import aiohttp

from .config import NVD_DETAIL_URL, RunConfig
from .downloaders import USER_AGENT
from .errors import FetchError
from .models import Weakness
from .parsers import parse_weaknesses

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=15)

# Anything awaitable that maps a CVE ID to its weaknesses can drive a worker.
Fetcher = Callable[[str], Awaitable[list[Weakness]]]


def _default_headers() -> dict[str, str]:
    """Build HTTP headers for NVD requests."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml",
    }


async def _fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    identifier: str,
    proxy: str | None = None,
) -> str:
    """Fetch a page body, mapping client errors onto ``FetchError``."""
    try:
        async with session.get(url, proxy=proxy) as resp:
            resp.raise_for_status()
            return await resp.text()
    except aiohttp.ClientResponseError as e:
        raise FetchError("http", identifier, e) from e
    except UnicodeDecodeError as e:
        raise FetchError("parse", identifier, e) from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError("network", identifier, e) from e


async def fetch_weaknesses(
    session: aiohttp.ClientSession,
    cve_id: str,
    detail_url: str = NVD_DETAIL_URL,
    proxy: str | None = None,
) -> list[Weakness]:
    """Fetch and parse the weakness enumeration of one CVE.

    Args:
        session: Open aiohttp session.
        cve_id: CVE identifier.
        detail_url: Detail page prefix; the CVE ID is appended.
        proxy: Optional proxy URL.

    Returns:
        Weaknesses in page order.

    Raises:
        FetchError: on network, HTTP or parse failure.
    """
    html = await _fetch_text(session, f"{detail_url}{cve_id}", cve_id, proxy=proxy)
    try:
        return parse_weaknesses(html)
    except ValueError as e:
        raise FetchError("parse", cve_id, e) from e


class WeaknessFetcher:
    """Owns an aiohttp session and fetches weaknesses per CVE ID.

    Instances are async context managers; the session is opened on entry
    and closed on exit.  Calling the instance is the same as calling
    ``fetch_weaknesses`` so it can be passed wherever a ``Fetcher`` is
    expected.

    Attributes:
        detail_url: NVD detail page prefix.
        proxy: Optional proxy URL.
        limit: Maximum simultaneous connections.
        timeout: aiohttp client timeout.
    """

    def __init__(
        self,
        *,
        detail_url: str = NVD_DETAIL_URL,
        proxy: str | None = None,
        limit: int = 10,
        timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT,
    ):
        self.detail_url = detail_url
        self.proxy = proxy
        self.limit = limit
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, cfg: RunConfig) -> WeaknessFetcher:
        return cls(
            detail_url=cfg.sources.detail_url,
            proxy=cfg.proxy,
            limit=cfg.workers,
            timeout=aiohttp.ClientTimeout(total=cfg.sources.timeout, connect=15),
        )

    async def __aenter__(self) -> WeaknessFetcher:
        self._session = aiohttp.ClientSession(
            headers=_default_headers(),
            timeout=self.timeout,
            connector=aiohttp.TCPConnector(limit=self.limit),
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_weaknesses(self, cve_id: str) -> list[Weakness]:
        if self._session is None:
            raise RuntimeError("WeaknessFetcher used outside 'async with'")
        return await fetch_weaknesses(self._session, cve_id, self.detail_url, proxy=self.proxy)

    async def __call__(self, cve_id: str) -> list[Weakness]:
        return await self.fetch_weaknesses(cve_id)
