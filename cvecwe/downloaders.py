"""Synchronous HTTP helpers for the initial CVE keyword search.

The search is a single request made before enrichment starts, so it
uses a plain ``requests`` session.  Network, HTTP and parse failures are
all raised as ``FetchError``.
"""

import requests

from . import __version__
from .config import MITRE_SEARCH_URL
from .errors import FetchError
from .models import CveRecord
from .parsers import parse_search_results

USER_AGENT = f"cvecwe/{__version__}"
DEFAULT_HTTP_TIMEOUT = (10, 120)  # (connect, read)


def requests_session(proxy: str | None = None) -> requests.Session:
    """Create a configured requests session.

    Args:
        proxy: Optional proxy URL used for both HTTP and HTTPS.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml",
        }
    )
    if proxy:
        s.proxies.update({"http": proxy, "https": proxy})
    return s


def get_text(session: requests.Session, url: str, identifier: str, params: dict | None = None) -> str:
    """Fetch a page body as text.

    Args:
        session: Requests session.
        url: URL to fetch.
        identifier: Keyword or CVE ID, used in error reports.
        params: Optional query parameters.

    Returns:
        Decoded response body.

    Raises:
        FetchError: on transport failure or a non-2xx status.
    """
    try:
        r = session.get(url, params=params, timeout=DEFAULT_HTTP_TIMEOUT)
        r.raise_for_status()
    except requests.HTTPError as e:
        raise FetchError("http", identifier, e) from e
    except requests.RequestException as e:
        raise FetchError("network", identifier, e) from e
    return r.text


def search_cves(
    session: requests.Session,
    keyword: str,
    url: str = MITRE_SEARCH_URL,
) -> list[CveRecord]:
    """Search CVE entries matching a keyword.

    Args:
        session: Requests session.
        keyword: Search keyword.
        url: Keyword search endpoint.

    Returns:
        Records with id, link and description populated.

    Raises:
        FetchError: on network, HTTP or parse failure.
    """
    html = get_text(session, url, keyword, params={"keyword": keyword})
    try:
        return parse_search_results(html, base_url=url)
    except ValueError as e:
        raise FetchError("parse", keyword, e) from e
