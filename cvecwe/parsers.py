"""HTML parsing for the CVE keyword search and NVD detail pages.

Pure functions: every input is an HTML string already in memory and no
network calls are made here.  Structural problems raise ``ValueError``;
the download layer turns them into ``FetchError(kind="parse")``.
"""

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .models import CveRecord, Weakness

MITRE_BASE_URL = "https://cve.mitre.org"

# Present on every NVD vulnerability detail page, with or without CWE data.
NVD_DETAIL_MARKERS = ("vuln-description", "page-header-vuln-id")


def clean_text(s: str | None) -> str:
    """Collapse runs of whitespace and strip.

    Args:
        s: Input string (may be None).

    Returns:
        Cleaned string.
    """
    return re.sub(r"\s+", " ", (s or "").strip())


def _find_heading(soup: BeautifulSoup, tag: str, text: str) -> Tag | None:
    for h in soup.find_all(tag):
        if text in h.get_text():
            return h
    return None


def parse_search_results(html: str, base_url: str = MITRE_BASE_URL) -> list[CveRecord]:
    """Parse the CVE keyword search result page.

    The first table after the ``Search Results`` heading holds one row per
    CVE: the ID (linked) in the first cell and the description in the
    second.  Rows without ``td`` cells (the header row) are skipped.

    Args:
        html: Search result page HTML.
        base_url: Prefix for relative CVE links.

    Returns:
        Records in page order, weaknesses empty.

    Raises:
        ValueError: if the page has no ``Search Results`` heading.
    """
    soup = BeautifulSoup(html, "html.parser")
    header = _find_heading(soup, "h2", "Search Results")
    if header is None:
        raise ValueError("Search result page has no 'Search Results' heading")

    table = header.find_next("table")
    if table is None:
        return []

    records: list[CveRecord] = []
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if not cells:
            continue
        cve_id = clean_text(cells[0].get_text())
        if not cve_id:
            continue
        link = ""
        anchor = cells[0].find("a")
        if anchor is not None and anchor.get("href"):
            link = urljoin(base_url, anchor["href"])
        description = clean_text(cells[1].get_text()) if len(cells) > 1 else ""
        records.append(CveRecord(id=cve_id, link=link, description=description))
    return records


def parse_weaknesses(html: str) -> list[Weakness]:
    """Parse the Weakness Enumeration table of an NVD detail page.

    Pages that are valid detail pages but carry no weakness section (e.g.
    CVEs still awaiting analysis) yield an empty list.

    Args:
        html: NVD ``/vuln/detail/<CVE>`` page HTML.

    Returns:
        Weaknesses in table order, sentinel codes included.

    Raises:
        ValueError: if the page is not an NVD vulnerability detail page.
    """
    soup = BeautifulSoup(html, "html.parser")
    header = _find_heading(soup, "h3", "Weakness Enumeration")
    if header is None:
        if any(soup.find(attrs={"data-testid": m}) for m in NVD_DETAIL_MARKERS):
            return []
        raise ValueError("Page is not an NVD vulnerability detail page")

    table = header.find_next_sibling("table")
    if table is None:
        return []

    body = table.find("tbody") or table
    out: list[Weakness] = []
    for row in body.find_all("tr"):
        cells = row.find_all("td")
        if not cells:
            continue
        code = clean_text(cells[0].get_text())
        if not code:
            continue
        description = clean_text(cells[1].get_text()) if len(cells) > 1 else ""
        out.append(Weakness(code, description))
    return out
