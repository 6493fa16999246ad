# site_mirror/crawler/link_extractor.py
"""
Link extraction from rendered documents for SiteMirror.
"""
from __future__ import annotations

from typing import List
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_mirror.urls import is_in_scope


def document_base(soup: BeautifulSoup, page_url: str) -> str:
    """Base URL for relative hrefs: ``<base href>`` if present, else the page URL."""
    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        href = base.get("href")
        if isinstance(href, str) and href.strip():
            return urljoin(page_url, href.strip())
    return page_url


def extract_links(html: str, page_url: str, origin: str) -> List[str]:
    """
    Extract same-origin anchor targets from rendered markup.

    Ignores mailto:/javascript:/tel:, other origins, and any link carrying a
    fragment (``#``), so in-page anchors never reach the frontier.
    Order of first appearance is kept, duplicates are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    base = document_base(soup, page_url)
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.startswith(("mailto:", "javascript:", "tel:", "data:")):
            continue
        absolute = _drop_empty_fragment(urljoin(base, raw))
        if "#" in absolute or not is_in_scope(absolute, origin):
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


def _drop_empty_fragment(url: str) -> str:
    # "page#" carries no anchor; treat it as "page"
    if url.endswith("#"):
        parts = urlsplit(url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
    return url
