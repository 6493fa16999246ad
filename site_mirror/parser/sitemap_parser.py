# File: site_mirror/parser/sitemap_parser.py
"""site_mirror.parser.sitemap_parser: Извлечение URL из тегов <loc> в sitemap.xml."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import List

from lxml import etree

_LOC_RE = re.compile(r"<(?:[\w.-]+:)?loc\s*>\s*(.*?)\s*</(?:[\w.-]+:)?loc\s*>", re.IGNORECASE | re.DOTALL)
_INDEX_RE = re.compile(r"<(?:[\w.-]+:)?sitemapindex[\s>]", re.IGNORECASE)
_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.DOTALL)


@dataclass(slots=True)
class SitemapDocument:
    """Содержимое sitemap: адреса и признак sitemapindex."""

    locations: List[str] = field(default_factory=list)
    is_index: bool = False


def _parse_tree(xml_content: str) -> SitemapDocument | None:
    parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(xml_content.encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError:
        return None
    if root is None:
        return None
    locs = [loc.text.strip() for loc in root.iter("{*}loc") if loc.text and loc.text.strip()]
    tag = etree.QName(root).localname if isinstance(root.tag, str) else ""
    return SitemapDocument(locations=locs, is_index=tag == "sitemapindex")


def _scan_text(xml_content: str) -> SitemapDocument:
    locs: List[str] = []
    for raw in _LOC_RE.findall(xml_content):
        cdata = _CDATA_RE.match(raw)
        value = html.unescape(cdata.group(1) if cdata else raw).strip()
        if value:
            locs.append(value)
    return SitemapDocument(locations=locs, is_index=bool(_INDEX_RE.search(xml_content)))


def parse_sitemap_document(xml_content: str) -> SitemapDocument:
    """Разбирает sitemap с восстановлением ошибок; битый XML не приводит к исключению.

    Сначала lxml в режиме recover; если он ничего не нашёл (мусор вокруг,
    несколько корней, обрыв файла), то текстовый поиск тегов <loc>.
    """
    document = _parse_tree(xml_content)
    if document is None or not document.locations:
        scanned = _scan_text(xml_content)
        if document is None or len(scanned.locations) > len(document.locations):
            return scanned
    return document


def parse_sitemap(xml_content: str) -> List[str]:
    """Адреса из тегов <loc> в порядке документа.

    Для sitemapindex это адреса дочерних sitemap; признак индекса
    возвращает :func:`parse_sitemap_document`.
    """
    return parse_sitemap_document(xml_content).locations
