# site_mirror/crawler/sitemap.py
"""
Sitemap seeding: fetch ``<origin>/sitemap.xml`` over plain HTTP and put its
locations into the frontier before any worker starts.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_mirror.config import MirrorConfig
from site_mirror.crawler.frontier import Frontier
from site_mirror.logger import get_logger
from site_mirror.parser.sitemap_parser import parse_sitemap_document
from site_mirror.urls import is_in_scope

__all__ = ("fetch_text", "collect_sitemap_urls", "seed_from_sitemap")

logger = get_logger(__name__)


async def fetch_text(session: ClientSession, url: str) -> Optional[str]:
    """Тело ответа как текст или None, если ответ не 2xx или сеть недоступна."""
    try:
        async with session.get(url) as resp:
            if not 200 <= resp.status < 300:
                logger.debug("%s -> HTTP %s", url, resp.status)
                return None
            return await resp.text(errors="replace")
    except (ClientError, asyncio.TimeoutError) as exc:
        logger.debug("Fetch %s failed: %s", url, exc)
        return None


async def collect_sitemap_urls(session: ClientSession, config: MirrorConfig) -> List[str]:
    """Page URLs listed by the site's sitemap, following one sitemap index level."""
    origin = config.origin
    root_url = f"{origin}/sitemap.xml"
    text = await fetch_text(session, root_url)
    if text is None:
        logger.info("No sitemap found at %s", root_url)
        return []

    document = parse_sitemap_document(text)
    if not document.is_index:
        return document.locations

    children = [u for u in document.locations if is_in_scope(u, origin)][: config.max_sitemaps]
    logger.info("Sitemap index with %d child sitemaps", len(children))
    urls: List[str] = []
    for child in children:
        child_text = await fetch_text(session, child)
        if child_text is None:
            continue
        child_doc = parse_sitemap_document(child_text)
        if child_doc.is_index:
            logger.debug("Nested sitemap index %s ignored", child)
            continue
        urls.extend(child_doc.locations)
    return urls


async def seed_from_sitemap(
    config: MirrorConfig,
    frontier: Frontier,
    session: Optional[ClientSession] = None,
) -> int:
    """Enqueue in-scope, fragment-free sitemap locations. Returns how many were new."""
    own_session = session is None
    if session is None:
        headers = {"User-Agent": config.user_agent} if config.user_agent else None
        session = ClientSession(timeout=ClientTimeout(total=config.sitemap_timeout), headers=headers)
    try:
        urls = await collect_sitemap_urls(session, config)
    finally:
        if own_session and not session.closed:
            await session.close()

    seeds = [u for u in urls if "#" not in u and is_in_scope(u, config.origin)]
    skipped = len(urls) - len(seeds)
    if skipped:
        logger.debug("Ignored %d out-of-scope sitemap entries", skipped)
    added = await frontier.add_many(seeds)
    logger.info("Sitemap URLs added: %d", added)
    return added
