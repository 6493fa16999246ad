# File: site_mirror/engine.py
"""site_mirror.engine: запуск воркеров на общем фронтире и итоговый отчёт."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from aiohttp import ClientSession
from playwright.async_api import async_playwright

from site_mirror.aggregator import MirrorReport, aggregate_results
from site_mirror.config import MirrorConfig
from site_mirror.crawler.frontier import Frontier
from site_mirror.crawler.models import PageResult
from site_mirror.crawler.sitemap import seed_from_sitemap
from site_mirror.crawler.sniffer import ClaimTable, Sniffer
from site_mirror.crawler.worker import CrawlWorker
from site_mirror.logger import get_logger
from site_mirror.store import ResourceStore

__all__ = ["MirrorEngine", "start_mirror"]

logger = get_logger(__name__)


class MirrorEngine:
    """Фасад для CLI и тестов: один запуск зеркалирования сайта.

    ``browser``: объект с ``new_context(**kwargs)`` (Playwright ``Browser``
    или тестовая подделка). Без него запускается headless Chromium.
    ``session``: aiohttp-сессия для загрузки sitemap.
    """

    def __init__(
        self,
        config: MirrorConfig,
        browser: Any = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.config = config
        self.store = ResourceStore(config.output_root)
        self.claims = ClaimTable()
        self.frontier = Frontier(
            max_attempts=config.max_attempts,
            backoff_base=config.retry_backoff,
            backoff_max=config.retry_backoff_max,
        )
        self.sniffer = Sniffer(config, self.store, self.claims)
        self._browser = browser
        self._session = session

    @asynccontextmanager
    async def _browser_session(self) -> AsyncIterator[Any]:
        if self._browser is not None:
            yield self._browser
            return
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=self.config.headless)
            try:
                yield browser
            finally:
                await browser.close()

    def _context_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"ignore_https_errors": self.config.ignore_https_errors}
        if self.config.user_agent:
            options["user_agent"] = self.config.user_agent
        return options

    async def seed(self) -> int:
        """Стартовый URL плюс адреса из sitemap.xml."""
        added = int(await self.frontier.add(self.config.start_url))
        if self.config.use_sitemap:
            added += await seed_from_sitemap(self.config, self.frontier, self._session)
        return added

    async def run(self) -> MirrorReport:
        """Запускает N воркеров на общем фронтире и ждёт его исчерпания."""
        cfg = self.config
        logger.info("Mirroring %s -> %s (%d workers)", cfg.start_url, self.store.root, cfg.concurrency)
        start = time.monotonic()

        await self.seed()

        results: List[PageResult] = []
        async with self._browser_session() as browser:
            contexts = []
            try:
                for _ in range(cfg.concurrency):
                    context = await browser.new_context(**self._context_options())
                    self.sniffer.attach(context)
                    contexts.append(context)

                workers = [
                    CrawlWorker(i, context, self.frontier, self.store, self.claims, cfg)
                    for i, context in enumerate(contexts, start=1)
                ]
                for worker_results in await asyncio.gather(*(w.run() for w in workers)):
                    results.extend(worker_results)
                await self.sniffer.drain()
            finally:
                for context in contexts:
                    await context.close()

        report = aggregate_results(
            cfg.start_url,
            str(self.store.root),
            results,
            self.sniffer.captured,
            self.frontier.failures,
            visited=len(self.frontier.visited),
            captures=self.sniffer.summary(),
            duration=time.monotonic() - start,
        )
        logger.info("DONE: %s", report.summary())
        return report


async def start_mirror(config: MirrorConfig) -> MirrorReport:
    """Запускает зеркалирование с настройками по умолчанию (Chromium + aiohttp)."""
    return await MirrorEngine(config).run()
