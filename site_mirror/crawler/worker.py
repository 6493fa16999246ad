# site_mirror/crawler/worker.py
"""
Crawl worker control loop: claim a URL, render it, scroll, extract links,
store the rewritten document, settle the URL in the frontier.
"""
from __future__ import annotations

import asyncio
from typing import Any, List, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_mirror.config import MirrorConfig
from site_mirror.crawler.frontier import Frontier
from site_mirror.crawler.link_extractor import extract_links
from site_mirror.crawler.models import CrawlTask, PageOutcome, PageResult
from site_mirror.crawler.sniffer import ClaimTable
from site_mirror.errors import MirrorError
from site_mirror.logger import get_logger
from site_mirror.store import ResourceStore
from site_mirror.urls import clean_path, rewrite_markup

__all__ = ("CrawlWorker", "auto_scroll", "SCROLL_STEP_JS")

#: scrolls by *step* px and reports how far down the viewport reaches
SCROLL_STEP_JS = """(step) => {
    window.scrollBy(0, step);
    const el = document.scrollingElement || document.body;
    return {y: window.scrollY + window.innerHeight, height: el ? el.scrollHeight : 0};
}"""

_RETRY_STATUS = frozenset(range(500, 600)) | {408, 429}


async def auto_scroll(page: Any, step: int, pause: float, max_steps: int) -> int:
    """Scroll until the bottom is reached and the page stops growing.

    Lazy-loaded images and infinite lists only request their content once
    it enters the viewport. Returns the number of scroll steps taken.
    """
    last_height = -1
    for n in range(1, max_steps + 1):
        state = await page.evaluate(SCROLL_STEP_JS, step) or {}
        height = int(state.get("height") or 0)
        reached = int(state.get("y") or 0)
        if reached >= height and height == last_height:
            return n
        last_height = height
        if pause:
            await asyncio.sleep(pause)
    return max_steps


class CrawlWorker:
    """Один воркер: берёт URL из фронтира, рендерит, сохраняет, добавляет ссылки."""

    def __init__(
        self,
        worker_id: int,
        context: Any,
        frontier: Frontier,
        store: ResourceStore,
        claims: ClaimTable,
        config: MirrorConfig,
    ) -> None:
        self.worker_id = worker_id
        self.context = context
        self.frontier = frontier
        self.store = store
        self.claims = claims
        self.config = config
        self.origin = config.origin
        self.results: List[PageResult] = []
        self.logger = get_logger(__name__)

    async def run(self) -> List[PageResult]:
        """Крутится, пока фронтир не исчерпан."""
        while True:
            task = await self.frontier.claim_next()
            if task is None:
                break
            try:
                result = await self.process(task)
            except Exception as exc:
                # one broken page must not take the worker down
                self.logger.exception("[w%d] Unexpected error on %s", self.worker_id, task.url)
                result = PageResult(task.url, PageOutcome.RETRY, reason=repr(exc))
            await self._settle(task, result)
            self.results.append(result)
        self.logger.debug("[w%d] Frontier exhausted after %d pages", self.worker_id, len(self.results))
        return self.results

    async def _settle(self, task: CrawlTask, result: PageResult) -> None:
        outcome = result.outcome
        if outcome in (PageOutcome.STORED, PageOutcome.DUPLICATE):
            await self.frontier.complete(task.url)
            return

        reason = result.reason or outcome.value
        if outcome is PageOutcome.RETRY:
            if await self.frontier.retry(task.url, reason):
                self.logger.warning("Retry %s (attempt %d failed: %s)", task.url, task.attempt + 1, reason)
                return
            self.logger.error("Giving up on %s after %d attempts: %s", task.url, task.attempt + 1, reason)
        else:
            await self.frontier.fail(task.url, reason)
            self.logger.error("Failed %s: %s", task.url, reason)
        self.claims.release_owner(task.url)

    async def process(self, task: CrawlTask) -> PageResult:
        url = task.url
        try:
            path = clean_path(url, self.origin, self.config.index_name)
        except MirrorError as exc:
            return PageResult(url, PageOutcome.FATAL, reason=str(exc))

        # claimed before navigation so the sniffer never writes the raw HTML
        owner = self.claims.claim_document(path, url)

        self.logger.info("[w%d] Crawling: %s", self.worker_id, url)
        page = None
        try:
            page = await self.context.new_page()
            response = await page.goto(
                url,
                wait_until=self.config.wait_until,
                timeout=self.config.render_timeout * 1000,
            )
            final_url = page.url or url
            if final_url != url:
                try:
                    path, owner = await self._follow_redirect(url, final_url, path)
                except MirrorError as exc:
                    return PageResult(url, PageOutcome.FATAL, reason=f"redirected to {final_url}: {exc}")
            if response is not None and response.status >= 400:
                kind = PageOutcome.RETRY if response.status in _RETRY_STATUS else PageOutcome.FATAL
                return PageResult(url, kind, path=path if owner else None, reason=f"HTTP {response.status}")

            await auto_scroll(page, self.config.scroll_step, self.config.scroll_pause, self.config.max_scroll_steps)
            await self._settle_network(page)
            html = await page.content()
        except (PlaywrightError, asyncio.TimeoutError) as exc:
            return PageResult(url, PageOutcome.RETRY, path=path if owner else None, reason=_short(exc))
        finally:
            if page is not None:
                await self._close(page)

        # relative hrefs resolve against where the browser ended up
        links = extract_links(html, final_url, self.origin)
        await self.frontier.add_many(links)

        if not owner:
            self.logger.debug("%s maps to %s, already stored for another URL", url, path)
            return PageResult(url, PageOutcome.DUPLICATE, links=len(links))

        if not await self.claims.wait_capture(path, timeout=self.config.render_timeout):
            self.logger.debug("Asset capture of %s still running, writing the page anyway", path)
        try:
            size = await self.store.write(path, rewrite_markup(html, self.origin, path))
        except MirrorError as exc:
            return PageResult(url, PageOutcome.DROPPED, path=path, links=len(links), reason=str(exc))
        return PageResult(url, PageOutcome.STORED, path=path, links=len(links), size=size)

    async def _follow_redirect(self, url: str, final_url: str, path: str) -> Tuple[str, bool]:
        """Move the document claim of *url* to the path of *final_url*.

        The claim stays keyed by *url*, so retries and failure handling
        find it. Raises OutOfScopeError for an off-site redirect.
        """
        self.claims.release_document(path, url)
        final_path = clean_path(final_url, self.origin, self.config.index_name)
        await self.frontier.mark_visited(final_url)
        self.logger.debug("%s redirected to %s -> %s", url, final_url, final_path)
        return final_path, self.claims.claim_document(final_path, url)

    async def _settle_network(self, page: Any) -> None:
        if not self.config.settle_timeout:
            return
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.settle_timeout * 1000)
        except PlaywrightTimeoutError:
            self.logger.debug("Network still busy after scrolling %s", page.url)

    async def _close(self, page: Any) -> None:
        try:
            await page.close()
        except PlaywrightError as exc:
            self.logger.debug("Page close failed: %s", exc)


def _short(exc: BaseException) -> str:
    text = str(exc).strip().splitlines()
    return f"{type(exc).__name__}: {text[0] if text else ''}".rstrip(": ")
