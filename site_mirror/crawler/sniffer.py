# site_mirror/crawler/sniffer.py
"""
Out-of-band resource capture: every response a page render triggers
(stylesheets, scripts, images, fonts, XHR/fetch data) is written to the
mirror, not just the HTML the worker navigates to.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Set

from playwright.async_api import Error as PlaywrightError

from site_mirror.config import MirrorConfig
from site_mirror.crawler.models import CaptureOutcome, CaptureRecord, NetworkExchange
from site_mirror.errors import MirrorError, StorageError
from site_mirror.logger import get_logger
from site_mirror.store import ResourceStore
from site_mirror.urls import clean_path, is_in_scope, is_stylesheet, rewrite_stylesheet

__all__ = ("ClaimTable", "Sniffer")


class ClaimTable:
    """Run-wide set of claimed output paths.

    Methods that mutate never suspend, so a check-and-set is atomic with
    respect to every other task on the event loop. An asset claim stays
    "capturing" until the sniffer calls :meth:`finish`; a page that takes
    over the path waits for that in :meth:`wait_capture` before writing.
    """

    def __init__(self) -> None:
        self._paths: Set[str] = set()
        self._documents: Dict[str, str] = {}
        self._capturing: Dict[str, asyncio.Event] = {}

    def claim(self, path: str) -> bool:
        """Claim *path* for an asset; False if anybody claimed it already."""
        if path in self._paths:
            return False
        self._paths.add(path)
        self._capturing[path] = asyncio.Event()
        return True

    def finish(self, path: str) -> None:
        """Mark the asset capture of *path* as done, written or not."""
        event = self._capturing.pop(path, None)
        if event is not None:
            event.set()

    def claim_document(self, path: str, url: str) -> bool:
        """Claim *path* for the rendered document of *url*.

        Succeeds if the path is free, already held by an asset capture
        (the rendered page supersedes it) or already held by *url* itself
        (a retry). Fails only if another page URL owns the path.
        """
        owner = self._documents.get(path)
        if owner is not None and owner != url:
            return False
        self._documents[path] = url
        self._paths.add(path)
        return True

    def is_document(self, path: str) -> bool:
        return path in self._documents

    async def wait_capture(self, path: str, timeout: Optional[float] = None) -> bool:
        """Wait until no asset capture of *path* is in progress.

        Returns False if the capture was still running after *timeout*.
        """
        event = self._capturing.get(path)
        if event is None:
            return True
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def release(self, path: str) -> None:
        """Drop an asset claim; a document claim on the same path stays."""
        self.finish(path)
        if path not in self._documents:
            self._paths.discard(path)

    def release_document(self, path: str, url: str) -> None:
        if self._documents.get(path) == url:
            del self._documents[path]
            self._paths.discard(path)

    def release_owner(self, url: str) -> None:
        """Drop every document claim held by *url*."""
        for path in [p for p, owner in self._documents.items() if owner == url]:
            self.release_document(path, url)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)


class Sniffer:
    """Subscribes to ``response`` events of browsing contexts and stores assets.

    One instance serves every context of a run; :meth:`attach` is called
    once per context. Captures run as background tasks, :meth:`drain`
    waits for the ones still in progress.
    """

    def __init__(self, config: MirrorConfig, store: ResourceStore, claims: ClaimTable) -> None:
        self.config = config
        self.store = store
        self.claims = claims
        self.origin = config.origin
        self.logger = get_logger(__name__)
        self.stats: Counter[CaptureOutcome] = Counter()
        self.captured: List[CaptureRecord] = []
        self._tasks: Set[asyncio.Task[CaptureOutcome]] = set()

    def attach(self, context: Any) -> None:
        context.on("response", self._on_response)

    def _on_response(self, response: NetworkExchange) -> None:
        task = asyncio.get_running_loop().create_task(self.capture(response))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[CaptureOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Sniffer task crashed: %r", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait until every in-progress capture has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def capture(self, response: NetworkExchange) -> CaptureOutcome:
        outcome = await self._capture(response)
        self.stats[outcome] += 1
        return outcome

    async def _capture(self, response: NetworkExchange) -> CaptureOutcome:
        url = response.url
        if not is_in_scope(url, self.origin):
            return CaptureOutcome.OUT_OF_SCOPE

        try:
            path = clean_path(url, self.origin, self.config.index_name)
        except MirrorError as exc:
            self.logger.debug("Unmappable asset %s: %s", url, exc)
            return CaptureOutcome.SKIPPED

        status = response.status
        if not 200 <= status < 300:
            self.logger.debug("Skip %s: HTTP %s", url, status)
            return CaptureOutcome.SKIPPED

        if not self.claims.claim(path):
            self.logger.debug("Duplicate %s -> %s", url, path)
            return CaptureOutcome.DUPLICATE

        try:
            body = await response.body()
            data: str | bytes = body
            if is_stylesheet(path, self.config.stylesheet_suffixes):
                data = rewrite_stylesheet(body.decode("utf-8", errors="replace"), self.origin, path)
            # a crawled page took the path while the body was loading
            if self.claims.is_document(path):
                self.logger.debug("Duplicate %s -> %s (rendered page)", url, path)
                return CaptureOutcome.DUPLICATE
            size = await self.store.write(path, data)
        except (PlaywrightError, MirrorError) as exc:
            self.claims.release(path)
            level = logging.WARNING if isinstance(exc, StorageError) else logging.DEBUG
            self.logger.log(level, "Asset %s dropped: %s", url, exc)
            return CaptureOutcome.FAILED
        finally:
            self.claims.finish(path)

        self.captured.append(CaptureRecord(url=url, path=path, size=size))
        self.logger.debug("Captured %s -> %s (%d B)", url, path, size)
        return CaptureOutcome.STORED

    def summary(self) -> Dict[str, int]:
        return {outcome.value: self.stats.get(outcome, 0) for outcome in CaptureOutcome}

    @property
    def in_progress(self) -> int:
        return len(self._tasks)
