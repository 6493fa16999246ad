# site_mirror/crawler/frontier.py
"""
Shared crawl state: pending URLs, visited URLs, in-flight renders and
per-URL retry bookkeeping.

All mutations go through one :class:`asyncio.Condition`, so "read the
sets, decide, mutate" is a single critical section. Callers never see the
raw sets, only snapshots.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from site_mirror.crawler.models import CrawlTask, FailureRecord
from site_mirror.logger import get_logger

__all__ = ("Frontier",)


@dataclass(slots=True)
class _Entry:
    attempt: int
    ready_at: float


class Frontier:
    """Producer/consumer frontier shared by all crawl workers.

    * :meth:`add` enqueues a URL unless it is pending or already visited.
    * :meth:`claim_next` hands out a ready URL, marking it visited and
      in-flight; it returns ``None`` only once nothing is pending and no
      worker is mid-fetch, which is the run's terminal state.
    * :meth:`complete`, :meth:`retry` and :meth:`fail` close an in-flight URL.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.logger = get_logger(__name__)

        self._cond = asyncio.Condition()
        self._pending: Dict[str, _Entry] = {}
        self._visited: Set[str] = set()
        self._in_flight: Set[str] = set()
        self._attempts: Dict[str, int] = {}
        self._failed: Dict[str, FailureRecord] = {}
        self._completed: Set[str] = set()

    # ------------------------------------------------------------------ #
    # producers                                                          #
    # ------------------------------------------------------------------ #

    async def add(self, url: str) -> bool:
        """Enqueue *url* if unseen. Returns True if it was added."""
        async with self._cond:
            added = self._add_locked(url)
            if added:
                self._cond.notify_all()
            return added

    async def add_many(self, urls: Iterable[str]) -> int:
        async with self._cond:
            added = sum(1 for url in urls if self._add_locked(url))
            if added:
                self._cond.notify_all()
            return added

    def _add_locked(self, url: str) -> bool:
        if url in self._visited or url in self._pending:
            return False
        self._pending[url] = _Entry(attempt=0, ready_at=0.0)
        return True

    # ------------------------------------------------------------------ #
    # consumers                                                          #
    # ------------------------------------------------------------------ #

    async def claim_next(self) -> Optional[CrawlTask]:
        """Wait for a ready URL; ``None`` once the frontier is exhausted."""
        async with self._cond:
            while True:
                task = self._pop_ready()
                if task is not None:
                    self._visited.add(task.url)
                    self._in_flight.add(task.url)
                    return task
                if not self._pending and not self._in_flight:
                    # wake the other idle workers so they see the same state
                    self._cond.notify_all()
                    return None
                try:
                    await asyncio.wait_for(self._cond.wait(), timeout=self._next_ready_in())
                except asyncio.TimeoutError:
                    pass

    def _pop_ready(self) -> Optional[CrawlTask]:
        now = asyncio.get_running_loop().time()
        for url, entry in list(self._pending.items()):
            if entry.ready_at > now:
                continue
            del self._pending[url]
            return CrawlTask(url=url, attempt=entry.attempt)
        return None

    def _next_ready_in(self) -> Optional[float]:
        """Seconds until the earliest backoff expires; None → wait for a notify."""
        if not self._pending:
            return None
        now = asyncio.get_running_loop().time()
        return max(0.0, min(e.ready_at for e in self._pending.values()) - now)

    async def mark_visited(self, url: str) -> bool:
        """Record *url* as fetched without handing it out (a redirect target).

        Returns False if it was already visited.
        """
        async with self._cond:
            if url in self._visited:
                return False
            self._visited.add(url)
            self._pending.pop(url, None)
            self._cond.notify_all()
            return True

    async def complete(self, url: str) -> None:
        async with self._cond:
            self._in_flight.discard(url)
            self._completed.add(url)
            self._cond.notify_all()

    async def retry(self, url: str, reason: str) -> bool:
        """Requeue a failed URL with backoff.

        Returns False when the attempt budget is exhausted; the URL is then
        recorded as a final failure.
        """
        async with self._cond:
            self._in_flight.discard(url)
            attempts = self._attempts.get(url, 0) + 1
            self._attempts[url] = attempts
            if attempts >= self.max_attempts:
                self._failed[url] = FailureRecord(url=url, reason=reason, attempts=attempts)
                self._cond.notify_all()
                return False
            delay = self.backoff_delay(attempts)
            ready_at = asyncio.get_running_loop().time() + delay
            self._pending[url] = _Entry(attempt=attempts, ready_at=ready_at)
            self.logger.debug("Requeued %s (attempt %d/%d) in %.2f s", url, attempts + 1, self.max_attempts, delay)
            self._cond.notify_all()
            return True

    async def fail(self, url: str, reason: str) -> None:
        """Record a permanent failure without retrying."""
        async with self._cond:
            self._in_flight.discard(url)
            attempts = self._attempts.get(url, 0) + 1
            self._attempts[url] = attempts
            self._failed[url] = FailureRecord(url=url, reason=reason, attempts=attempts)
            self._cond.notify_all()

    def backoff_delay(self, attempts: int) -> float:
        return min(self.backoff_max, self.backoff_base * 2 ** (attempts - 1))

    # ------------------------------------------------------------------ #
    # snapshots                                                          #
    # ------------------------------------------------------------------ #

    @property
    def visited(self) -> frozenset[str]:
        return frozenset(self._visited)

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def completed(self) -> frozenset[str]:
        return frozenset(self._completed)

    @property
    def failures(self) -> List[FailureRecord]:
        return list(self._failed.values())

    def attempts(self, url: str) -> int:
        return self._attempts.get(url, 0)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
