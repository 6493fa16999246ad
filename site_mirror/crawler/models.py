# site_mirror/crawler/models.py
"""
Data models for the SiteMirror crawler.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class NetworkExchange(Protocol):
    """One request/response pair observed while a page renders.

    Playwright's ``Response`` satisfies this protocol.
    """

    @property
    def url(self) -> str: ...

    @property
    def status(self) -> int: ...

    async def body(self) -> bytes: ...


class CaptureOutcome(str, Enum):
    """What the sniffer did with a single network exchange."""

    STORED = "stored"
    OUT_OF_SCOPE = "out_of_scope"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class PageOutcome(str, Enum):
    """Result kind of one page render attempt."""

    STORED = "stored"
    RETRY = "retry"      # transient: timeout, navigation error, 5xx
    FATAL = "fatal"      # permanent: 4xx, unmappable URL
    DROPPED = "dropped"  # rendered, but the document could not be written
    DUPLICATE = "duplicate"  # rendered; its path is owned by another URL


@dataclass(slots=True, frozen=True)
class CrawlTask:
    """A URL handed to a worker; ``attempt`` counts previous failures."""

    url: str
    attempt: int = 0


@dataclass(slots=True)
class PageResult:
    url: str
    outcome: PageOutcome
    path: Optional[str] = None
    links: int = 0
    size: int = 0
    reason: Optional[str] = None


@dataclass(slots=True)
class CaptureRecord:
    """Asset written by the sniffer."""

    url: str
    path: str
    size: int


@dataclass(slots=True)
class FailureRecord:
    url: str
    reason: str
    attempts: int
