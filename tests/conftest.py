# File: tests/conftest.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_mirror.config import MirrorConfig
from site_mirror.crawler.worker import SCROLL_STEP_JS

ORIGIN = "https://site.example"


# --------------------------------------------------------------------------- #
#                          In-memory browser doubles                          #
# --------------------------------------------------------------------------- #


class FakeResponse:
    """Stands in for playwright ``Response``."""

    def __init__(self, url: str, status: int = 200, body: Union[bytes, str] = b"", fail: bool = False) -> None:
        self.url = url
        self.status = status
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self._fail = fail

    async def body(self) -> bytes:
        await asyncio.sleep(0)
        if self._fail:
            raise PlaywrightError("Response body is unavailable for redirect responses")
        return self._body


@dataclass
class FakeResource:
    body: Union[bytes, str] = ""
    status: int = 200
    assets: Tuple[str, ...] = ()
    lazy_assets: Tuple[str, ...] = ()  # requested only once the page is scrolled
    height: int = 1000


@dataclass
class FakeBrowser:
    """Serves a dict ``url -> FakeResource``; ``failures[url]`` gotos raise first.

    ``redirects`` maps a requested URL to the URL the page ends up at.
    """

    site: Dict[str, FakeResource]
    failures: Dict[str, int] = field(default_factory=dict)
    redirects: Dict[str, str] = field(default_factory=dict)
    goto_log: List[str] = field(default_factory=list)
    contexts: List["FakeContext"] = field(default_factory=list)

    async def new_context(self, **options: Any) -> "FakeContext":
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context

    def response_for(self, url: str) -> FakeResponse:
        resource = self.site.get(url)
        if resource is None:
            return FakeResponse(url, 404, b"not found")
        return FakeResponse(url, resource.status, resource.body)


class FakeContext:
    def __init__(self, browser: FakeBrowser, options: Dict[str, Any]) -> None:
        self.browser = browser
        self.options = options
        self.handlers: Dict[str, List[Callable[[Any], Any]]] = {}
        self.closed = False
        self.pages: List[FakePage] = []

    def on(self, event: str, handler: Callable[[Any], Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in self.handlers.get(event, []):
            handler(payload)

    async def new_page(self) -> "FakePage":
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakePage:
    def __init__(self, context: FakeContext) -> None:
        self.context = context
        self.url = "about:blank"
        self.closed = False
        self._resource: Optional[FakeResource] = None
        self._scrolled = 0
        self._lazy_sent = False

    async def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> FakeResponse:
        browser = self.context.browser
        browser.goto_log.append(url)
        await asyncio.sleep(0)
        if browser.failures.get(url, 0) > 0:
            browser.failures[url] -= 1
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        target = browser.redirects.get(url)
        if target is not None:
            self.context.emit("response", FakeResponse(url, 301, b""))
            url = target
        self.url = url
        response = browser.response_for(url)
        self.context.emit("response", response)
        self._resource = browser.site.get(url)
        if self._resource is not None:
            for asset in self._resource.assets:
                self.context.emit("response", browser.response_for(asset))
        await asyncio.sleep(0)
        return response

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        assert script == SCROLL_STEP_JS
        height = self._resource.height if self._resource else 0
        self._scrolled += arg
        reached = min(self._scrolled + 500, height)
        if reached >= height and not self._lazy_sent and self._resource is not None:
            self._lazy_sent = True
            for asset in self._resource.lazy_assets:
                self.context.emit("response", self.context.browser.response_for(asset))
        return {"y": reached, "height": height}

    async def wait_for_load_state(self, state: str = "load", timeout: float = 0) -> None:
        await asyncio.sleep(0)

    async def content(self) -> str:
        if self._resource is None:
            return ""
        body = self._resource.body
        return body.decode("utf-8") if isinstance(body, bytes) else body

    async def close(self) -> None:
        self.closed = True


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def make_config(tmp_path: Path) -> Callable[..., MirrorConfig]:
    """Factory for a fast MirrorConfig writing under tmp_path/mirror."""

    def _make(base_url: str = ORIGIN, **overrides: Any) -> MirrorConfig:
        params: Dict[str, Any] = dict(
            base_url=base_url,
            output_dir=tmp_path / "mirror",
            concurrency=2,
            render_timeout=5.0,
            settle_timeout=1.0,
            scroll_pause=0.0,
            max_attempts=3,
            retry_backoff=0.0,
            retry_backoff_max=0.0,
            use_sitemap=False,
        )
        params.update(overrides)
        return MirrorConfig(**params)

    return _make


@pytest.fixture()
def config(make_config) -> MirrorConfig:
    return make_config()


@pytest.fixture()
def output_root(config: MirrorConfig) -> Path:
    return config.output_root
