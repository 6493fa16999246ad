# File: tests/test_sniffer.py
from __future__ import annotations

import asyncio

import pytest

from site_mirror.crawler.models import CaptureOutcome
from site_mirror.crawler.sniffer import ClaimTable, Sniffer
from site_mirror.store import ResourceStore

from tests.conftest import ORIGIN, FakeContext, FakeBrowser, FakeResponse


@pytest.fixture()
def sniffer(config) -> Sniffer:
    return Sniffer(config, ResourceStore(config.output_root), ClaimTable())


@pytest.mark.asyncio()
async def test_binary_asset_stored_unmodified(sniffer, output_root):
    payload = bytes(range(256))
    outcome = await sniffer.capture(FakeResponse(f"{ORIGIN}/img/a.png?v=2", 200, payload))
    assert outcome is CaptureOutcome.STORED
    assert (output_root / "img" / "a.png").read_bytes() == payload
    assert sniffer.captured[0].path == "img/a.png"
    assert sniffer.captured[0].size == 256


@pytest.mark.asyncio()
async def test_out_of_scope_exchange_is_ignored(sniffer, output_root):
    outcome = await sniffer.capture(FakeResponse("https://cdn.example/lib.js", 200, b"x"))
    assert outcome is CaptureOutcome.OUT_OF_SCOPE
    assert not output_root.exists()
    assert len(sniffer.claims) == 0


@pytest.mark.asyncio()
async def test_query_variants_write_one_artifact_first_wins(sniffer, output_root):
    first = await sniffer.capture(FakeResponse(f"{ORIGIN}/js/app.js?v=1", 200, b"one"))
    second = await sniffer.capture(FakeResponse(f"{ORIGIN}/js/app.js?v=2", 200, b"two"))
    again = await sniffer.capture(FakeResponse(f"{ORIGIN}/js/app.js?v=1", 200, b"three"))
    assert (first, second, again) == (
        CaptureOutcome.STORED,
        CaptureOutcome.DUPLICATE,
        CaptureOutcome.DUPLICATE,
    )
    assert (output_root / "js" / "app.js").read_bytes() == b"one"
    assert len(sniffer.captured) == 1


@pytest.mark.asyncio()
async def test_concurrent_exchanges_for_same_path_claim_once(sniffer, output_root):
    responses = [FakeResponse(f"{ORIGIN}/data.json?page={i}", 200, str(i).encode()) for i in range(10)]
    outcomes = await asyncio.gather(*(sniffer.capture(r) for r in responses))
    assert outcomes.count(CaptureOutcome.STORED) == 1
    assert outcomes.count(CaptureOutcome.DUPLICATE) == 9
    assert (output_root / "data.json").read_bytes() == b"0"


@pytest.mark.asyncio()
async def test_stylesheet_is_rewritten(sniffer, output_root):
    css = 'body{background:url("https://site.example/img/bg.png")} h1{background:url(/img/h.png)}'
    await sniffer.capture(FakeResponse(f"{ORIGIN}/css/site.css?ver=1", 200, css))
    stored = (output_root / "css" / "site.css").read_text(encoding="utf-8")
    assert stored == 'body{background:url("../img/bg.png")} h1{background:url(../img/h.png)}'


@pytest.mark.asyncio()
async def test_non_success_status_is_skipped_without_claiming(sniffer, output_root):
    assert await sniffer.capture(FakeResponse(f"{ORIGIN}/img/x.png", 404, b"nope")) is CaptureOutcome.SKIPPED
    assert await sniffer.capture(FakeResponse(f"{ORIGIN}/img/x.png", 200, b"png")) is CaptureOutcome.STORED
    assert (output_root / "img" / "x.png").read_bytes() == b"png"


@pytest.mark.asyncio()
async def test_body_failure_releases_claim(sniffer, output_root):
    broken = FakeResponse(f"{ORIGIN}/redirected.js", 200, fail=True)
    assert await sniffer.capture(broken) is CaptureOutcome.FAILED
    assert "redirected.js" not in sniffer.claims
    assert await sniffer.capture(FakeResponse(f"{ORIGIN}/redirected.js", 200, b"ok")) is CaptureOutcome.STORED
    assert sniffer.summary()["failed"] == 1
    assert sniffer.summary()["stored"] == 1


@pytest.mark.asyncio()
async def test_storage_error_does_not_escape(sniffer, output_root):
    await sniffer.capture(FakeResponse(f"{ORIGIN}/about", 200, b"<html>"))
    outcome = await sniffer.capture(FakeResponse(f"{ORIGIN}/about/logo.svg", 200, b"<svg/>"))
    assert outcome is CaptureOutcome.FAILED


@pytest.mark.asyncio()
async def test_attached_context_events_are_captured_and_drained(sniffer, output_root):
    context = FakeContext(FakeBrowser(site={}), {})
    sniffer.attach(context)
    context.emit("response", FakeResponse(f"{ORIGIN}/a.js", 200, b"a"))
    context.emit("response", FakeResponse(f"{ORIGIN}/b.js", 200, b"b"))
    context.emit("response", FakeResponse("https://ads.example/t.gif", 200, b"t"))
    assert sniffer.in_progress == 3
    await sniffer.drain()
    assert sniffer.in_progress == 0
    assert sorted(p.name for p in output_root.iterdir()) == ["a.js", "b.js"]


def test_claim_table_documents_supersede_assets():
    claims = ClaimTable()
    assert claims.claim("index.html")
    assert claims.claim_document("index.html", f"{ORIGIN}/")
    assert claims.claim_document("index.html", f"{ORIGIN}/")  # retry of the same page
    assert not claims.claim_document("index.html", f"{ORIGIN}/?ref=nav")
    assert not claims.claim("index.html")

    claims.release("index.html")  # asset release never drops a document claim
    assert "index.html" in claims
    claims.release_document("index.html", f"{ORIGIN}/")
    assert "index.html" not in claims


class SlowResponse(FakeResponse):
    def __init__(self, url: str, body: bytes, gate: asyncio.Event) -> None:
        super().__init__(url, 200, body)
        self.gate = gate

    async def body(self) -> bytes:
        await self.gate.wait()
        return await super().body()


@pytest.mark.asyncio()
async def test_capture_yields_to_page_that_claims_path_mid_flight(sniffer, output_root):
    gate = asyncio.Event()
    task = asyncio.create_task(sniffer.capture(SlowResponse(f"{ORIGIN}/pricing", b"raw", gate)))
    await asyncio.sleep(0)

    assert sniffer.claims.claim_document("pricing", f"{ORIGIN}/pricing")
    gate.set()

    assert await task is CaptureOutcome.DUPLICATE
    assert not output_root.exists()
    assert await sniffer.claims.wait_capture("pricing", timeout=0.1)


@pytest.mark.asyncio()
async def test_wait_capture_blocks_until_asset_is_finished():
    claims = ClaimTable()
    assert await claims.wait_capture("free.js", timeout=0.01)

    claims.claim("app.js")
    assert not await claims.wait_capture("app.js", timeout=0.01)

    waiter = asyncio.create_task(claims.wait_capture("app.js", timeout=1))
    await asyncio.sleep(0)
    claims.finish("app.js")
    assert await waiter
    assert "app.js" in claims


def test_release_owner_drops_every_document_of_url():
    claims = ClaimTable()
    claims.claim_document("docs", f"{ORIGIN}/docs")
    claims.claim_document("docs/index.html", f"{ORIGIN}/docs")
    claims.claim_document("index.html", f"{ORIGIN}/")
    claims.release_owner(f"{ORIGIN}/docs")
    assert "docs" not in claims and "docs/index.html" not in claims
    assert claims.is_document("index.html")
