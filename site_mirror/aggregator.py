# File: site_mirror/aggregator.py
"""site_mirror.aggregator: Сводка результатов одного запуска зеркалирования."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, TypedDict

from site_mirror.crawler.models import CaptureRecord, FailureRecord, PageOutcome, PageResult


class PageInfo(TypedDict):
    """Сохранённый документ."""

    url: str
    path: str
    size: int
    links: int


class AssetInfo(TypedDict):
    """Ресурс, перехваченный сниффером."""

    url: str
    path: str
    size: int


class FailureInfo(TypedDict):
    url: str
    reason: str
    attempts: int


@dataclass(slots=True)
class MirrorReport:
    """Итог зеркалирования: документы, ресурсы, сбои и счётчики."""

    base_url: str
    output_dir: str
    duration: float = 0.0
    pages: List[PageInfo] = field(default_factory=list)
    assets: List[AssetInfo] = field(default_factory=list)
    failures: List[FailureInfo] = field(default_factory=list)
    visited: int = 0
    captures: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление MirrorReport."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)

    def summary(self) -> str:
        return (
            f"{len(self.pages)} pages, {len(self.assets)} assets, "
            f"{len(self.failures)} failed in {self.duration:.1f}s -> {self.output_dir}"
        )


def aggregate_results(
    base_url: str,
    output_dir: str,
    pages: Iterable[PageResult],
    assets: Iterable[CaptureRecord],
    failures: Iterable[FailureRecord],
    *,
    visited: int = 0,
    captures: Dict[str, int] | None = None,
    duration: float = 0.0,
) -> MirrorReport:
    """Собирает результаты воркеров и сниффера в MirrorReport."""
    report = MirrorReport(base_url=base_url, output_dir=output_dir, duration=duration, visited=visited)
    report.pages = sorted(
        (
            {"url": p.url, "path": p.path or "", "size": p.size, "links": p.links}
            for p in pages
            if p.outcome is PageOutcome.STORED
        ),
        key=lambda item: item["path"],
    )
    report.assets = sorted(
        ({"url": a.url, "path": a.path, "size": a.size} for a in assets),
        key=lambda item: item["path"],
    )
    report.failures = [{"url": f.url, "reason": f.reason, "attempts": f.attempts} for f in failures]
    report.captures = dict(captures or {})
    return report
