# site_mirror/crawler/__init__.py
"""Crawl-and-capture engine: frontier, workers, network sniffer, sitemap seeding."""

from site_mirror.crawler.frontier import Frontier
from site_mirror.crawler.sniffer import ClaimTable, Sniffer
from site_mirror.crawler.worker import CrawlWorker

__all__ = ["Frontier", "ClaimTable", "Sniffer", "CrawlWorker"]
